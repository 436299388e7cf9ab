"""Shared formatting helpers for accepted entries.

Keeping formatting here prevents drift between the report log line and the
ledger/console output.
"""

from __future__ import annotations

from typing import Optional

from core.models import Entry, Info


def format_info(info: Optional[Info]) -> str:
    """Return a compact label such as ``Show ep 3-4 v2 1080p 10bit [Group]``."""

    if info is None or info.name is None:
        return ""

    parts = [info.name]
    if info.ep >= 0:
        eps = f"ep {info.ep}" if info.endep == info.ep else f"ep {info.ep}-{info.endep}"
        parts.append(eps)
    if info.ver >= 0:
        parts.append(f"v{info.ver}")
    if info.res >= 0:
        parts.append(f"{info.res}p")
    if info.bit >= 0:
        parts.append(f"{info.bit}bit")
    if info.group:
        parts.append(f"[{info.group}]")
    if info.crc:
        parts.append(f"({info.crc})")
    return " ".join(parts)


def format_accepted(entry: Entry) -> str:
    """Single-line report for an accepted entry."""

    line = f'Accepted "{entry.title}" ({entry.link})'
    label = format_info(entry.info)
    if label:
        line = f"{line} as {label}"
    return line
