"""Metadata extraction from raw feed items.

Tracker feeds pack most of the useful data into the HTML description, so
everything here is a fixed set of independent text patterns. A pattern that
does not match simply leaves its field unset.
"""

from __future__ import annotations

import re
from typing import Optional

from core.errors import ExtractionError
from core.models import Entry, RawItem

_TAG_WRAPPER = re.compile(r"^\s*<([\w:-]+)[^>]*>(.*?)</\1\s*>\s*$", re.DOTALL)
_ID = re.compile(r"id=(\d+)")

_TORRENT_LINK = re.compile(r'Torrent: <a href="([^"]+)">')
_SIZE = re.compile(r"Size: (\d+(?:\.\d+)?\s?[KMGTP]?i?B)")
_AUTHORIZED = re.compile(r"Authorized: Yes")
_MAGNET = re.compile(r'href="(magnet:[^"]+)"')
_COMMENT = re.compile(r"Comment: (.*)$", re.MULTILINE)

# Info pages are rewritten to the direct download endpoint.
_INFO_PAGE = "page=torrentinfo"
_DOWNLOAD_PAGE = "page=download"


def strip_tag(text: str) -> str:
    """Return the inner text of a ``<tag>...</tag>`` wrapper, if present."""

    match = _TAG_WRAPPER.match(text or "")
    if not match:
        return (text or "").strip()
    return match.group(2).strip()


def rewrite_download_url(url: str) -> str:
    return url.replace(_INFO_PAGE, _DOWNLOAD_PAGE)


def parse_id(guid: str) -> Optional[int]:
    match = _ID.search(guid)
    return int(match.group(1)) if match else None


def _search(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    return match.group(1) if match else None


def extract_entry(item: RawItem, require_id: bool = False) -> Entry:
    """Build an Entry from one raw feed item.

    ``require_id`` makes a guid without an ``id=<digits>`` component an
    ExtractionError instead of an Entry with ``id=None``.
    """

    guid = strip_tag(item.guid)
    entry_id = parse_id(guid)
    if entry_id is None and require_id:
        raise ExtractionError(f"No numeric id in guid {guid!r}")

    description = item.description or ""
    link = item.link or ""
    torrent_url = _search(_TORRENT_LINK, description) or link

    return Entry(
        id=entry_id,
        title=(item.title or "").replace("_", " "),
        link=rewrite_download_url(link),
        torrent_url=rewrite_download_url(torrent_url),
        size=_search(_SIZE, description),
        category=strip_tag(item.category),
        authorized=bool(_AUTHORIZED.search(description)),
        magnet_uri=_search(_MAGNET, description),
        comment=_search(_COMMENT, description),
        published_at=item.pub_date,
        guid=guid,
    )
