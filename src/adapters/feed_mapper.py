"""Mapping from feedparser entries to core RawItems."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from core.models import RawItem


def _category_from_entry(entry: Mapping[str, Any]) -> str:
    category = entry.get("category")
    if category:
        return str(category)
    # feedparser exposes <category> elements as tags as well.
    tags = entry.get("tags") or []
    for tag in tags:
        term = tag.get("term")
        if term:
            return str(term)
    return ""


def _pub_date_from_entry(entry: Mapping[str, Any]) -> Optional[str]:
    return entry.get("published") or entry.get("updated")


def build_raw_item(entry: Mapping[str, Any]) -> RawItem:
    """Build a core RawItem from one feedparser entry."""

    description = entry.get("description") or entry.get("summary") or ""
    link = entry.get("link") or ""
    # feedparser stores <guid> under "id"; fall back to the link like RSS readers do.
    guid = entry.get("id") or entry.get("guid") or link

    return RawItem(
        title=entry.get("title") or "",
        description=description,
        link=link,
        pub_date=_pub_date_from_entry(entry),
        guid=str(guid),
        category=_category_from_entry(entry),
    )
