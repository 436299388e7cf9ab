"""HTTP feed source adapter.

Implements the core FeedSourcePort with httpx for transport and feedparser
for RSS decoding.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import feedparser
import httpx

from adapters.feed_mapper import build_raw_item
from core.models import RawItem

LOGGER = logging.getLogger(__name__)

USER_AGENT = "torrentsieve/0.1"


class FeedFetchError(RuntimeError):
    """The feed could not be downloaded or decoded."""


class HttpFeedSource:
    """Fetch an RSS feed over HTTP and return its items."""

    def __init__(self, client: Optional[httpx.Client] = None, timeout: float = 30.0) -> None:
        self._client = client or httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT, "Accept-Encoding": "gzip"},
        )

    def fetch(self, url: str) -> List[RawItem]:
        """Download and decode the feed; raises FeedFetchError on failure."""

        LOGGER.info("Fetching RSS from %s", url)
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise FeedFetchError(f"Failed to get {url}: {exc}") from exc

        # httpx has already undone any gzip content-encoding.
        parsed = feedparser.parse(response.content)
        if parsed.bozo and not parsed.entries:
            raise FeedFetchError(f"Malformed feed at {url}: {parsed.get('bozo_exception')}")

        return [build_raw_item(entry) for entry in parsed.entries]

    def close(self) -> None:
        self._client.close()
