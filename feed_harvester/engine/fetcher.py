"""HTTP fetching and feed parsing for one poll of one feed."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import feedparser
import httpx
import structlog

from ..errors import FeedFetchError


@dataclass(slots=True)
class FetchedFeed:
    """Raw entries and declared title returned by one fetch."""

    url: str
    title: str
    entries: list[Any] = field(default_factory=list)


class FeedFetcher:
    """Fetch a feed document over HTTP and parse it with feedparser."""

    def __init__(
        self,
        timeout: float = 20.0,
        user_agent: str | None = None,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        headers = {"Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8"}
        if user_agent:
            headers["User-Agent"] = user_agent
        self._client = client or httpx.Client(timeout=timeout, headers=headers, follow_redirects=True)
        self.logger = logger or structlog.get_logger("feed_harvester").bind(component="fetcher")

    def fetch(self, url: str) -> FetchedFeed:
        self.logger.info("feed_fetch_started", feed=url)
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FeedFetchError(url, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise FeedFetchError(url, str(exc) or exc.__class__.__name__) from exc
        return self.parse(url, response.content)

    def parse(self, url: str, document: bytes | str) -> FetchedFeed:
        """Parse an already downloaded document into a :class:`FetchedFeed`."""

        parsed = feedparser.parse(document)
        entries = list(parsed.get("entries") or [])
        if parsed.get("bozo") and not entries:
            reason = parsed.get("bozo_exception")
            raise FeedFetchError(url, f"malformed feed: {reason}")
        if parsed.get("bozo"):
            self.logger.warning(
                "feed_parse_warning", feed=url, error=str(parsed.get("bozo_exception"))
            )
        feed_meta = parsed.get("feed") or {}
        title = feed_meta.get("title") or ""
        self.logger.info("feed_fetched", feed=url, entries=len(entries))
        return FetchedFeed(url=url, title=str(title), entries=entries)

    def close(self) -> None:
        self._client.close()


__all__ = ["FeedFetcher", "FetchedFeed"]
