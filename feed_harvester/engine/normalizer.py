"""Turn raw feedparser entries into canonical :class:`Item` records."""

from __future__ import annotations

import calendar
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from ..errors import NormalizationError
from .records import Item, MediaAttachment, Thumbnail

PREMIUM_TRUE = "true"
HTML_TYPES = ("text/html", "application/xhtml+xml", "html", "xhtml")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _first_text(entry: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = _text(entry.get(key))
        if value:
            return value
    return ""


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _to_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _struct_time_to_datetime(value: Any) -> datetime | None:
    if not isinstance(value, (time.struct_time, tuple)):
        return None
    try:
        return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)
    except (OverflowError, TypeError, ValueError):
        return None


class RecordNormalizer:
    """Build one :class:`Item` per raw entry with deterministic fallbacks."""

    def __init__(
        self,
        premium_field: str = "bild_premium",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.premium_field = premium_field
        self.clock = clock

    def normalize(self, entry: Any, feed_url: str, feed_title: str = "") -> Item:
        if not isinstance(entry, Mapping):
            raise NormalizationError(f"Raw entry must be a mapping, got {type(entry).__name__}")

        link = _text(entry.get("link"))
        description = _first_text(entry, "description", "summary")
        return Item(
            title=_text(entry.get("title")),
            link=link,
            guid=_first_text(entry, "id", "guid") or link,
            published_at=self._published_at(entry),
            description=description,
            content=self._content(entry) or description,
            author=_first_text(entry, "creator", "author"),
            categories=self._categories(entry),
            media=self._media(entry),
            thumbnail=self._thumbnail(entry),
            is_premium=entry.get(self.premium_field) == PREMIUM_TRUE,
            feed_title=feed_title,
            feed_url=feed_url,
        )

    def normalize_many(
        self, entries: Iterable[Any], feed_url: str, feed_title: str = ""
    ) -> list[Item]:
        return [self.normalize(entry, feed_url, feed_title) for entry in entries]

    # ------------------------------------------------------------------
    def _published_at(self, entry: Mapping[str, Any]) -> datetime:
        for key in ("published_parsed", "updated_parsed"):
            parsed = _struct_time_to_datetime(entry.get(key))
            if parsed is not None:
                return parsed
        published = entry.get("published")
        if isinstance(published, datetime):
            return published if published.tzinfo else published.replace(tzinfo=timezone.utc)
        return self.clock()

    @staticmethod
    def _content(entry: Mapping[str, Any]) -> str:
        encoded = _text(entry.get("content_encoded"))
        if encoded:
            return encoded
        blocks = entry.get("content")
        if isinstance(blocks, str):
            return blocks
        fallback = ""
        for block in _as_list(blocks):
            if not isinstance(block, Mapping):
                continue
            value = _text(block.get("value"))
            if not value:
                continue
            # content:encoded arrives as an HTML block
            if _text(block.get("type")).lower() in HTML_TYPES:
                return value
            fallback = fallback or value
        return fallback

    @staticmethod
    def _categories(entry: Mapping[str, Any]) -> list[str]:
        tags = entry.get("tags")
        if tags:
            terms = [
                _text(tag.get("term") if isinstance(tag, Mapping) else tag)
                for tag in _as_list(tags)
            ]
            return [term for term in terms if term]
        return [_text(value) for value in _as_list(entry.get("categories")) if _text(value)]

    @staticmethod
    def _media(entry: Mapping[str, Any]) -> list[MediaAttachment]:
        candidates = _as_list(entry.get("media_content"))
        group = entry.get("media_group")
        if isinstance(group, Mapping):
            candidates.extend(_as_list(group.get("media_content")))

        entry_credit = ""
        for credit in _as_list(entry.get("media_credit")):
            entry_credit = _text(credit.get("content") if isinstance(credit, Mapping) else credit)
            if entry_credit:
                break

        media: list[MediaAttachment] = []
        for candidate in candidates:
            if not isinstance(candidate, Mapping):
                continue
            url = _text(candidate.get("url"))
            if not url:
                continue
            media.append(
                MediaAttachment(
                    url=url,
                    type=_text(candidate.get("type")) or "image/jpeg",
                    medium=_text(candidate.get("medium")) or "image",
                    credit=_text(candidate.get("credit")) or entry_credit,
                )
            )
        return media

    @staticmethod
    def _thumbnail(entry: Mapping[str, Any]) -> Thumbnail | None:
        for candidate in _as_list(entry.get("media_thumbnail")):
            if not isinstance(candidate, Mapping):
                continue
            url = _text(candidate.get("url"))
            if url:
                return Thumbnail(
                    url=url,
                    width=_to_int(candidate.get("width")),
                    height=_to_int(candidate.get("height")),
                )
        return None


__all__ = ["PREMIUM_TRUE", "RecordNormalizer"]
