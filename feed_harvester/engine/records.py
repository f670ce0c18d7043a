"""Canonical records flowing through the harvesting pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MediaAttachment(BaseModel):
    """One media object attached to an item."""

    model_config = ConfigDict(frozen=True)

    url: str
    type: str = "image/jpeg"
    medium: str = "image"
    credit: str = ""


class Thumbnail(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    width: int | None = None
    height: int | None = None


class Item(BaseModel):
    """Normalized, storage-ready feed item.

    Field aliases are the document keys used by the stores, so a stored
    document reads ``pubDate``/``feedUrl``/``createdAt`` while Python code
    uses snake_case attributes.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = ""
    link: str = ""
    guid: str = ""
    published_at: datetime = Field(alias="pubDate")
    description: str = ""
    content: str = ""
    author: str = ""
    categories: list[str] = Field(default_factory=list)
    media: list[MediaAttachment] = Field(default_factory=list, alias="mediaContent")
    thumbnail: Thumbnail | None = Field(default=None, alias="mediaThumbnail")
    is_premium: bool = Field(default=False, alias="isPremium")
    feed_title: str = Field(default="", alias="feedTitle")
    feed_url: str = Field(default="", alias="feedUrl")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    def to_document(self) -> dict[str, Any]:
        """Return the persisted representation keyed by document field names."""

        return self.model_dump(by_alias=True)


class ItemView(BaseModel):
    """Display projection of a stored item."""

    title: str = ""
    description: str = ""
    categories: list[str] = Field(default_factory=list)
    pubDate: datetime | None = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def _blank_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("categories", mode="before")
    @classmethod
    def _blank_categories(cls, value: Any) -> Any:
        return [] if value is None else value


class SaveStatus(str, Enum):
    STORED = "stored"
    DUPLICATE = "duplicate"


@dataclass(slots=True, frozen=True)
class SaveResult:
    """Outcome of one insert-if-absent attempt."""

    status: SaveStatus
    created_at: datetime | None = None

    @property
    def stored(self) -> bool:
        return self.status is SaveStatus.STORED

    @classmethod
    def duplicate(cls) -> "SaveResult":
        return cls(SaveStatus.DUPLICATE)


@dataclass(slots=True)
class FeedTally:
    """Per-feed counters for one round."""

    feed_url: str
    total: int = 0
    stored: int = 0
    duplicates: int = 0
    failed: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class RoundSummary:
    """Result of one pass over every configured feed."""

    started_at: datetime
    finished_at: datetime | None = None
    tallies: list[FeedTally] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(tally.total for tally in self.tallies)

    @property
    def stored(self) -> int:
        return sum(tally.stored for tally in self.tallies)

    @property
    def failed_feeds(self) -> list[str]:
        return [tally.feed_url for tally in self.tallies if not tally.ok]


__all__ = [
    "FeedTally",
    "Item",
    "ItemView",
    "MediaAttachment",
    "RoundSummary",
    "SaveResult",
    "SaveStatus",
    "Thumbnail",
]
