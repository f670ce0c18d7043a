"""Pydantic models describing harvester configuration."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from .. import __version__

DEFAULT_FEEDS = [
    "https://feeds.feedburner.com/TechCrunch",
    "https://rss.cnn.com/rss/edition.rss",
]


class StoreBackend(str, Enum):
    """Persistence engines the deduplicating store can run on."""

    MONGODB = "mongodb"
    SQLITE = "sqlite"


class HarvesterSettings(BaseModel):
    """Full runtime configuration for one harvester process."""

    mongodb_uri: str = "mongodb://localhost:27017"
    db_name: str = "rss_harvest"
    collection_name: str = "rss_items"
    feeds: list[str] = Field(default_factory=lambda: list(DEFAULT_FEEDS))
    check_interval_ms: int = 300_000
    host: str = "0.0.0.0"
    port: int = 3000
    store_backend: StoreBackend = StoreBackend.MONGODB
    sqlite_path: Path | None = None
    fetch_timeout: float = 20.0
    user_agent: str = f"feed-harvester/{__version__}"
    premium_field: str = "bild_premium"
    verbose: bool = False

    @field_validator("feeds", mode="before")
    @classmethod
    def _split_feeds(cls, value: Any) -> list[str]:
        if value is None:
            return list(DEFAULT_FEEDS)
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple)):
            raise ValueError("feeds expects a comma-separated string or a list")
        feeds = [str(item).strip() for item in value if str(item).strip()]
        return feeds or list(DEFAULT_FEEDS)

    @field_validator("sqlite_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path | None:
        if value in (None, ""):
            return None
        return Path(value)

    @model_validator(mode="after")
    def _validate_ranges(self) -> "HarvesterSettings":
        if self.check_interval_ms <= 0:
            raise ValueError("check_interval_ms must be > 0")
        if not 0 < self.port < 65536:
            raise ValueError("port must be between 1 and 65535")
        if self.fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be > 0")
        for url in self.feeds:
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"Unsupported feed URL: {url}")
        return self

    @property
    def interval_seconds(self) -> float:
        return self.check_interval_ms / 1000


__all__ = ["DEFAULT_FEEDS", "HarvesterSettings", "StoreBackend"]
