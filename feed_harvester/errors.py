"""Exception hierarchy shared by the harvesting pipeline."""

from __future__ import annotations


class HarvesterError(Exception):
    """Base class for every error raised by feed_harvester."""


class ConfigError(HarvesterError):
    """Settings could not be loaded or failed validation."""


class NormalizationError(HarvesterError):
    """A raw entry is malformed beyond recovery."""


class FeedFetchError(HarvesterError):
    """One feed could not be fetched or parsed during a round."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class StorageError(HarvesterError):
    """Persistence failure unrelated to a uniqueness constraint."""


class StoreConnectionError(StorageError):
    """The store session could not be established."""


class HarvesterStateError(HarvesterError):
    """An operation was attempted in the wrong lifecycle state."""


__all__ = [
    "ConfigError",
    "FeedFetchError",
    "HarvesterError",
    "HarvesterStateError",
    "NormalizationError",
    "StorageError",
    "StoreConnectionError",
]
