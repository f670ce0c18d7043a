"""Deduplicating store contract."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..records import Item, ItemView, SaveResult

DISPLAY_FIELDS = ("title", "description", "categories", "pubDate")


class ItemStore(ABC):
    """Insert-if-absent persistence keyed on ``guid`` and ``link``.

    ``save`` reports a uniqueness rejection as ``SaveStatus.DUPLICATE``;
    only unrelated persistence failures raise :class:`StorageError`.
    """

    @abstractmethod
    def connect(self) -> None:
        """Open the session and ensure both uniqueness constraints exist."""

    @abstractmethod
    def save(self, item: Item) -> SaveResult:
        """Store ``item`` unless its guid or link is already present."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored items."""

    @abstractmethod
    def query(
        self,
        title: str | None = None,
        category: str | None = None,
        limit: int | None = None,
    ) -> list[ItemView]:
        """Return display views matching case-insensitive substring filters."""

    @abstractmethod
    def close(self) -> None:
        """Release the session. Safe to call more than once."""

    def __enter__(self) -> "ItemStore":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["DISPLAY_FIELDS", "ItemStore"]
