"""Deduplicating store contract and backends."""

from __future__ import annotations

from ...config import ConfigLocator, HarvesterSettings, StoreBackend
from .base import DISPLAY_FIELDS, ItemStore
from .mongo_store import MongoItemStore
from .sqlite_store import SQLiteItemStore


def build_store(settings: HarvesterSettings) -> ItemStore:
    """Return the store backend selected in ``settings``."""

    if settings.store_backend is StoreBackend.SQLITE:
        return SQLiteItemStore(settings.sqlite_path or ConfigLocator().default_sqlite_path())
    return MongoItemStore(
        settings.mongodb_uri,
        database=settings.db_name,
        collection=settings.collection_name,
    )


__all__ = ["DISPLAY_FIELDS", "ItemStore", "MongoItemStore", "SQLiteItemStore", "build_store"]
