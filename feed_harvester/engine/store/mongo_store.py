"""MongoDB implementation of the deduplicating store."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

import structlog
from bson.errors import InvalidDocument
from pymongo import DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from ...errors import StorageError, StoreConnectionError
from ..records import Item, ItemView, SaveResult, SaveStatus
from .base import DISPLAY_FIELDS, ItemStore


class MongoItemStore(ItemStore):
    """Write items into a MongoDB collection with unique guid/link indexes."""

    def __init__(
        self,
        uri: str,
        database: str,
        collection: str,
        *,
        server_selection_timeout_ms: int = 5000,
        client_factory=MongoClient,
    ) -> None:
        self.uri = uri
        self.database = database
        self.collection_name = collection
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self._client_factory = client_factory
        self.client: Any = None
        self.collection: Any = None
        self.logger = structlog.get_logger("feed_harvester").bind(component="store", backend="mongodb")

    def connect(self) -> None:
        if self.collection is not None:
            return
        try:
            client = self._client_factory(
                self.uri,
                serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                tz_aware=True,
            )
            client.admin.command("ping")
            collection = client[self.database][self.collection_name]
            collection.create_index("guid", unique=True)
            collection.create_index("link", unique=True)
        except PyMongoError as exc:
            self.logger.error("store_connect_failed", uri=self.uri, error=str(exc))
            raise StoreConnectionError(f"Cannot connect to MongoDB at {self.uri}: {exc}") from exc
        self.client = client
        self.collection = collection
        self.logger.info("store_connected", database=self.database, collection=self.collection_name)

    def save(self, item: Item) -> SaveResult:
        collection = self._require_collection()
        created_at = datetime.now(timezone.utc)
        document = item.model_copy(update={"created_at": created_at}).to_document()
        try:
            collection.insert_one(document)
        except DuplicateKeyError:
            self.logger.debug("item_duplicate", title=item.title, guid=item.guid)
            return SaveResult.duplicate()
        except (PyMongoError, InvalidDocument) as exc:
            raise StorageError(f"Failed to store {item.link or item.guid}: {exc}") from exc
        self.logger.info("item_stored", title=item.title, guid=item.guid)
        return SaveResult(SaveStatus.STORED, created_at)

    def count(self) -> int:
        collection = self._require_collection()
        try:
            return int(collection.count_documents({}))
        except PyMongoError as exc:
            raise StorageError(f"Failed to count items: {exc}") from exc

    def query(
        self,
        title: str | None = None,
        category: str | None = None,
        limit: int | None = None,
    ) -> list[ItemView]:
        collection = self._require_collection()
        criteria = self.build_filter(title, category)
        projection = {"_id": 0, **{name: 1 for name in DISPLAY_FIELDS}}
        try:
            cursor = collection.find(criteria, projection).sort("pubDate", DESCENDING)
            if limit:
                cursor = cursor.limit(limit)
            return [ItemView.model_validate(document) for document in cursor]
        except PyMongoError as exc:
            raise StorageError(f"Failed to query items: {exc}") from exc

    @staticmethod
    def build_filter(title: str | None, category: str | None) -> dict[str, Any]:
        criteria: dict[str, Any] = {}
        if title:
            criteria["title"] = {"$regex": re.escape(title), "$options": "i"}
        if category:
            # regex on an array field matches when any element matches
            criteria["categories"] = {"$regex": re.escape(category), "$options": "i"}
        return criteria

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.logger.info("store_closed")
        self.client = None
        self.collection = None

    def _require_collection(self):
        if self.collection is None:
            raise StorageError("MongoItemStore is not connected")
        return self.collection


__all__ = ["MongoItemStore"]
