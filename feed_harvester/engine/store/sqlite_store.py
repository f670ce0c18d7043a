"""SQLite implementation of the deduplicating store."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock

import structlog

from ...errors import StorageError, StoreConnectionError
from ...infra.storage import SQLiteManager
from ..records import Item, ItemView, SaveResult, SaveStatus
from .base import ItemStore


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


class SQLiteItemStore(ItemStore):
    """Persist items in SQLite with UNIQUE guid and link columns."""

    def __init__(self, path: Path, manager: SQLiteManager | None = None) -> None:
        self.path = path
        self.manager = manager or SQLiteManager()
        self._conn: sqlite3.Connection | None = None
        self._lock = Lock()
        self.logger = structlog.get_logger("feed_harvester").bind(component="store", backend="sqlite")

    def connect(self) -> None:
        if self._conn is not None:
            return
        try:
            self._conn = self.manager.connect(self.path)
        except (sqlite3.Error, OSError) as exc:
            raise StoreConnectionError(f"Cannot open SQLite store at {self.path}: {exc}") from exc
        self.logger.info("store_connected", path=str(self.path))

    def save(self, item: Item) -> SaveResult:
        conn = self._require_conn()
        created_at = datetime.now(timezone.utc)
        stored = item.model_copy(update={"created_at": created_at})
        payload = json.dumps(stored.model_dump(mode="json", by_alias=True), ensure_ascii=False)
        with self._lock:
            try:
                conn.execute(
                    """
                    INSERT INTO items(guid, link, title, description, categories, pub_date, feed_url, created_at, payload)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        item.guid,
                        item.link,
                        item.title,
                        item.description,
                        json.dumps(item.categories, ensure_ascii=False),
                        _iso(item.published_at),
                        item.feed_url,
                        _iso(created_at),
                        payload,
                    ),
                )
                conn.commit()
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                if "UNIQUE constraint failed" in str(exc):
                    self.logger.debug("item_duplicate", title=item.title, guid=item.guid)
                    return SaveResult.duplicate()
                raise StorageError(f"Failed to store {item.link or item.guid}: {exc}") from exc
            except sqlite3.Error as exc:
                conn.rollback()
                raise StorageError(f"Failed to store {item.link or item.guid}: {exc}") from exc
        self.logger.info("item_stored", title=item.title, guid=item.guid)
        return SaveResult(SaveStatus.STORED, created_at)

    def count(self) -> int:
        conn = self._require_conn()
        with self._lock:
            try:
                row = conn.execute("SELECT COUNT(*) AS total FROM items").fetchone()
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to count items: {exc}") from exc
        return int(row["total"])

    def query(
        self,
        title: str | None = None,
        category: str | None = None,
        limit: int | None = None,
    ) -> list[ItemView]:
        conn = self._require_conn()
        clauses: list[str] = []
        params: list[object] = []
        if title:
            clauses.append("instr(lower(title), ?) > 0")
            params.append(title.lower())
        if category:
            clauses.append(
                "EXISTS (SELECT 1 FROM json_each(items.categories) AS cat "
                "WHERE instr(lower(cat.value), ?) > 0)"
            )
            params.append(category.lower())
        sql = "SELECT title, description, categories, pub_date FROM items"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY pub_date DESC, id DESC"
        if limit:
            sql += " LIMIT ?"
            params.append(int(limit))
        with self._lock:
            try:
                rows = conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to query items: {exc}") from exc
        return [
            ItemView(
                title=row["title"],
                description=row["description"],
                categories=json.loads(row["categories"] or "[]"),
                pubDate=row["pub_date"],
            )
            for row in rows
        ]

    def close(self) -> None:
        if self._conn is not None:
            self.manager.release(self.path)
            self._conn = None
            self.logger.info("store_closed")

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError("SQLiteItemStore is not connected")
        return self._conn


__all__ = ["SQLiteItemStore"]
