"""Pytest configuration providing shared fixtures and stub collaborators."""

from __future__ import annotations

import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from feed_harvester.config import HarvesterSettings, StoreBackend
from feed_harvester.engine import FetchedFeed, SQLiteItemStore
from feed_harvester.errors import FeedFetchError
from feed_harvester.scheduler import APSchedulerAdapter

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeFetcher:
    """Serve canned entries per feed URL; exceptions are raised as-is."""

    def __init__(self, feeds: dict[str, Any] | None = None, title: str = "Example Feed") -> None:
        self.feeds: dict[str, Any] = dict(feeds or {})
        self.title = title
        self.calls: list[str] = []
        self.closed = False

    def fetch(self, url: str) -> FetchedFeed:
        self.calls.append(url)
        payload = self.feeds.get(url)
        if payload is None:
            raise FeedFetchError(url, "not found")
        if isinstance(payload, Exception):
            raise payload
        return FetchedFeed(url=url, title=self.title, entries=list(payload))

    def close(self) -> None:
        self.closed = True


class StubScheduler:
    """Stand-in for APScheduler's BackgroundScheduler recording calls."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.jobs: list[dict] = []

    def add_job(self, callback, trigger, id, replace_existing, max_instances, coalesce):  # noqa: ANN001, A002
        job = {
            "id": id,
            "callback": callback,
            "trigger": trigger,
            "replace_existing": replace_existing,
            "max_instances": max_instances,
            "coalesce": coalesce,
        }
        self.jobs.append(job)
        self.calls.append({"event": "add_job", "id": id})

    def start(self):
        self.calls.append({"event": "started"})

    def shutdown(self, wait=True):
        self.calls.append({"event": "shutdown", "wait": wait})


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def make_entry() -> Callable[..., dict[str, Any]]:
    def _builder(guid: str | None = "g1", **overrides: Any) -> dict[str, Any]:
        base: dict[str, Any] = {
            "title": f"Item {guid}",
            "link": f"https://example.com/{guid}",
            "summary": f"Summary of {guid}",
        }
        if guid is not None:
            base["id"] = guid
        base.update(overrides)
        return base

    return _builder


@pytest.fixture
def sqlite_store(tmp_path: Path) -> Iterable[SQLiteItemStore]:
    store = SQLiteItemStore(tmp_path / "items.db")
    store.connect()
    yield store
    store.close()


@pytest.fixture
def stored_created_at() -> Callable[[SQLiteItemStore, str], datetime | None]:
    """Read the storage timestamp of ``guid`` straight from the database file."""

    def _lookup(store: SQLiteItemStore, guid: str) -> datetime | None:
        with closing(sqlite3.connect(store.path)) as conn:
            row = conn.execute("SELECT created_at FROM items WHERE guid = ?", (guid,)).fetchone()
        return None if row is None else datetime.fromisoformat(row[0])

    return _lookup


@pytest.fixture
def stub_scheduler() -> StubScheduler:
    return StubScheduler()


@pytest.fixture
def scheduler_adapter(stub_scheduler: StubScheduler) -> APSchedulerAdapter:
    return APSchedulerAdapter(scheduler=stub_scheduler)


@pytest.fixture
def sample_settings(tmp_path: Path) -> Callable[..., HarvesterSettings]:
    def _builder(**overrides: Any) -> HarvesterSettings:
        base: dict[str, Any] = {
            "feeds": ["https://a.example.com/rss", "https://b.example.com/rss"],
            "check_interval_ms": 60_000,
            "store_backend": StoreBackend.SQLITE,
            "sqlite_path": tmp_path / "items.db",
        }
        base.update(overrides)
        return HarvesterSettings(**base)

    return _builder


@pytest.fixture
def make_fetcher() -> type[FakeFetcher]:
    return FakeFetcher
