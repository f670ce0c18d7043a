from __future__ import annotations

import threading
import time

import pytest
from bson.errors import InvalidDocument
from pydantic import ValidationError

from feed_harvester.engine import FetchedFeed
from feed_harvester.engine.records import Item
from feed_harvester.engine.store import SQLiteItemStore
from feed_harvester.errors import HarvesterStateError, StorageError, StoreConnectionError
from feed_harvester.orchestrator import Harvester, HarvesterState
from feed_harvester.scheduler import POLL_JOB_ID

FEED_A = "https://a.example.com/rss"
FEED_B = "https://b.example.com/rss"


@pytest.fixture
def harvester_factory(sqlite_store, scheduler_adapter, fixed_clock):
    def _build(fetcher, feeds=(FEED_A, FEED_B), store=None) -> Harvester:
        return Harvester(
            feeds,
            interval_seconds=60,
            store=store or sqlite_store,
            fetcher=fetcher,
            scheduler=scheduler_adapter,
            clock=fixed_clock,
        )

    return _build


def test_start_runs_initial_round_then_arms_timer(
    harvester_factory, make_fetcher, make_entry, stub_scheduler, fixed_clock
) -> None:
    fetcher = make_fetcher({FEED_A: [make_entry("g1")], FEED_B: [make_entry("g2"), make_entry("g3")]})
    harvester = harvester_factory(fetcher)

    summary = harvester.start()

    assert harvester.state is HarvesterState.RUNNING
    assert fetcher.calls == [FEED_A, FEED_B]
    assert [(t.feed_url, t.stored, t.total) for t in summary.tallies] == [(FEED_A, 1, 1), (FEED_B, 2, 2)]
    assert harvester.last_checked_at == fixed_clock()
    assert harvester.last_round is summary
    job = stub_scheduler.jobs[0]
    assert job["id"] == POLL_JOB_ID
    assert job["trigger"].interval.total_seconds() == 60
    assert job["max_instances"] == 1
    assert job["coalesce"] is True
    assert [call["event"] for call in stub_scheduler.calls] == ["add_job", "started"]
    harvester.stop()


def test_feed_failure_does_not_abort_round(harvester_factory, make_fetcher, make_entry, sqlite_store) -> None:
    fetcher = make_fetcher({FEED_B: [make_entry("g1"), make_entry("g2")]})
    harvester = harvester_factory(fetcher)

    summary = harvester.start()

    tally_a, tally_b = summary.tallies
    assert (tally_a.total, tally_a.stored) == (0, 0)
    assert tally_a.error == "not found"
    assert (tally_b.total, tally_b.stored) == (2, 2)
    assert summary.failed_feeds == [FEED_A]
    assert sqlite_store.count() == 2
    harvester.stop()


def test_scheduled_round_is_idempotent_for_unchanged_feeds(
    harvester_factory, make_fetcher, make_entry, stub_scheduler, sqlite_store, stored_created_at
) -> None:
    fetcher = make_fetcher({FEED_A: [make_entry("g1"), make_entry("g2")]})
    harvester = harvester_factory(fetcher, feeds=[FEED_A])
    harvester.start()
    first_created = stored_created_at(sqlite_store, "g1")

    stub_scheduler.jobs[0]["callback"]()

    assert (harvester.last_round.stored, harvester.last_round.total) == (0, 2)
    assert sqlite_store.count() == 2
    assert stored_created_at(sqlite_store, "g1") == first_created
    harvester.stop()


def test_start_twice_is_rejected(harvester_factory, make_fetcher) -> None:
    harvester = harvester_factory(make_fetcher({}))
    harvester.start()

    with pytest.raises(HarvesterStateError):
        harvester.start()
    harvester.stop()


def test_stop_tears_down_exactly_once(harvester_factory, make_fetcher, stub_scheduler, sqlite_store) -> None:
    fetcher = make_fetcher({})
    harvester = harvester_factory(fetcher)
    harvester.start()

    assert harvester.stop() is True
    assert harvester.stop() is False

    assert harvester.state is HarvesterState.STOPPING
    assert not harvester.is_running
    assert fetcher.closed
    assert [call for call in stub_scheduler.calls if call["event"] == "shutdown"] == [
        {"event": "shutdown", "wait": True}
    ]
    with pytest.raises(StorageError):
        sqlite_store.count()


def test_stop_before_start_is_noop(harvester_factory, make_fetcher, sqlite_store) -> None:
    harvester = harvester_factory(make_fetcher({}))

    assert harvester.stop() is False
    assert harvester.state is HarvesterState.STOPPED
    assert sqlite_store.count() == 0


def test_timer_firing_after_stop_does_nothing(harvester_factory, make_fetcher, make_entry, stub_scheduler) -> None:
    fetcher = make_fetcher({FEED_A: [make_entry("g1")]})
    harvester = harvester_factory(fetcher, feeds=[FEED_A])
    harvester.start()
    harvester.stop()

    stub_scheduler.jobs[0]["callback"]()

    assert fetcher.calls == [FEED_A]


def test_connection_failure_is_fatal_and_schedules_nothing(make_fetcher, scheduler_adapter, stub_scheduler) -> None:
    class DownStore(SQLiteItemStore):
        def connect(self) -> None:
            raise StoreConnectionError("cannot reach store")

    fetcher = make_fetcher({})
    harvester = Harvester([FEED_A], 60, store=DownStore(None), fetcher=fetcher, scheduler=scheduler_adapter)

    with pytest.raises(StoreConnectionError):
        harvester.start()

    assert harvester.state is HarvesterState.STOPPED
    assert fetcher.calls == []
    assert stub_scheduler.calls == []


def test_run_once_connects_polls_and_tears_down(harvester_factory, make_fetcher, make_entry, stub_scheduler, sqlite_store) -> None:
    fetcher = make_fetcher({FEED_A: [make_entry("g1")], FEED_B: [make_entry("g2")]})
    harvester = harvester_factory(fetcher)

    summary = harvester.run_once()

    assert (summary.stored, summary.total) == (2, 2)
    assert stub_scheduler.jobs == []
    assert fetcher.closed
    assert harvester.state is HarvesterState.STOPPING


def test_stop_waits_for_round_in_flight(tmp_path, scheduler_adapter, make_entry, fixed_clock) -> None:
    release = threading.Event()
    entered = threading.Event()

    class BlockingFetcher:
        def fetch(self, url):  # noqa: ANN001
            entered.set()
            release.wait(5)
            return FetchedFeed(url=url, title="Slow", entries=[make_entry("g1")])

    store = SQLiteItemStore(tmp_path / "items.db")
    harvester = Harvester([FEED_A], 60, store=store, fetcher=BlockingFetcher(), scheduler=scheduler_adapter, clock=fixed_clock)
    harvester._begin()
    results = []
    round_thread = threading.Thread(target=lambda: results.append(harvester.run_round()))
    round_thread.start()
    assert entered.wait(5)

    stop_thread = threading.Thread(target=harvester.stop)
    stop_thread.start()
    time.sleep(0.1)
    assert stop_thread.is_alive()

    release.set()
    round_thread.join(5)
    stop_thread.join(5)

    assert not stop_thread.is_alive()
    assert results[0].stored == 1
    with pytest.raises(StorageError):
        store.count()


def test_from_settings_wires_configured_collaborators(sample_settings, make_fetcher) -> None:
    settings = sample_settings(premium_field="paywall", check_interval_ms=1500)

    harvester = Harvester.from_settings(settings, fetcher=make_fetcher({}))

    assert harvester.feeds == settings.feeds
    assert harvester.interval_seconds == 1.5
    assert isinstance(harvester.store, SQLiteItemStore)
    assert harvester.cycle.normalizer.premium_field == "paywall"


def test_items_are_not_mutated_between_rounds(harvester_factory, make_fetcher, make_entry, sqlite_store) -> None:
    entry = make_entry("g1", title="Original")
    fetcher = make_fetcher({FEED_A: [entry]})
    harvester = harvester_factory(fetcher, feeds=[FEED_A])
    harvester.start()

    fetcher.feeds[FEED_A] = [make_entry("g1", title="Edited upstream")]
    harvester.run_round()

    assert [view.title for view in sqlite_store.query()] == ["Original"]
    harvester.stop()


def test_item_model_is_immutable() -> None:
    item = Item(guid="g1", link="https://example.com/g1", published_at="2024-01-01T00:00:00Z")

    with pytest.raises(ValidationError):
        item.title = "changed"  # type: ignore[misc]


def test_unencodable_item_does_not_abort_round(
    harvester_factory, make_fetcher, make_entry, stub_scheduler, sqlite_store
) -> None:
    class RejectingStore(SQLiteItemStore):
        def save(self, item):  # noqa: ANN001
            if item.guid == "a1":
                raise InvalidDocument("cannot encode object")
            return super().save(item)

    store = RejectingStore(sqlite_store.path)
    fetcher = make_fetcher({FEED_A: [make_entry("a1"), make_entry("a2")], FEED_B: [make_entry("b1")]})
    harvester = harvester_factory(fetcher, store=store)

    summary = harvester.start()

    assert fetcher.calls == [FEED_A, FEED_B]
    tally_a, tally_b = summary.tallies
    assert (tally_a.total, tally_a.stored, tally_a.failed) == (2, 1, 1)
    assert (tally_b.total, tally_b.stored) == (1, 1)
    assert harvester.state is HarvesterState.RUNNING
    assert [job["id"] for job in stub_scheduler.jobs] == [POLL_JOB_ID]
    harvester.stop()


def test_failed_initial_round_tears_down(make_fetcher, scheduler_adapter, stub_scheduler, tmp_path) -> None:
    def broken_clock():
        raise RuntimeError("clock unavailable")

    store = SQLiteItemStore(tmp_path / "items.db")
    fetcher = make_fetcher({})
    harvester = Harvester(
        [FEED_A], 60, store=store, fetcher=fetcher, scheduler=scheduler_adapter, clock=broken_clock
    )

    with pytest.raises(RuntimeError):
        harvester.start()

    assert harvester.state is HarvesterState.STOPPING
    assert fetcher.closed
    assert stub_scheduler.jobs == []
    with pytest.raises(StorageError):
        store.count()


def test_stop_during_initial_round_leaves_timer_unarmed(
    tmp_path, scheduler_adapter, stub_scheduler, make_entry, fixed_clock
) -> None:
    release = threading.Event()
    entered = threading.Event()

    class BlockingFetcher:
        def fetch(self, url):  # noqa: ANN001
            entered.set()
            release.wait(5)
            return FetchedFeed(url=url, title="Slow", entries=[make_entry("g1")])

    store = SQLiteItemStore(tmp_path / "items.db")
    harvester = Harvester(
        [FEED_A], 60, store=store, fetcher=BlockingFetcher(), scheduler=scheduler_adapter, clock=fixed_clock
    )
    summaries = []
    start_thread = threading.Thread(target=lambda: summaries.append(harvester.start()))
    start_thread.start()
    assert entered.wait(5)

    stop_thread = threading.Thread(target=harvester.stop)
    stop_thread.start()
    deadline = time.monotonic() + 5
    while harvester.state is not HarvesterState.STOPPING and time.monotonic() < deadline:
        time.sleep(0.01)
    assert harvester.state is HarvesterState.STOPPING

    release.set()
    start_thread.join(5)
    stop_thread.join(5)

    assert not start_thread.is_alive()
    assert not stop_thread.is_alive()
    assert summaries[0].stored == 1
    assert stub_scheduler.jobs == []
    assert "started" not in [call["event"] for call in stub_scheduler.calls]
    with pytest.raises(StorageError):
        store.count()
