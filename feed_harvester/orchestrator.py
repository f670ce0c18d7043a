"""Harvester lifecycle: the polling state machine driving harvest rounds."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from threading import Lock, RLock
from typing import Callable, Iterable

import structlog

from .config import HarvesterSettings
from .engine import FeedFetcher, HarvestCycle, ItemStore, RecordNormalizer, RoundSummary, build_store
from .engine.harvest import FeedSource
from .errors import HarvesterStateError
from .scheduler import APSchedulerAdapter


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HarvesterState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


class Harvester:
    """Own the feed list, the store session and the repeating poll timer.

    ``start`` connects the store, runs one round synchronously and then arms
    the timer. ``stop`` is the only teardown path: it disarms the timer,
    waits for a round in flight and releases the fetcher and the store once.
    """

    def __init__(
        self,
        feeds: Iterable[str],
        interval_seconds: float,
        store: ItemStore,
        fetcher: FeedSource,
        normalizer: RecordNormalizer | None = None,
        scheduler: APSchedulerAdapter | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.feeds = list(feeds)
        self.interval_seconds = interval_seconds
        self.store = store
        self.fetcher = fetcher
        self.cycle = HarvestCycle(fetcher, store, normalizer)
        self.scheduler = scheduler or APSchedulerAdapter()
        self.clock = clock
        self.state = HarvesterState.STOPPED
        self.last_checked_at: datetime | None = None
        self.last_round: RoundSummary | None = None
        self.logger = structlog.get_logger("feed_harvester").bind(component="harvester")
        self._state_lock = RLock()
        self._round_lock = Lock()

    @classmethod
    def from_settings(cls, settings: HarvesterSettings, **overrides) -> "Harvester":
        store = overrides.pop("store", None) or build_store(settings)
        fetcher = overrides.pop("fetcher", None) or FeedFetcher(
            timeout=settings.fetch_timeout, user_agent=settings.user_agent
        )
        normalizer = overrides.pop("normalizer", None) or RecordNormalizer(settings.premium_field)
        return cls(
            settings.feeds,
            settings.interval_seconds,
            store=store,
            fetcher=fetcher,
            normalizer=normalizer,
            **overrides,
        )

    @property
    def is_running(self) -> bool:
        return self.state is HarvesterState.RUNNING

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> RoundSummary:
        """Connect, run the initial round and arm the timer.

        :class:`StoreConnectionError` propagates and leaves the harvester
        stopped with nothing scheduled. Any other failure of the initial
        round tears the harvester down before it propagates.
        """

        self._begin()
        self.logger.info(
            "harvester_started", feeds=len(self.feeds), interval_seconds=self.interval_seconds
        )
        try:
            summary = self.run_round()
        except BaseException:
            self.stop()
            raise
        with self._state_lock:
            if self.state is HarvesterState.RUNNING:
                self.scheduler.schedule_interval(self._scheduled_round, self.interval_seconds)
                self.scheduler.start()
        return summary

    def run_once(self) -> RoundSummary:
        """Connect, run exactly one round and tear down."""

        self._begin()
        try:
            return self.run_round()
        finally:
            self.stop()

    def stop(self) -> bool:
        """Tear down once; later calls are no-ops and return ``False``."""

        with self._state_lock:
            if self.state is not HarvesterState.RUNNING:
                return False
            self.state = HarvesterState.STOPPING
        self.logger.info("harvester_stopping")
        self.scheduler.shutdown(wait=True)
        self._round_lock.acquire()
        self._round_lock.release()
        close_fetcher = getattr(self.fetcher, "close", None)
        if callable(close_fetcher):
            close_fetcher()
        self.store.close()
        self.logger.info("harvester_stopped")
        return True

    def _begin(self) -> None:
        with self._state_lock:
            if self.state is not HarvesterState.STOPPED:
                raise HarvesterStateError(f"Cannot start a harvester that is {self.state.value}")
            self.store.connect()
            self.state = HarvesterState.RUNNING

    # ------------------------------------------------------------------
    # Rounds
    # ------------------------------------------------------------------
    def run_round(self) -> RoundSummary:
        """Harvest every configured feed in order and return the tallies."""

        with self._round_lock:
            started_at = self.clock()
            self.last_checked_at = started_at
            self.logger.info("round_started", feeds=len(self.feeds))
            summary = RoundSummary(started_at=started_at)
            for feed_url in self.feeds:
                summary.tallies.append(self.cycle.run(feed_url))
            summary.finished_at = self.clock()
            self.last_round = summary
            self.logger.info(
                "round_completed",
                stored=summary.stored,
                total=summary.total,
                failed_feeds=len(summary.failed_feeds),
            )
            return summary

    def _scheduled_round(self) -> None:
        if not self.is_running:
            return
        self.run_round()


__all__ = ["Harvester", "HarvesterState"]
