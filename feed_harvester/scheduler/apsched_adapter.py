"""APScheduler wrapper exposing the repeating poll timer."""

from __future__ import annotations

from typing import Any, Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
import structlog

POLL_JOB_ID = "harvester::poll"


class APSchedulerAdapter:
    """Manage the APScheduler job driving polling rounds."""

    def __init__(self, scheduler: Any | None = None) -> None:
        self.scheduler = scheduler or BackgroundScheduler()
        self.logger = structlog.get_logger("feed_harvester").bind(component="scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self, wait: bool = True) -> None:
        """Stop firing; with ``wait`` the call blocks until a running job returns."""

        if self.started:
            self.scheduler.shutdown(wait=wait)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_interval(
        self,
        callback: Callable[[], Any],
        seconds: float,
        job_id: str = POLL_JOB_ID,
    ) -> None:
        trigger = self._build_trigger(seconds)
        # one instance at a time: a late round is coalesced, never overlapped
        self.scheduler.add_job(
            callback,
            trigger=trigger,
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info("job_scheduled", job=job_id, interval_seconds=seconds)

    @staticmethod
    def _build_trigger(seconds: float) -> IntervalTrigger:
        if seconds <= 0:
            raise ValueError("Interval must be a positive number of seconds")
        return IntervalTrigger(seconds=float(seconds))


__all__ = ["APSchedulerAdapter", "POLL_JOB_ID"]
