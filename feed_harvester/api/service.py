"""Read-only status and query views over the harvester and its store."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ..engine import ItemStore, ItemView
from ..orchestrator import Harvester


class HealthView(BaseModel):
    status: str
    feeds: int
    intervalSeconds: float


class StatusView(HealthView):
    lastCheckedAt: datetime | None = None
    itemsStored: int = 0


class TitlesQuery(BaseModel):
    title: str | None = None
    category: str | None = None
    limit: int | None = Field(default=None, ge=1)


class StatusService:
    """Expose liveness, status and listings without touching the write path.

    Store failures propagate as :class:`StorageError`; an empty result is an
    empty list.
    """

    def __init__(self, harvester: Harvester, store: ItemStore | None = None) -> None:
        self.harvester = harvester
        self.store = store or harvester.store

    def health(self) -> HealthView:
        return HealthView(
            status="running" if self.harvester.is_running else "stopped",
            feeds=len(self.harvester.feeds),
            intervalSeconds=self.harvester.interval_seconds,
        )

    def status(self) -> StatusView:
        health = self.health()
        return StatusView(
            **health.model_dump(),
            lastCheckedAt=self.harvester.last_checked_at,
            itemsStored=self.store.count(),
        )

    def titles(self, query: TitlesQuery | None = None) -> list[ItemView]:
        query = query or TitlesQuery()
        return self.store.query(
            title=query.title or None,
            category=query.category or None,
            limit=query.limit,
        )


__all__ = ["HealthView", "StatusService", "StatusView", "TitlesQuery"]
