"""FastAPI application serving the read-only HTTP surface."""

from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..engine import ItemView
from ..errors import StorageError
from .service import HealthView, StatusService, TitlesQuery


def create_app(service: StatusService) -> FastAPI:
    """Build the API around an existing :class:`StatusService`."""

    logger = structlog.get_logger("feed_harvester").bind(component="api")

    app = FastAPI(
        title="Feed Harvester",
        description="Status and stored items of the feed harvester",
        version=__version__,
    )
    app.state.service = service

    @app.exception_handler(StorageError)
    async def _storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("store_read_failed", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=503,
            content={"error": "storage_unavailable", "detail": str(exc)},
        )

    @app.exception_handler(Exception)
    async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("request_failed", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"error": "internal_error", "detail": str(exc)})

    @app.get("/healthcheck", response_model=HealthView)
    def healthcheck() -> HealthView:
        return service.health()

    @app.get("/status")
    def status() -> dict[str, Any]:
        # lastCheckedAt is omitted until the first round has run
        view = service.status()
        return view.model_dump(mode="json", exclude_none=True)

    @app.get("/titles", response_model=list[ItemView])
    def titles(
        search_title: Optional[str] = Query(default=None, alias="searchTitle"),
        search_category: Optional[str] = Query(default=None, alias="searchCategory"),
        limit: Optional[int] = Query(default=None, ge=1, le=1000),
    ) -> list[ItemView]:
        return service.titles(
            TitlesQuery(title=search_title, category=search_category, limit=limit)
        )

    return app


__all__ = ["create_app"]
