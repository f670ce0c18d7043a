"""Status/query service and HTTP surface."""

from .server import create_app
from .service import HealthView, StatusService, StatusView, TitlesQuery

__all__ = ["HealthView", "StatusService", "StatusView", "TitlesQuery", "create_app"]
