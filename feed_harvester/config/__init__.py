"""Configuration package exports."""

from .loader import ConfigLocator, load_settings
from .models import DEFAULT_FEEDS, HarvesterSettings, StoreBackend

__all__ = [
    "ConfigLocator",
    "DEFAULT_FEEDS",
    "HarvesterSettings",
    "StoreBackend",
    "load_settings",
]
