"""Configuration loading helpers for the feed harvester."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from ..errors import ConfigError
from .models import HarvesterSettings

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
CONFIG_FILE_ENV = "FEED_HARVESTER_CONFIG"
HOME_ENV = "FEED_HARVESTER_HOME"

# Environment variable -> settings field.
ENV_FIELDS = {
    "MONGODB_URI": "mongodb_uri",
    "DB_NAME": "db_name",
    "COLLECTION_NAME": "collection_name",
    "RSS_FEEDS": "feeds",
    "CHECK_INTERVAL": "check_interval_ms",
    "HOST": "host",
    "PORT": "port",
    "STORE_BACKEND": "store_backend",
    "SQLITE_PATH": "sqlite_path",
    "FETCH_TIMEOUT": "fetch_timeout",
    "USER_AGENT": "user_agent",
    "PREMIUM_FIELD": "premium_field",
    "LOG_VERBOSE": "verbose",
}


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {path}")
    return data


@dataclass(slots=True)
class ConfigLocator:
    """Resolve data and log directories from the project home."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path.cwd()).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def default_sqlite_path(self) -> Path:
        return self.data_dir / "items.db"


def load_settings(
    environ: Mapping[str, str] | None = None,
    config_path: Path | None = None,
    *,
    locator: ConfigLocator | None = None,
    use_dotenv: bool = True,
) -> HarvesterSettings:
    """Build settings from defaults, an optional config file and the environment."""

    if environ is None:
        if use_dotenv:
            load_dotenv()
        environ = os.environ
    locator = locator or ConfigLocator()

    payload: dict = {}
    file_hint = config_path or environ.get(CONFIG_FILE_ENV)
    if file_hint:
        path = Path(file_hint).expanduser()
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")
        if path.suffix not in CONFIG_EXTENSIONS:
            raise ConfigError(f"Unsupported configuration format: {path.suffix}")
        payload.update(_read_file(path))

    for env_name, field_name in ENV_FIELDS.items():
        raw = environ.get(env_name)
        if raw is not None and raw.strip():
            payload[field_name] = raw.strip()

    try:
        settings = HarvesterSettings.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc

    if settings.sqlite_path is None:
        settings.sqlite_path = locator.default_sqlite_path()
    elif not settings.sqlite_path.is_absolute():
        settings.sqlite_path = (locator.project_root / settings.sqlite_path).resolve()
    return settings


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ENV_FIELDS", "load_settings"]
