"""Configuration for sessiondb.

Loads configuration from:
1. sessiondb.yaml (collection, field names, lifetime, connection)
2. Environment variables (.env)

Environment variables are applied on top of these values by
``sessiondb.session.create_session_store``.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from sessiondb.exceptions import SessionConfigurationError

CONFIG_FILENAME = "sessiondb.yaml"


@dataclass(frozen=True)
class SessionConfig:
    """Session collection configuration."""
    database: str | None = None  # Required by the store
    collection: str | None = None  # Required by the store
    id_field: str = "sess_id"
    data_field: str = "sess_data"
    time_field: str = "sess_time"
    created_field: str = "created_at"
    lifetime: int = 1440  # Seconds a record survives gc without a write


@dataclass(frozen=True)
class MongoConfig:
    """MongoDB client configuration."""
    url: str = "mongodb://localhost:27017"
    timeout_ms: int = 5000  # serverSelectionTimeoutMS and socketTimeoutMS


@dataclass(frozen=True)
class AdvancedConfig:
    """Technical settings."""
    log_level: str = "INFO"


@dataclass(frozen=True)
class Settings:
    """Complete sessiondb configuration."""
    project_root: Path
    session: SessionConfig
    mongo: MongoConfig
    advanced: AdvancedConfig


def _find_project_root() -> Path:
    """Find project root by looking for sessiondb.yaml or a .env file."""
    current = Path.cwd().resolve()

    for path in [current] + list(current.parents):
        if (path / CONFIG_FILENAME).exists():
            return path
        if (path / ".env").exists():
            return path

    return current


def _load_yaml_config(path: Path) -> dict[str, Any]:
    """Load and parse YAML config file."""
    if not path.exists():
        return {}

    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _as_int(value: Any, name: str, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as err:
        raise SessionConfigurationError(f"{name} must be an integer, got {value!r}") from err


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def load_settings() -> Settings:
    """Load sessiondb configuration.

    Process:
    1. Find project root
    2. Load .env file
    3. Load sessiondb.yaml (if exists)
    4. Build Settings object
    """
    project_root = _find_project_root()

    env_file = project_root / ".env"
    if env_file.exists():
        load_dotenv(env_file)

    config = _load_yaml_config(project_root / CONFIG_FILENAME)

    session_config = config.get("session") or {}
    defaults = SessionConfig()
    session = SessionConfig(
        database=_optional_str(session_config.get("database")),
        collection=_optional_str(session_config.get("collection")),
        id_field=str(session_config.get("id_field") or defaults.id_field),
        data_field=str(session_config.get("data_field") or defaults.data_field),
        time_field=str(session_config.get("time_field") or defaults.time_field),
        created_field=str(session_config.get("created_field") or defaults.created_field),
        lifetime=_as_int(session_config.get("lifetime"), "session.lifetime", defaults.lifetime),
    )

    mongo_config = config.get("mongo") or {}
    mongo = MongoConfig(
        url=str(mongo_config.get("url") or MongoConfig.url),
        timeout_ms=_as_int(mongo_config.get("timeout_ms"), "mongo.timeout_ms", MongoConfig.timeout_ms),
    )

    advanced_config = config.get("advanced") or {}
    advanced = AdvancedConfig(
        log_level=str(advanced_config.get("log_level", "INFO")),
    )

    return Settings(
        project_root=project_root,
        session=session,
        mongo=mongo,
        advanced=advanced,
    )
