from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

from domain.errors import ConfigError

BACKENDS = ("sqlite", "postgres")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class Settings:
    db_backend: str = "sqlite"
    db_path: str = "poker.db"
    pg_params: dict = field(default_factory=dict)
    discord_token: Optional[str] = None
    log_level: str = "INFO"
    log_json: bool = False


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def settings_from_env(env: Mapping[str, str]) -> Settings:
    """Build `Settings` from an environment mapping, validating as it goes."""

    backend = env.get("DB_BACKEND", "sqlite").strip().lower()
    if backend not in BACKENDS:
        raise ConfigError(f"DB_BACKEND must be one of {', '.join(BACKENDS)}, got {backend!r}.")

    log_level = env.get("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}.")

    pg_params = {}
    if backend == "postgres":
        port = env.get("PG_PORT", "5432")
        if not port.isdigit():
            raise ConfigError(f"PG_PORT must be a number, got {port!r}.")
        pg_params = {
            "host": env.get("PG_HOST", "localhost"),
            "port": int(port),
            "dbname": env.get("PG_DBNAME", "poker"),
            "user": env.get("PG_USER", "postgres"),
            "password": env.get("PG_PASSWORD", ""),
        }

    return Settings(
        db_backend=backend,
        db_path=env.get("DB_PATH", "poker.db"),
        pg_params=pg_params,
        discord_token=env.get("DISCORD_TOKEN") or None,
        log_level=log_level,
        log_json=_as_bool(env.get("LOG_JSON", "false")),
    )


def load_settings() -> Settings:
    """Read `.env` (if present) into the process environment, then parse it."""

    load_dotenv()
    return settings_from_env(os.environ)
