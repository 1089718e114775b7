from __future__ import annotations

import json
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional


_DATABASE_URL_ENV = "DATABASE_URL"
_DB_HOST_ENV = "DB_HOST"
_DB_PORT_ENV = "DB_PORT"
_DB_USER_ENV = "DB_USER"
_DB_PASSWORD_ENV = "DB_PASSWORD"
_DB_NAME_ENV = "DB_NAME"
_CONFIG_PATH_ENV = "IOT_CONFIG_PATH"
_SQL_ECHO_ENV = "SQL_ECHO"
_STATEMENT_TIMEOUT_ENV = "DB_STATEMENT_TIMEOUT_MS"
_CREATE_SCHEMA_ENV = "DB_CREATE_SCHEMA"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_DATABASE_DEFAULTS = {
    "host": "localhost",
    "port": "5432",
    "user": "postgres",
    "pass": "postgres",
    "db": "iot_platform",
}


@dataclass(frozen=True)
class Settings:
    database_url: str
    sql_echo: bool
    statement_timeout_ms: int
    create_schema: bool
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if not candidate:
        return default
    if candidate in {"1", "true", "yes", "on"}:
        return True
    if candidate in {"0", "false", "no", "off"}:
        return False
    return default


def _read_timeout(default: int) -> int:
    value = os.getenv(_STATEMENT_TIMEOUT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def _load_database_section(path: Optional[str]) -> Dict[str, str]:
    """Read the ``database`` section of a JSON config file, ignoring bad files."""
    if not path:
        return {}
    try:
        raw: Any = json.loads(Path(path).read_text() or "{}")
    except (OSError, json.JSONDecodeError):
        return {}
    if not isinstance(raw, dict):
        return {}
    section = raw.get("database")
    if not isinstance(section, dict):
        return {}
    return {
        key: str(value).strip()
        for key, value in section.items()
        if key in _DATABASE_DEFAULTS and value is not None and str(value).strip()
    }


def _read_database_url() -> str:
    explicit = os.getenv(_DATABASE_URL_ENV)
    if explicit is not None and explicit.strip():
        return explicit.strip()

    file_values = _load_database_section(os.getenv(_CONFIG_PATH_ENV))
    merged = {**_DATABASE_DEFAULTS, **file_values}
    host = _read_str_env(_DB_HOST_ENV, merged["host"])
    port = _read_str_env(_DB_PORT_ENV, merged["port"])
    user = _read_str_env(_DB_USER_ENV, merged["user"])
    password = _read_str_env(_DB_PASSWORD_ENV, merged["pass"])
    name = _read_str_env(_DB_NAME_ENV, merged["db"])
    return f"postgresql://{user}:{password}@{host}:{port}/{name}"


@lru_cache
def get_settings() -> Settings:
    return Settings(
        database_url=_read_database_url(),
        sql_echo=_read_bool_env(_SQL_ECHO_ENV, False),
        statement_timeout_ms=_read_timeout(0),
        create_schema=_read_bool_env(_CREATE_SCHEMA_ENV, True),
        log_level=_read_log_level("INFO"),
    )
