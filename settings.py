from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_STORE_BACKEND_ENV = "SIGNAL_STORE_BACKEND"
_DATABASE_URL_ENV = "FIREBASE_DATABASE_URL"
_API_KEY_ENV = "FIREBASE_API_KEY"
_CONTAINER_KEY_ENV = "SIGNAL_CONTAINER_KEY"
_LATEST_KEY_ENV = "SIGNAL_LATEST_KEY"
_MOCK_PATH_ENV = "MOCK_STORE_PERSISTENCE_PATH"
_POLL_SECONDS_ENV = "FALLBACK_POLL_SECONDS"
_WORKER_COUNT_ENV = "FETCH_WORKER_COUNT"
_LOG_LEVEL_ENV = "LOG_LEVEL"
_TIMESTAMP_FORMAT_ENV = "TIMESTAMP_FORMAT"

_BACKENDS = {"firebase", "mock"}


@dataclass(frozen=True)
class Settings:
    store_backend: str
    database_url: Optional[str]
    api_key: Optional[str]
    container_key: str
    latest_key: str
    mock_persistence_path: Optional[str]
    fallback_poll_seconds: float
    fetch_workers: int
    log_level: str
    timestamp_format: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_backend(default: str) -> str:
    candidate = _read_str_env(_STORE_BACKEND_ENV, default).lower()
    return candidate if candidate in _BACKENDS else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_worker_count(default: int) -> int:
    value = os.getenv(_WORKER_COUNT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        store_backend=_read_backend("mock"),
        database_url=_read_optional_env(_DATABASE_URL_ENV, None),
        api_key=_read_optional_env(_API_KEY_ENV, None),
        container_key=_read_str_env(_CONTAINER_KEY_ENV, "heltec-packets"),
        latest_key=_read_str_env(_LATEST_KEY_ENV, "latest"),
        mock_persistence_path=_read_optional_env(_MOCK_PATH_ENV, "./tmp/mock_rtdb.json"),
        fallback_poll_seconds=_read_positive_float(_POLL_SECONDS_ENV, 30.0),
        fetch_workers=_read_worker_count(2),
        log_level=_read_log_level("INFO"),
        timestamp_format=_read_str_env(_TIMESTAMP_FORMAT_ENV, "%Y-%m-%d %H:%M:%S"),
    )
