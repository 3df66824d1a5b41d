from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from datastore.base import RealtimeStore
from datastore.firebase import FirebaseRealtimeStore
from datastore.mock_realtime_db import MockRealtimeStore
from settings import get_settings


@lru_cache
def build_default_store(backend: Optional[str] = None) -> RealtimeStore:
    """Process-wide store client selected by ``SIGNAL_STORE_BACKEND``."""
    settings = get_settings()
    selected = settings.store_backend if backend is None else backend
    if selected == "firebase":
        if not settings.database_url:
            raise RuntimeError("FIREBASE_DATABASE_URL must be set for the firebase backend.")
        return FirebaseRealtimeStore(database_url=settings.database_url, api_key=settings.api_key)
    path = settings.mock_persistence_path
    return MockRealtimeStore(persistence_path=Path(path) if path else None)
