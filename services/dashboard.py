"""Keeps a live dashboard state in sync with the realtime store."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from functools import lru_cache
from threading import Event, Lock, Thread
from typing import Callable, List, Optional

from models.records import Snapshot, zero_snapshot
from services.readings import ReadingService, Subscription, build_default_service
from settings import get_settings

logger = logging.getLogger(__name__)

CONNECTION_ERROR = "Failed to connect to the realtime database"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DashboardState:
    """Everything the presentation layer renders. Replaced whole, never mutated."""

    snapshot: Snapshot
    loading: bool = False
    error: Optional[str] = None
    last_updated: Optional[datetime] = None
    connected: bool = False


class DashboardController:
    """Initial load, push updates, manual refresh and a polling fallback.

    ``mount`` starts everything and ``teardown`` stops it; a controller is
    mounted at most once. Results that arrive after teardown are dropped.
    """

    def __init__(
        self,
        service: ReadingService,
        poll_interval: float = 30.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.service = service
        self.poll_interval = poll_interval
        self._clock = clock
        self._state = DashboardState(snapshot=zero_snapshot(), loading=True)
        self._lock = Lock()
        self._mounted = False
        self._torn_down = False
        self._subscription: Optional[Subscription] = None
        self._initial_load: Optional[Future[DashboardState]] = None
        self._stop = Event()
        self._poller: Optional[Thread] = None
        self._loader = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dashboard-load")

    @property
    def state(self) -> DashboardState:
        with self._lock:
            return self._state

    @property
    def mounted(self) -> bool:
        with self._lock:
            return self._mounted

    def mount(self) -> Future[DashboardState]:
        """Start the initial load, the change subscription and the fallback poller."""
        with self._lock:
            if self._torn_down:
                raise RuntimeError("Dashboard controller has already been torn down.")
            if self._initial_load is not None:
                return self._initial_load
            self._mounted = True
            self._state = replace(self._state, loading=True)
            self._initial_load = self._loader.submit(self._load)
            self._poller = Thread(target=self._poll, name="dashboard-poll", daemon=True)
            self._poller.start()
            initial_load = self._initial_load

        try:
            subscription: Optional[Subscription] = self.service.subscribe(self._apply_push)
        except Exception as exc:  # noqa: BLE001 - the poller covers a missing subscription
            logger.warning(
                "Live updates unavailable; relying on polling",
                extra={"reason": str(exc), "poll_interval": self.poll_interval},
            )
            subscription = None

        with self._lock:
            still_mounted = self._mounted
            if still_mounted:
                self._subscription = subscription
        if not still_mounted:
            self.service.unsubscribe(subscription)
        logger.info("Dashboard mounted", extra={"poll_interval": self.poll_interval})
        return initial_load

    def refresh(self) -> DashboardState:
        """Manual refresh; safe to call concurrently, the last response wins."""
        with self._lock:
            if self._mounted:
                self._state = replace(self._state, loading=True)
        return self._load()

    def teardown(self) -> None:
        """Stop updates. Safe before mount and safe to call more than once."""
        with self._lock:
            was_mounted = self._mounted
            self._mounted = False
            self._torn_down = True
            subscription, self._subscription = self._subscription, None
            self._poller = None
        self._stop.set()
        self.service.unsubscribe(subscription)
        self._loader.shutdown(wait=False, cancel_futures=True)
        if was_mounted:
            logger.info("Dashboard torn down")

    def _load(self) -> DashboardState:
        failures: List[Exception] = []
        snapshot = self.service.fetch_snapshot(on_error=failures.append)
        with self._lock:
            if not self._mounted:
                return self._state
            if failures:
                self._state = replace(
                    self._state, loading=False, error=CONNECTION_ERROR, connected=False
                )
            else:
                self._state = DashboardState(
                    snapshot=snapshot,
                    loading=False,
                    error=None,
                    last_updated=self._clock(),
                    connected=True,
                )
            state = self._state

        if failures:
            logger.warning("Dashboard load failed", extra={"reason": str(failures[0])})
        else:
            logger.debug(
                "Dashboard loaded", extra={"reading_count": len(snapshot.history)}
            )
        return state

    def _apply_push(self, snapshot: Snapshot) -> None:
        with self._lock:
            if not self._mounted:
                return
            self._state = DashboardState(
                snapshot=snapshot,
                loading=self._state.loading,
                error=None,
                last_updated=self._clock(),
                connected=True,
            )

    def _poll(self) -> None:
        while not self._stop.wait(self.poll_interval):
            with self._lock:
                if not self._mounted:
                    return
                connected = self._state.connected
            if not connected:
                logger.info(
                    "Live updates not flowing; polling",
                    extra={"poll_interval": self.poll_interval},
                )
                self._load()


@lru_cache
def build_default_controller() -> DashboardController:
    """Process-wide controller; the application lifespan mounts and tears it down."""
    settings = get_settings()
    return DashboardController(
        service=build_default_service(),
        poll_interval=settings.fallback_poll_seconds,
    )
