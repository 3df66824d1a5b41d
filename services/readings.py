"""Reading access: fetch, normalise, delete and watch readings in the realtime store."""

from __future__ import annotations

import logging
import math
import re
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import lru_cache
from threading import Lock
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple, TypeVar
from uuid import uuid4

from datastore.base import RealtimeStore, StoreEvent, Unsubscribe
from datastore.factory import build_default_store
from models.records import Reading, Snapshot, synthetic_reading, zero_snapshot
from services.errors import MalformedNumeric, StoreUnavailable
from services.timestamps import normalize, now_canonical
from settings import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")
ErrorHandler = Callable[[Exception], None]
SnapshotHandler = Callable[[Snapshot], None]

SIGNAL_A_FIELDS: Tuple[str, ...] = ("signalA", "RSSIbob")
SIGNAL_B_FIELDS: Tuple[str, ...] = ("signalB", "RSSIalice")

# Leading decimal number, so values such as "-55dBm" still yield a level.
_LEADING_NUMBER = re.compile(r"\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
# Characters the hosted store does not accept in keys.
_FORBIDDEN_KEY_CHARS = set("/.#$[]")


def _coerce_level(value: Any) -> float:
    if value is None or isinstance(value, bool):
        raise MalformedNumeric(f"Signal level {value!r} is not numeric")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if match is None:
            raise MalformedNumeric(f"Signal level {value!r} is not numeric")
        number = float(match.group(0))
    else:
        raise MalformedNumeric(f"Signal level {value!r} is not numeric")
    if not math.isfinite(number):
        raise MalformedNumeric(f"Signal level {value!r} is not finite")
    return number


def parse_level(value: Any) -> float:
    """Permissive signal level parsing: anything unusable becomes ``0.0``."""
    try:
        return _coerce_level(value)
    except MalformedNumeric:
        return 0.0


def compose_snapshot(current: Optional[Reading], history: Sequence[Reading]) -> Snapshot:
    if current is None:
        current = history[0] if history else synthetic_reading()
    return Snapshot(current=current, history=tuple(history))


def _iter_entries(container: Any) -> Iterator[Tuple[str, Any]]:
    # Containers whose keys are all small integers come back as JSON arrays.
    if isinstance(container, dict):
        yield from container.items()
    elif isinstance(container, list):
        for index, value in enumerate(container):
            if value is not None:
                yield str(index), value


@dataclass(frozen=True)
class Subscription:
    """Handle for one change subscription; pass it back to ``unsubscribe``."""

    id: str
    teardown: Unsubscribe = field(repr=False, compare=False)


class ReadingService:
    """Best-effort reads, strict deletes and change subscriptions over a ``RealtimeStore``."""

    def __init__(
        self,
        store: RealtimeStore,
        container_key: str = "heltec-packets",
        latest_key: str = "latest",
        workers: int = 2,
        signal_a_fields: Iterable[str] = SIGNAL_A_FIELDS,
        signal_b_fields: Iterable[str] = SIGNAL_B_FIELDS,
    ) -> None:
        self.store = store
        self.container_key = container_key.strip("/")
        self.latest_key = latest_key
        self.signal_a_fields = tuple(signal_a_fields)
        self.signal_b_fields = tuple(signal_b_fields)
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="reading-fetch")
        # Deliveries run on their own single worker so they never wait on the fetch pool
        # they are queued behind, and arrive in event order.
        self._notifier = ThreadPoolExecutor(max_workers=1, thread_name_prefix="reading-notify")
        self._subscriptions: Dict[str, Subscription] = {}
        self._active: Set[str] = set()
        self._pending: Set[str] = set()
        self._subscriptions_lock = Lock()

    @property
    def latest_path(self) -> str:
        return f"{self.container_key}/{self.latest_key}"

    def fetch_current(self) -> Optional[Reading]:
        """Read the dedicated latest record; ``None`` when the store has none."""
        record = self._read(self.latest_path)
        if not isinstance(record, dict) or not record:
            return None
        return self._to_reading(record, fallback_timestamp=None)

    def fetch_history(self) -> List[Reading]:
        """All readings except the latest record, newest first."""
        container = self._read(self.container_key)
        # Any present entry counts; one that is not an object reads as zero levels.
        history = [
            self._to_reading(record if isinstance(record, dict) else {}, fallback_timestamp=key)
            for key, record in _iter_entries(container)
            if key != self.latest_key and (record or isinstance(record, (dict, list)))
        ]
        history.sort(key=lambda reading: reading.timestamp, reverse=True)
        return history

    def fetch_snapshot(self, on_error: Optional[ErrorHandler] = None) -> Snapshot:
        """Fetch current and history concurrently; never raises.

        Each half degrades to its empty default on failure. Failures are reported
        through ``on_error`` so callers can tell a degraded snapshot from a good one.
        """
        try:
            current_future = self.executor.submit(self.fetch_current)
            history_future = self.executor.submit(self.fetch_history)
            current = self._settle(current_future, None, on_error, "current")
            history = self._settle(history_future, [], on_error, "history")
            return compose_snapshot(current, history)
        except Exception as exc:  # noqa: BLE001 - reads always yield a snapshot
            logger.exception(
                "Snapshot fetch failed; returning empty snapshot",
                extra={"container": self.container_key},
            )
            self._report(on_error, exc)
            return zero_snapshot()

    def delete_all(self) -> None:
        """Remove every reading. Failures propagate as ``StoreUnavailable``."""
        self._remove(self.container_key)
        logger.info("Deleted all readings", extra={"container": self.container_key})

    def delete_one(self, timestamp: str) -> None:
        """Remove the entry stored under ``timestamp``. Failures propagate."""
        key = (timestamp or "").strip()
        if not key or _FORBIDDEN_KEY_CHARS.intersection(key):
            raise ValueError(f"Invalid reading key {timestamp!r}.")
        self._remove(f"{self.container_key}/{key}")
        logger.info(
            "Deleted reading",
            extra={"container": self.container_key, "entry_key": key},
        )

    def subscribe(self, on_change: SnapshotHandler) -> Subscription:
        """Call ``on_change`` with a fresh snapshot after every change to the container."""
        subscription_id = uuid4().hex
        with self._subscriptions_lock:
            self._active.add(subscription_id)

        def handle_event(_event: StoreEvent) -> None:
            self._schedule_delivery(subscription_id, on_change)

        try:
            teardown = self.store.subscribe(self.container_key, handle_event)
        except Exception:
            with self._subscriptions_lock:
                self._active.discard(subscription_id)
            raise

        subscription = Subscription(id=subscription_id, teardown=teardown)
        with self._subscriptions_lock:
            self._subscriptions[subscription_id] = subscription
        logger.info(
            "Subscribed to changes",
            extra={"container": self.container_key, "subscription_id": subscription_id},
        )
        return subscription

    def unsubscribe(self, subscription: Optional[Subscription]) -> None:
        """Detach ``subscription``; unknown or already-detached handles are ignored."""
        if subscription is None:
            return
        with self._subscriptions_lock:
            owned = self._subscriptions.pop(subscription.id, None)
            self._active.discard(subscription.id)
            self._pending.discard(subscription.id)
        if owned is None:
            return
        owned.teardown()
        logger.info(
            "Unsubscribed from changes",
            extra={"container": self.container_key, "subscription_id": subscription.id},
        )

    def active_subscriptions(self) -> int:
        with self._subscriptions_lock:
            return len(self._subscriptions)

    def shutdown(self) -> None:
        """Detach every subscription and stop the worker pools."""
        with self._subscriptions_lock:
            subscriptions = list(self._subscriptions.values())
        for subscription in subscriptions:
            self.unsubscribe(subscription)
        self._notifier.shutdown(wait=False, cancel_futures=True)
        self.executor.shutdown(wait=False, cancel_futures=True)

    def _schedule_delivery(self, subscription_id: str, on_change: SnapshotHandler) -> None:
        with self._subscriptions_lock:
            if subscription_id not in self._active or subscription_id in self._pending:
                return
            self._pending.add(subscription_id)
        try:
            self._notifier.submit(self._deliver, subscription_id, on_change)
        except RuntimeError:
            # Notifier already shut down.
            with self._subscriptions_lock:
                self._pending.discard(subscription_id)

    def _deliver(self, subscription_id: str, on_change: SnapshotHandler) -> None:
        with self._subscriptions_lock:
            self._pending.discard(subscription_id)
            if subscription_id not in self._active:
                return

        failures: List[Exception] = []
        snapshot = self.fetch_snapshot(on_error=failures.append)
        if failures:
            logger.warning(
                "Skipping change notification after failed refetch",
                extra={"subscription_id": subscription_id, "reason": str(failures[0])},
            )
            return

        with self._subscriptions_lock:
            if subscription_id not in self._active:
                return
        try:
            on_change(snapshot)
        except Exception:  # noqa: BLE001 - a broken subscriber must not stop later updates
            logger.exception(
                "Change subscriber raised", extra={"subscription_id": subscription_id}
            )

    def _settle(
        self,
        future: Future[T],
        default: T,
        on_error: Optional[ErrorHandler],
        part: str,
    ) -> T:
        try:
            return future.result()
        except Exception as exc:  # noqa: BLE001 - each half degrades independently
            logger.warning(
                "Failed to fetch %s readings",
                part,
                extra={"container": self.container_key, "reason": str(exc)},
            )
            self._report(on_error, exc)
            return default

    @staticmethod
    def _report(on_error: Optional[ErrorHandler], exc: Exception) -> None:
        if on_error is None:
            return
        try:
            on_error(exc)
        except Exception:  # noqa: BLE001 - reporting must not break the read path
            logger.exception("Error handler raised")

    def _read(self, path: str) -> Any:
        try:
            return self.store.get(path)
        except StoreUnavailable:
            raise
        except Exception as exc:
            raise StoreUnavailable(f"Reading {path!r} failed: {exc}") from exc

    def _remove(self, path: str) -> None:
        try:
            self.store.remove(path)
        except Exception as exc:
            logger.error(
                "Delete failed",
                extra={"container": self.container_key, "path": path, "reason": str(exc)},
            )
            if isinstance(exc, StoreUnavailable):
                raise
            raise StoreUnavailable(f"Deleting {path!r} failed: {exc}") from exc

    def _to_reading(self, record: Dict[str, Any], fallback_timestamp: Optional[str]) -> Reading:
        raw_timestamp = record.get("timestamp")
        if raw_timestamp is None or (isinstance(raw_timestamp, str) and not raw_timestamp.strip()):
            raw_timestamp = fallback_timestamp
        timestamp = normalize(str(raw_timestamp)) if raw_timestamp is not None else now_canonical()
        return Reading(
            timestamp=timestamp,
            signal_a=parse_level(self._first_field(record, self.signal_a_fields)),
            signal_b=parse_level(self._first_field(record, self.signal_b_fields)),
        )

    @staticmethod
    def _first_field(record: Dict[str, Any], names: Tuple[str, ...]) -> Any:
        for name in names:
            if name in record:
                return record[name]
        return None


@lru_cache
def build_default_service() -> ReadingService:
    """Factory that wires the reading service to the process-wide store."""
    settings = get_settings()
    return ReadingService(
        store=build_default_store(),
        container_key=settings.container_key,
        latest_key=settings.latest_key,
        workers=settings.fetch_workers,
    )
