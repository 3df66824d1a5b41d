"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple


def canonical_from_datetime(moment: datetime) -> str:
    """Render ``moment`` as the compact ``YYYYMMDDTHHMMSS`` form, in UTC when aware."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return (
        f"{moment.year:04d}{moment.month:02d}{moment.day:02d}"
        f"T{moment.hour:02d}{moment.minute:02d}{moment.second:02d}"
    )


@dataclass(frozen=True, slots=True)
class Reading:
    """One timestamped pair of signal levels (dBm) from endpoints A and B."""

    timestamp: str
    signal_a: float
    signal_b: float


@dataclass(frozen=True, slots=True)
class Snapshot:
    """The current reading plus the full history, newest first."""

    current: Reading
    history: Tuple[Reading, ...] = field(default_factory=tuple)


def synthetic_reading(now: Optional[datetime] = None) -> Reading:
    moment = now or datetime.now(timezone.utc)
    return Reading(timestamp=canonical_from_datetime(moment), signal_a=0.0, signal_b=0.0)


def zero_snapshot(now: Optional[datetime] = None) -> Snapshot:
    """Snapshot used before the first load and whenever nothing could be read."""
    return Snapshot(current=synthetic_reading(now), history=())
