"""Canonical compact timestamps (``YYYYMMDDTHHMMSS``) and their display form."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from models.records import canonical_from_datetime
from services.errors import MalformedTimestamp
from settings import get_settings

CANONICAL_LENGTH = 15
SEPARATOR = "T"
SEPARATOR_INDEX = 8

# (name, start, stop) offsets into the canonical form.
_FIELDS = (
    ("year", 0, 4),
    ("month", 4, 6),
    ("day", 6, 8),
    ("hour", 9, 11),
    ("minute", 11, 13),
    ("second", 13, 15),
)


def is_canonical(value: str) -> bool:
    return len(value) == CANONICAL_LENGTH and value[SEPARATOR_INDEX] == SEPARATOR


def _parse_generic(value: str) -> datetime:
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    iso_candidate = candidate[:-1] + "+00:00" if candidate.endswith("Z") else candidate
    try:
        return datetime.fromisoformat(iso_candidate)
    except ValueError:
        pass

    try:
        return parsedate_to_datetime(candidate)
    except (TypeError, ValueError, IndexError, OverflowError) as exc:
        raise ValueError(f"Unrecognised timestamp {value!r}") from exc


def normalize(raw: str) -> str:
    """Return ``raw`` in canonical form, or ``raw`` itself when it cannot be parsed.

    Values that already have the canonical shape are passed through untouched, so
    the function is idempotent.
    """
    if is_canonical(raw):
        return raw
    try:
        return canonical_from_datetime(_parse_generic(raw))
    except (ValueError, OverflowError):
        return raw


def to_datetime(ts: str) -> datetime:
    """Decode a canonical timestamp; raises ``MalformedTimestamp`` for anything else."""
    parts = {}
    for name, start, stop in _FIELDS:
        piece = ts[start:stop]
        if len(piece) != stop - start or not (piece.isascii() and piece.isdigit()):
            raise MalformedTimestamp(f"Invalid {name} in timestamp {ts!r}")
        parts[name] = int(piece)
    try:
        return datetime(**parts)
    except ValueError as exc:
        raise MalformedTimestamp(f"Timestamp {ts!r} is not a valid date/time") from exc


def format_timestamp(ts: str, fmt: Optional[str] = None) -> str:
    """Human-readable rendering of a canonical timestamp, falling back to ``ts``.

    ``fmt`` defaults to the ``TIMESTAMP_FORMAT`` setting; ``"%c"`` gives the
    locale's own date and time representation.
    """
    if fmt is None:
        fmt = get_settings().timestamp_format
    try:
        return to_datetime(ts).strftime(fmt)
    except (MalformedTimestamp, ValueError):
        return ts


def now_canonical(now: Optional[datetime] = None) -> str:
    return canonical_from_datetime(now or datetime.now(timezone.utc))
