"""View helpers: history rows, pagination, statistics and CSV export."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from models.records import Reading
from services.classifier import SignalStrength, classify
from services.timestamps import format_timestamp

DEFAULT_PAGE_SIZE = 10
MAX_VISIBLE_PAGES = 5
ELLIPSIS = "..."

CSV_COLUMNS = ("timestamp", "raw_timestamp", "signal_a", "signal_b", "a_quality", "b_quality")

PageNumber = Union[int, str]


class Trend(str, Enum):
    up = "up"
    down = "down"
    same = "same"


@dataclass(frozen=True)
class HistoryRow:
    timestamp: str
    formatted_timestamp: str
    signal_a: float
    signal_b: float
    a_quality: SignalStrength
    b_quality: SignalStrength
    a_trend: Trend
    b_trend: Trend


@dataclass(frozen=True)
class HistoryPage:
    rows: List[HistoryRow]
    page: int
    page_size: int
    total_items: int
    total_pages: int
    page_numbers: List[PageNumber]


@dataclass(frozen=True)
class SignalStats:
    total_readings: int
    a_average: Optional[float] = None
    a_min: Optional[float] = None
    a_max: Optional[float] = None
    b_average: Optional[float] = None
    b_min: Optional[float] = None
    b_max: Optional[float] = None


def trend(level: float, previous: Optional[float]) -> Trend:
    if previous is None or level == previous:
        return Trend.same
    return Trend.up if level > previous else Trend.down


def page_numbers(current: int, total: int, max_visible: int = MAX_VISIBLE_PAGES) -> List[PageNumber]:
    """Page links to show, collapsing long ranges with an ellipsis."""
    if total <= max_visible:
        return list(range(1, total + 1))
    if current <= 3:
        return [1, 2, 3, 4, ELLIPSIS, total]
    if current >= total - 2:
        return [1, ELLIPSIS, total - 3, total - 2, total - 1, total]
    return [1, ELLIPSIS, current - 1, current, current + 1, ELLIPSIS, total]


def history_rows(history: Sequence[Reading], start: int = 0, stop: Optional[int] = None) -> List[HistoryRow]:
    """Rows for ``history[start:stop]``; trends compare each reading with the one listed above it."""
    stop = len(history) if stop is None else min(stop, len(history))
    rows: List[HistoryRow] = []
    for index in range(start, stop):
        reading = history[index]
        newer = history[index - 1] if index > 0 else None
        rows.append(
            HistoryRow(
                timestamp=reading.timestamp,
                formatted_timestamp=format_timestamp(reading.timestamp),
                signal_a=reading.signal_a,
                signal_b=reading.signal_b,
                a_quality=classify(reading.signal_a),
                b_quality=classify(reading.signal_b),
                a_trend=trend(reading.signal_a, newer.signal_a if newer else None),
                b_trend=trend(reading.signal_b, newer.signal_b if newer else None),
            )
        )
    return rows


def paginate(history: Sequence[Reading], page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> HistoryPage:
    if page_size < 1:
        raise ValueError("page_size must be positive.")
    total_items = len(history)
    total_pages = -(-total_items // page_size)
    page = min(max(page, 1), max(total_pages, 1))
    start = (page - 1) * page_size
    return HistoryPage(
        rows=history_rows(history, start, start + page_size),
        page=page,
        page_size=page_size,
        total_items=total_items,
        total_pages=total_pages,
        page_numbers=page_numbers(page, total_pages),
    )


def compute_stats(history: Sequence[Reading]) -> SignalStats:
    if not history:
        return SignalStats(total_readings=0)
    a_levels = [reading.signal_a for reading in history]
    b_levels = [reading.signal_b for reading in history]
    return SignalStats(
        total_readings=len(history),
        a_average=sum(a_levels) / len(a_levels),
        a_min=min(a_levels),
        a_max=max(a_levels),
        b_average=sum(b_levels) / len(b_levels),
        b_min=min(b_levels),
        b_max=max(b_levels),
    )


def export_rows(history: Sequence[Reading]) -> List[Dict[str, object]]:
    return [
        {
            "timestamp": format_timestamp(reading.timestamp),
            "raw_timestamp": reading.timestamp,
            "signal_a": reading.signal_a,
            "signal_b": reading.signal_b,
            "a_quality": classify(reading.signal_a).value,
            "b_quality": classify(reading.signal_b).value,
        }
        for reading in history
    ]


def to_csv(history: Sequence[Reading]) -> str:
    """Comma-joined export without quoting; no field value contains a comma."""
    rows = export_rows(history)
    if not rows:
        return ""
    lines = [",".join(CSV_COLUMNS)]
    lines.extend(",".join(str(row[column]) for column in CSV_COLUMNS) for row in rows)
    return "\n".join(lines)


def export_filename(today: Optional[date] = None) -> str:
    return f"signal-history-{(today or date.today()).isoformat()}.csv"
