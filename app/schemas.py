"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from models.records import Reading
from services.classifier import SignalStrength, classify, color_class_for
from services.dashboard import DashboardState
from services.presentation import HistoryPage, HistoryRow, SignalStats, Trend
from services.timestamps import format_timestamp


class ReadingOut(BaseModel):
    """A reading with its classification and display hints."""

    timestamp: str = Field(..., description="Canonical YYYYMMDDTHHMMSS timestamp.")
    formatted_timestamp: str
    signal_a: float = Field(..., description="Endpoint A level in dBm.")
    signal_b: float = Field(..., description="Endpoint B level in dBm.")
    a_quality: SignalStrength
    b_quality: SignalStrength
    a_color: str
    b_color: str

    @classmethod
    def from_reading(cls, reading: Reading) -> "ReadingOut":
        a_quality = classify(reading.signal_a)
        b_quality = classify(reading.signal_b)
        return cls(
            timestamp=reading.timestamp,
            formatted_timestamp=format_timestamp(reading.timestamp),
            signal_a=reading.signal_a,
            signal_b=reading.signal_b,
            a_quality=a_quality,
            b_quality=b_quality,
            a_color=color_class_for(a_quality),
            b_color=color_class_for(b_quality),
        )


class StatusResponse(BaseModel):
    """Dashboard state as seen by the presentation layer."""

    current: ReadingOut
    history_count: int = Field(..., ge=0)
    loading: bool
    connected: bool
    error: Optional[str] = None
    last_updated: Optional[datetime] = None

    @classmethod
    def from_state(cls, state: DashboardState) -> "StatusResponse":
        return cls(
            current=ReadingOut.from_reading(state.snapshot.current),
            history_count=len(state.snapshot.history),
            loading=state.loading,
            connected=state.connected,
            error=state.error,
            last_updated=state.last_updated,
        )


class HistoryRowOut(BaseModel):
    timestamp: str
    formatted_timestamp: str
    signal_a: float
    signal_b: float
    a_quality: SignalStrength
    b_quality: SignalStrength
    a_trend: Trend
    b_trend: Trend

    @classmethod
    def from_row(cls, row: HistoryRow) -> "HistoryRowOut":
        return cls(
            timestamp=row.timestamp,
            formatted_timestamp=row.formatted_timestamp,
            signal_a=row.signal_a,
            signal_b=row.signal_b,
            a_quality=row.a_quality,
            b_quality=row.b_quality,
            a_trend=row.a_trend,
            b_trend=row.b_trend,
        )


class HistoryPageResponse(BaseModel):
    """One page of history, newest first."""

    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_items: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    page_numbers: List[Union[int, str]] = Field(default_factory=list)
    rows: List[HistoryRowOut] = Field(default_factory=list)

    @classmethod
    def from_page(cls, page: HistoryPage) -> "HistoryPageResponse":
        return cls(
            page=page.page,
            page_size=page.page_size,
            total_items=page.total_items,
            total_pages=page.total_pages,
            page_numbers=list(page.page_numbers),
            rows=[HistoryRowOut.from_row(row) for row in page.rows],
        )


class StatsResponse(BaseModel):
    """Aggregate levels over the full history; empty history yields nulls."""

    total_readings: int = Field(..., ge=0)
    a_average: Optional[float] = None
    a_min: Optional[float] = None
    a_max: Optional[float] = None
    b_average: Optional[float] = None
    b_min: Optional[float] = None
    b_max: Optional[float] = None

    @classmethod
    def from_stats(cls, stats: SignalStats) -> "StatsResponse":
        return cls(
            total_readings=stats.total_readings,
            a_average=stats.a_average,
            a_min=stats.a_min,
            a_max=stats.a_max,
            b_average=stats.b_average,
            b_min=stats.b_min,
            b_max=stats.b_max,
        )


class DeleteResponse(BaseModel):
    status: str = "deleted"
    key: Optional[str] = Field(default=None, description="Deleted entry key; null when all were deleted.")
