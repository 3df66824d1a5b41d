from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import typer

_QUALITY_COLORS = {
    "excellent": typer.colors.GREEN,
    "good": typer.colors.BLUE,
    "fair": typer.colors.YELLOW,
    "poor": typer.colors.MAGENTA,
    "offline": typer.colors.RED,
}

_TREND_MARKS = {"up": "^", "down": "v", "same": " "}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _quality(value: Optional[str]) -> str:
    label = value or "unknown"
    return typer.style(label, fg=_QUALITY_COLORS.get(label))


def _level(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.1f}"


def render_status(payload: Dict[str, Any]) -> None:
    echo_heading("Current Status")
    current = payload.get("current") or {}
    echo_key_values(
        [
            ("timestamp", current.get("formatted_timestamp")),
            ("signal_a", f"{_level(current.get('signal_a'))} dBm ({_quality(current.get('a_quality'))})"),
            ("signal_b", f"{_level(current.get('signal_b'))} dBm ({_quality(current.get('b_quality'))})"),
            ("history_count", payload.get("history_count")),
            ("connected", payload.get("connected")),
            ("last_updated", payload.get("last_updated")),
        ]
    )
    error = payload.get("error")
    if error:
        typer.echo()
        typer.secho(f"Connection error: {error}", fg=typer.colors.RED)


def render_history(payload: Dict[str, Any]) -> None:
    echo_heading(
        f"History (page {payload.get('page')} of {payload.get('total_pages')}, "
        f"{payload.get('total_items')} readings)"
    )
    rows = payload.get("rows") or []
    if not rows:
        typer.echo("No readings recorded yet.")
        return
    for row in rows:
        typer.echo(
            f"  {row.get('formatted_timestamp')}  "
            f"A {_level(row.get('signal_a')):>7}{_TREND_MARKS.get(row.get('a_trend'), ' ')} "
            f"{_quality(row.get('a_quality'))}  "
            f"B {_level(row.get('signal_b')):>7}{_TREND_MARKS.get(row.get('b_trend'), ' ')} "
            f"{_quality(row.get('b_quality'))}"
        )
    numbers = payload.get("page_numbers") or []
    if len(numbers) > 1:
        typer.echo("pages: " + " ".join(str(number) for number in numbers))


def render_stats(payload: Dict[str, Any]) -> None:
    echo_heading("Overview")
    echo_key_values([("total_readings", payload.get("total_readings"))])
    if not payload.get("total_readings"):
        return
    for endpoint in ("a", "b"):
        typer.echo(
            f"signal_{endpoint}: avg {_level(payload.get(f'{endpoint}_average'))} dBm, "
            f"range {_level(payload.get(f'{endpoint}_min'))} to {_level(payload.get(f'{endpoint}_max'))} dBm"
        )
