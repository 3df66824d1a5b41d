from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_history, render_stats, render_status


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the signal monitor service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Monitor API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each API request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show the current reading and connection state."""
    state = _get_state(ctx)
    render_status(state.client.get_status())


@app.command("refresh")
def refresh_command(ctx: typer.Context) -> None:
    """Ask the service to re-read the store, then show the new state."""
    state = _get_state(ctx)
    render_status(state.client.refresh())


@app.command("history")
def history_command(
    ctx: typer.Context,
    page: int = typer.Option(1, "--page", "-p", min=1, help="Page number, newest readings first."),
    page_size: int = typer.Option(10, "--page-size", min=1, max=500, help="Readings per page."),
) -> None:
    """List historical readings."""
    state = _get_state(ctx)
    render_history(state.client.get_history(page=page, page_size=page_size))


@app.command("stats")
def stats_command(ctx: typer.Context) -> None:
    """Show averages and ranges over the full history."""
    state = _get_state(ctx)
    render_stats(state.client.get_stats())


@app.command("export")
def export_command(
    ctx: typer.Context,
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        dir_okay=False,
        writable=True,
        help="Write the CSV to this file instead of stdout.",
    ),
) -> None:
    """Export the history as CSV."""
    state = _get_state(ctx)
    body = state.client.export_csv()
    if output is None:
        typer.echo(body)
        return
    output.write_text(body + "\n" if body else "", encoding="utf-8")
    typer.secho(f"Wrote {output}", fg=typer.colors.GREEN)


@app.command("delete")
def delete_command(
    ctx: typer.Context,
    timestamp: str = typer.Argument(..., help="Entry key of the reading to delete."),
) -> None:
    """Delete a single reading."""
    state = _get_state(ctx)
    state.client.delete_reading(timestamp)
    typer.secho(f"Deleted reading {timestamp}.", fg=typer.colors.GREEN)


@app.command("delete-all")
def delete_all_command(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete every reading from the store. This cannot be undone."""
    state = _get_state(ctx)
    if not yes:
        typer.confirm("Delete all readings from the realtime database?", abort=True)
    state.client.delete_all()
    typer.secho("All readings deleted.", fg=typer.colors.GREEN)
