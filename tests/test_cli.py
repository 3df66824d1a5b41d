from __future__ import annotations

from typing import Any, Dict, List

import pytest
import typer
from typer.testing import CliRunner

from cli.app import app
from cli.config import DEFAULT_BASE_URL, load_config

_STATUS: Dict[str, Any] = {
    "current": {
        "timestamp": "20250623T131400",
        "formatted_timestamp": "2025-06-23 13:14:00",
        "signal_a": -55.0,
        "signal_b": -91.0,
        "a_quality": "excellent",
        "b_quality": "offline",
    },
    "history_count": 2,
    "loading": False,
    "connected": True,
    "error": None,
    "last_updated": "2025-06-23T13:15:00Z",
}


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.deleted: List[str] = []
        self.deleted_all = False
        self.history_calls: List[tuple[int, int]] = []
        self.closed = False
        self.csv_body = (
            "timestamp,raw_timestamp,signal_a,signal_b,a_quality,b_quality\n"
            "2025-06-23 13:14:00,20250623T131400,-55.0,-91.0,excellent,offline"
        )

    def get_status(self) -> Dict[str, Any]:
        return dict(_STATUS)

    def refresh(self) -> Dict[str, Any]:
        return dict(_STATUS, error="Failed to connect to the realtime database", connected=False)

    def get_history(self, page: int, page_size: int) -> Dict[str, Any]:
        self.history_calls.append((page, page_size))
        return {
            "page": page,
            "page_size": page_size,
            "total_items": 12,
            "total_pages": 2,
            "page_numbers": [1, 2],
            "rows": [
                {
                    "timestamp": "20250623T131400",
                    "formatted_timestamp": "2025-06-23 13:14:00",
                    "signal_a": -55.0,
                    "signal_b": -91.0,
                    "a_quality": "excellent",
                    "b_quality": "offline",
                    "a_trend": "up",
                    "b_trend": "down",
                }
            ],
        }

    def get_stats(self) -> Dict[str, Any]:
        return {
            "total_readings": 2,
            "a_average": -58.75,
            "a_min": -62.5,
            "a_max": -55.0,
            "b_average": -85.0,
            "b_min": -91.0,
            "b_max": -79.0,
        }

    def export_csv(self) -> str:
        return self.csv_body

    def delete_reading(self, timestamp: str) -> Dict[str, Any]:
        self.deleted.append(timestamp)
        return {"status": "deleted", "key": timestamp}

    def delete_all(self) -> Dict[str, Any]:
        self.deleted_all = True
        return {"status": "deleted", "key": None}

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def stub(monkeypatch) -> StubClient:
    client = StubClient(config=None)

    def factory(config):
        client.config = config
        return client

    monkeypatch.setattr("cli.app.ApiClient", factory)
    return client


def test_status_command(stub: StubClient, runner: CliRunner) -> None:
    result = runner.invoke(app, ["status"])

    assert result.exit_code == 0
    assert "Current Status" in result.stdout
    assert "-55.0 dBm (excellent)" in result.stdout
    assert "-91.0 dBm (offline)" in result.stdout
    assert stub.closed is True


def test_refresh_command_shows_connection_error(stub: StubClient, runner: CliRunner) -> None:
    result = runner.invoke(app, ["refresh"])

    assert result.exit_code == 0
    assert "Connection error: Failed to connect" in result.stdout


def test_history_command_passes_paging(stub: StubClient, runner: CliRunner) -> None:
    result = runner.invoke(app, ["history", "--page", "2", "--page-size", "5"])

    assert result.exit_code == 0
    assert stub.history_calls == [(2, 5)]
    assert "History (page 2 of 2, 12 readings)" in result.stdout
    assert "2025-06-23 13:14:00" in result.stdout
    assert "pages: 1 2" in result.stdout


def test_stats_command(stub: StubClient, runner: CliRunner) -> None:
    result = runner.invoke(app, ["stats"])

    assert result.exit_code == 0
    assert "signal_a: avg -58.8 dBm, range -62.5 to -55.0 dBm" in result.stdout


def test_export_to_file(stub: StubClient, runner: CliRunner, tmp_path) -> None:
    target = tmp_path / "history.csv"

    result = runner.invoke(app, ["export", "--output", str(target)])

    assert result.exit_code == 0
    assert target.read_text().splitlines()[0] == "timestamp,raw_timestamp,signal_a,signal_b,a_quality,b_quality"


def test_export_to_stdout(stub: StubClient, runner: CliRunner) -> None:
    result = runner.invoke(app, ["export"])

    assert result.exit_code == 0
    assert "20250623T131400" in result.stdout


def test_delete_command(stub: StubClient, runner: CliRunner) -> None:
    result = runner.invoke(app, ["delete", "20250623T131400"])

    assert result.exit_code == 0
    assert stub.deleted == ["20250623T131400"]


def test_delete_all_requires_confirmation(stub: StubClient, runner: CliRunner) -> None:
    declined = runner.invoke(app, ["delete-all"], input="n\n")

    assert declined.exit_code != 0
    assert stub.deleted_all is False

    confirmed = runner.invoke(app, ["delete-all", "--yes"])

    assert confirmed.exit_code == 0
    assert stub.deleted_all is True


def test_base_url_option_reaches_client(stub: StubClient, runner: CliRunner) -> None:
    result = runner.invoke(app, ["--base-url", "http://monitor:9000/", "status"])

    assert result.exit_code == 0
    assert stub.config.base_url == "http://monitor:9000"


def test_load_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://env-host:8080/")
    monkeypatch.setenv("CLI_TIMEOUT", "not-a-number")

    config = load_config()

    assert config.base_url == "http://env-host:8080"
    assert config.timeout == 30.0


def test_load_config_defaults(monkeypatch) -> None:
    monkeypatch.delenv("API_BASE_URL", raising=False)
    monkeypatch.delenv("CLI_TIMEOUT", raising=False)

    assert load_config().base_url == DEFAULT_BASE_URL


def test_api_errors_exit_non_zero(monkeypatch, runner: CliRunner) -> None:
    class FailingClient(StubClient):
        def delete_all(self) -> Dict[str, Any]:
            typer.secho("Request failed with status 502: permission denied", err=True)
            raise typer.Exit(code=1)

    monkeypatch.setattr("cli.app.ApiClient", FailingClient)

    result = runner.invoke(app, ["delete-all", "--yes"])

    assert result.exit_code == 1
