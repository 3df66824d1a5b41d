from __future__ import annotations

from typing import Dict, Iterator, List

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.factory import build_default_store
from datastore.mock_realtime_db import MockRealtimeStore
from services.dashboard import DashboardController, build_default_controller
from services.errors import StoreUnavailable
from services.readings import ReadingService, build_default_service
from settings import get_settings

_CONTAINER = "heltec-packets"


class SwitchableStore(MockRealtimeStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail_removes = False

    def remove(self, path: str) -> None:
        if self.fail_removes:
            raise StoreUnavailable("permission denied")
        super().remove(path)


def _seed(store: MockRealtimeStore) -> None:
    store.set(
        f"{_CONTAINER}/latest",
        {"timestamp": "20250623T131400", "signalA": -55, "signalB": -91},
    )
    store.set(
        f"{_CONTAINER}/20250623T131400",
        {"timestamp": "20250623T131400", "signalA": -55, "signalB": -91},
    )
    store.set(
        f"{_CONTAINER}/20250623T131300",
        {"timestamp": "20250623T131300", "signalA": "-62.5", "signalB": -79},
    )


@pytest.fixture
def store() -> SwitchableStore:
    return SwitchableStore()


@pytest.fixture
def api_client(store: SwitchableStore, monkeypatch) -> Iterator[TestClient]:
    controllers: Dict[str, DashboardController] = {}

    def build_test_controller() -> DashboardController:
        controller = controllers.get("default")
        if controller is None:
            service = ReadingService(store=store, container_key=_CONTAINER, workers=2)
            controller = DashboardController(service, poll_interval=60.0)
            controllers["default"] = controller
        return controller

    def cache_clear() -> None:
        controllers.clear()

    build_test_controller.cache_clear = cache_clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_controller", build_test_controller)
    monkeypatch.setattr("app.api.build_default_controller", build_test_controller)
    monkeypatch.setattr("app.web.build_default_controller", build_test_controller)

    _seed(store)
    app = create_app()
    with TestClient(app) as client:
        client.post("/refresh")
        yield client


def test_lifespan_tears_down_controller_and_clears_cache(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("SIGNAL_STORE_BACKEND", "mock")
    monkeypatch.setenv("MOCK_STORE_PERSISTENCE_PATH", str(tmp_path / "rtdb.json"))
    get_settings.cache_clear()
    build_default_store.cache_clear()
    build_default_service.cache_clear()
    build_default_controller.cache_clear()

    try:
        with TestClient(create_app()):
            controller_during = build_default_controller()
            assert controller_during.mounted is True

        assert controller_during.mounted is False
        assert controller_during.service.active_subscriptions() == 0

        controller_after = build_default_controller()
        assert controller_after is not controller_during
        controller_after.teardown()
        controller_after.service.shutdown()
    finally:
        build_default_controller.cache_clear()
        build_default_service.cache_clear()
        build_default_store.cache_clear()
        get_settings.cache_clear()


def test_status_reports_current_reading(api_client: TestClient) -> None:
    response = api_client.get("/status")

    assert response.status_code == 200
    payload = response.json()
    assert payload["current"]["timestamp"] == "20250623T131400"
    assert payload["current"]["formatted_timestamp"] == "2025-06-23 13:14:00"
    assert payload["current"]["a_quality"] == "excellent"
    assert payload["current"]["b_quality"] == "offline"
    assert "green" in payload["current"]["a_color"]
    assert payload["history_count"] == 2
    assert payload["connected"] is True
    assert payload["error"] is None
    assert payload["last_updated"] is not None


def test_history_pagination(api_client: TestClient) -> None:
    response = api_client.get("/history", params={"page": 1, "page_size": 1})

    assert response.status_code == 200
    payload = response.json()
    assert payload["total_items"] == 2
    assert payload["total_pages"] == 2
    assert payload["page_numbers"] == [1, 2]
    rows: List[dict] = payload["rows"]
    assert [row["timestamp"] for row in rows] == ["20250623T131400"]
    assert rows[0]["a_trend"] == "same"
    assert rows[0]["b_trend"] == "same"

    second = api_client.get("/history", params={"page": 2, "page_size": 1}).json()
    assert [row["timestamp"] for row in second["rows"]] == ["20250623T131300"]
    assert second["rows"][0]["a_trend"] == "down"
    assert second["rows"][0]["b_trend"] == "up"


def test_history_rejects_invalid_page(api_client: TestClient) -> None:
    assert api_client.get("/history", params={"page": 0}).status_code == 422


def test_stats(api_client: TestClient) -> None:
    payload = api_client.get("/stats").json()

    assert payload["total_readings"] == 2
    assert payload["a_average"] == pytest.approx(-58.75)
    assert payload["b_min"] == -91.0
    assert payload["b_max"] == -79.0


def test_export_csv(api_client: TestClient) -> None:
    response = api_client.get("/export.csv")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "signal-history-" in response.headers["content-disposition"]
    lines = response.text.split("\n")
    assert lines[0] == "timestamp,raw_timestamp,signal_a,signal_b,a_quality,b_quality"
    assert lines[2] == "2025-06-23 13:13:00,20250623T131300,-62.5,-79.0,fair,poor"


def test_delete_one_reading(api_client: TestClient, store: SwitchableStore) -> None:
    response = api_client.delete("/readings/20250623T131300")

    assert response.status_code == 200
    assert response.json() == {"status": "deleted", "key": "20250623T131300"}
    assert store.get(f"{_CONTAINER}/20250623T131300") is None
    assert api_client.get("/status").json()["history_count"] == 1


def test_delete_all_readings(api_client: TestClient, store: SwitchableStore) -> None:
    response = api_client.delete("/readings")

    assert response.status_code == 200
    assert store.get(_CONTAINER) is None
    payload = api_client.get("/status").json()
    assert payload["history_count"] == 0
    assert payload["current"]["signal_a"] == 0.0


def test_delete_invalid_key_returns_bad_request(api_client: TestClient) -> None:
    response = api_client.delete("/readings/bad.key")

    assert response.status_code == 400
    assert "bad.key" in response.json()["detail"]


def test_delete_failure_returns_bad_gateway(api_client: TestClient, store: SwitchableStore) -> None:
    store.fail_removes = True

    response = api_client.delete("/readings")

    assert response.status_code == 502
    assert "permission denied" in response.json()["detail"]
    assert store.get(_CONTAINER) is not None


def test_dashboard_page_renders(api_client: TestClient) -> None:
    response = api_client.get("/ui")

    assert response.status_code == 200
    assert "Signal Monitor" in response.text
    assert "2025-06-23 13:14:00" in response.text
    assert "excellent" in response.text


def test_dashboard_refresh_redirects(api_client: TestClient) -> None:
    response = api_client.post("/ui/refresh", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"].endswith("/ui")


def test_health(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
