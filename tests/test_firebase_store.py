"""Tests for the Firebase REST client using an in-memory httpx transport."""

from __future__ import annotations

import json
import threading
from typing import List

import httpx
import pytest

from datastore.base import StoreEvent
from datastore.firebase import FirebaseRealtimeStore, iter_sse_events
from services.errors import StoreUnavailable

_BASE_URL = "https://example-rtdb.firebaseio.com/"


def _store(handler, **kwargs) -> FirebaseRealtimeStore:
    return FirebaseRealtimeStore(
        database_url=_BASE_URL,
        api_key="secret",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_get_reads_json_with_auth_param() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"timestamp": "20250623T131400", "signalA": -55})

    store = _store(handler)
    try:
        value = store.get("heltec-packets/latest")
    finally:
        store.close()

    assert value == {"timestamp": "20250623T131400", "signalA": -55}
    assert seen[0].method == "GET"
    assert seen[0].url.path == "/heltec-packets/latest.json"
    assert seen[0].url.params["auth"] == "secret"


def test_get_returns_none_for_null_body() -> None:
    store = _store(lambda request: httpx.Response(200, content=b"null"))
    try:
        assert store.get("heltec-packets") is None
    finally:
        store.close()


def test_remove_issues_delete() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"null")

    store = _store(handler)
    try:
        store.remove("/heltec-packets/20250623T131400/")
    finally:
        store.close()

    assert seen[0].method == "DELETE"
    assert seen[0].url.path == "/heltec-packets/20250623T131400.json"


def test_http_errors_raise_store_unavailable() -> None:
    store = _store(lambda request: httpx.Response(401, json={"error": "Permission denied"}))
    try:
        with pytest.raises(StoreUnavailable, match="401"):
            store.get("heltec-packets")
        with pytest.raises(StoreUnavailable):
            store.remove("heltec-packets")
    finally:
        store.close()


def test_transport_errors_raise_store_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    store = _store(handler)
    try:
        with pytest.raises(StoreUnavailable, match="connection refused"):
            store.get("heltec-packets")
    finally:
        store.close()


def test_invalid_json_raises_store_unavailable() -> None:
    store = _store(lambda request: httpx.Response(200, content=b"<html>"))
    try:
        with pytest.raises(StoreUnavailable):
            store.get("heltec-packets")
    finally:
        store.close()


def test_database_url_is_required() -> None:
    with pytest.raises(ValueError):
        FirebaseRealtimeStore(database_url="")


def test_iter_sse_events_groups_lines() -> None:
    lines = [
        ": comment",
        "event: put",
        'data: {"path": "/", "data": null}',
        "",
        "event: keep-alive",
        "data: null",
        "",
        "event: patch",
        'data: {"path": "/a",',
        'data: "data": {"signalA": -60}}',
    ]

    events = list(iter_sse_events(lines))

    assert events == [
        ("put", '{"path": "/", "data": null}'),
        ("keep-alive", "null"),
        ("patch", '{"path": "/a",\n"data": {"signalA": -60}}'),
    ]


def test_subscribe_streams_change_events() -> None:
    body = (
        "event: put\n"
        f"data: {json.dumps({'path': '/', 'data': {'latest': {'signalA': -55}}})}\n"
        "\n"
        "event: keep-alive\n"
        "data: null\n"
        "\n"
        "event: patch\n"
        f"data: {json.dumps({'path': '/20250623T131400', 'data': {'signalA': -60}})}\n"
        "\n"
    )

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["accept"] == "text/event-stream"
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, text=body)

    received: List[StoreEvent] = []
    done = threading.Event()

    def listener(event: StoreEvent) -> None:
        received.append(event)
        if len(received) >= 2:
            done.set()

    store = _store(handler, reconnect_delay=0.05)
    try:
        unsubscribe = store.subscribe("heltec-packets", listener)
        assert done.wait(timeout=5)
        unsubscribe()
        unsubscribe()
    finally:
        store.close()

    assert received[0] == StoreEvent(event="put", path="/", data={"latest": {"signalA": -55}})
    assert received[1] == StoreEvent(
        event="patch", path="/20250623T131400", data={"signalA": -60}
    )


def _redirecting(handler):
    def route(request: httpx.Request) -> httpx.Response:
        if request.url.host == "example-rtdb.firebaseio.com":
            shard = request.url.copy_with(host="shard-1.example-rtdb.firebaseio.com")
            return httpx.Response(307, headers={"Location": str(shard)})
        return handler(request)

    return route


def test_get_follows_shard_redirect() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"signalA": -55})

    store = _store(_redirecting(handler))
    try:
        assert store.get("heltec-packets/latest") == {"signalA": -55}
    finally:
        store.close()

    assert seen[0].url.host == "shard-1.example-rtdb.firebaseio.com"
    assert seen[0].url.path == "/heltec-packets/latest.json"
    assert seen[0].url.params["auth"] == "secret"


def test_subscribe_follows_shard_redirect() -> None:
    body = (
        "event: put\n"
        f"data: {json.dumps({'path': '/', 'data': {'latest': {'signalA': -55}}})}\n"
        "\n"
    )

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["accept"] == "text/event-stream"
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, text=body)

    received: List[StoreEvent] = []
    delivered = threading.Event()

    def listener(event: StoreEvent) -> None:
        received.append(event)
        delivered.set()

    store = _store(_redirecting(handler), reconnect_delay=0.05)
    try:
        unsubscribe = store.subscribe("heltec-packets", listener)
        assert delivered.wait(timeout=5)
        unsubscribe()
    finally:
        store.close()

    assert received[0] == StoreEvent(event="put", path="/", data={"latest": {"signalA": -55}})
