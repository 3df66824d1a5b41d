"""REST and event-stream client for a Firebase Realtime Database."""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple

import httpx

from datastore.base import StoreEvent, StoreListener, Unsubscribe, split_path
from services.errors import StoreUnavailable

logger = logging.getLogger(__name__)

_CHANGE_EVENTS = {"put", "patch"}
_CLOSING_EVENTS = {"cancel", "auth_revoked"}


def iter_sse_events(lines: Iterable[str]) -> Iterator[Tuple[str, str]]:
    """Group server-sent-event lines into ``(event, data)`` pairs."""
    event = "message"
    data: list[str] = []
    for line in lines:
        if not line:
            if data:
                yield event, "\n".join(data)
            event, data = "message", []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event = value
        elif field == "data":
            data.append(value)
    if data:
        yield event, "\n".join(data)


class _EventStream(threading.Thread):

    def __init__(
        self,
        store: "FirebaseRealtimeStore",
        path: str,
        listener: StoreListener,
        reconnect_delay: float,
    ) -> None:
        super().__init__(name=f"rtdb-stream:{path}", daemon=True)
        self._store = store
        self._path = path
        self._listener = listener
        self._reconnect_delay = reconnect_delay
        self._stopped = threading.Event()
        self._response: Optional[httpx.Response] = None
        self._response_lock = threading.Lock()

    def stop(self) -> None:
        self._stopped.set()
        with self._response_lock:
            response = self._response
        if response is not None:
            response.close()

    def run(self) -> None:
        while not self._stopped.is_set():
            try:
                self._consume()
            except Exception as exc:  # noqa: BLE001 - the stream reconnects until stopped
                if self._stopped.is_set():
                    break
                logger.warning(
                    "Change stream dropped; reconnecting",
                    extra={"path": self._path, "reason": str(exc)},
                )
            self._stopped.wait(self._reconnect_delay)

    def _consume(self) -> None:
        client = self._store._client
        with client.stream(
            "GET",
            self._store._url(self._path),
            params=self._store._params(),
            headers={"Accept": "text/event-stream"},
            timeout=httpx.Timeout(30.0, read=None),
        ) as response:
            response.raise_for_status()
            with self._response_lock:
                self._response = response
            try:
                for event, raw in iter_sse_events(response.iter_lines()):
                    if self._stopped.is_set():
                        return
                    if event in _CLOSING_EVENTS:
                        logger.warning(
                            "Change stream closed by server",
                            extra={"path": self._path, "reason": event},
                        )
                        return
                    if event not in _CHANGE_EVENTS:
                        continue
                    self._dispatch(event, raw)
            finally:
                with self._response_lock:
                    self._response = None

    def _dispatch(self, event: str, raw: str) -> None:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring undecodable stream payload", extra={"path": self._path})
            return
        if not isinstance(payload, dict):
            payload = {"path": "/", "data": payload}
        try:
            self._listener(
                StoreEvent(event=event, path=payload.get("path") or "/", data=payload.get("data"))
            )
        except Exception:  # noqa: BLE001 - keep the stream alive for later events
            logger.exception("Store listener failed", extra={"path": self._path})


class FirebaseRealtimeStore:
    """``RealtimeStore`` backed by the Firebase Realtime Database REST API."""

    def __init__(
        self,
        database_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        reconnect_delay: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not database_url:
            raise ValueError("A database URL is required for the Firebase store.")
        self.database_url = database_url.rstrip("/")
        self._api_key = api_key
        self._reconnect_delay = reconnect_delay
        # Reads and streams are redirected to the shard host that owns the data.
        self._client = httpx.Client(
            base_url=self.database_url,
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )
        self._streams: Dict[int, _EventStream] = {}
        self._streams_lock = threading.Lock()

    def get(self, path: str) -> Any:
        response = self._request("GET", path)
        try:
            return response.json()
        except ValueError as exc:
            raise StoreUnavailable(f"Invalid JSON returned for {path!r}") from exc

    def remove(self, path: str) -> None:
        self._request("DELETE", path)

    def subscribe(self, path: str, listener: StoreListener) -> Unsubscribe:
        stream = _EventStream(self, path, listener, self._reconnect_delay)
        with self._streams_lock:
            self._streams[id(stream)] = stream
        stream.start()

        def unsubscribe() -> None:
            with self._streams_lock:
                owned = self._streams.pop(id(stream), None)
            if owned is not None:
                owned.stop()

        return unsubscribe

    def close(self) -> None:
        with self._streams_lock:
            streams = list(self._streams.values())
            self._streams.clear()
        for stream in streams:
            stream.stop()
        self._client.close()

    def _url(self, path: str) -> str:
        return "/" + "/".join(split_path(path)) + ".json"

    def _params(self) -> Dict[str, str]:
        return {"auth": self._api_key} if self._api_key else {}

    def _request(self, method: str, path: str) -> httpx.Response:
        try:
            response = self._client.request(method, self._url(path), params=self._params())
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise StoreUnavailable(
                f"{method} {path!r} failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise StoreUnavailable(f"{method} {path!r} failed: {exc}") from exc
        return response
