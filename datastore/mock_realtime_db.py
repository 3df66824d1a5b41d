from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional
from uuid import uuid4

from datastore.base import StoreEvent, StoreListener, Unsubscribe, split_path

logger = logging.getLogger(__name__)


class MockRealtimeStore:
    """In-process stand-in for a hosted realtime database.

    Values form a JSON tree. Listeners are called synchronously after each write
    that touches their path (ancestors and descendants both count), and once on
    subscribe with the current value, mirroring how the hosted service behaves.
    """

    def __init__(self, name: str = "mock-rtdb", persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._root: Dict[str, Any] = {}
        self._listeners: Dict[str, tuple[list[str], StoreListener]] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def get(self, path: str) -> Any:
        with self._lock:
            return copy.deepcopy(self._lookup(split_path(path)))

    def set(self, path: str, value: Any) -> None:
        """Write ``value`` at ``path``; ``None`` removes it."""
        parts = split_path(path)
        if not parts:
            raise ValueError("Refusing to overwrite the store root.")
        if value is None:
            self.remove(path)
            return

        with self._lock:
            node = self._root
            for part in parts[:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = {}
                    node[part] = child
                node = child
            node[parts[-1]] = copy.deepcopy(value)
            self._persist()
        self._notify(parts, "put", value)

    def remove(self, path: str) -> None:
        parts = split_path(path)
        with self._lock:
            if not parts:
                existed = bool(self._root)
                self._root = {}
            else:
                parent = self._lookup(parts[:-1])
                existed = isinstance(parent, dict) and parts[-1] in parent
                if existed:
                    del parent[parts[-1]]
                    self._prune(parts[:-1])
            if existed:
                self._persist()
        if existed:
            self._notify(parts, "put", None)

    def subscribe(self, path: str, listener: StoreListener) -> Unsubscribe:
        parts = split_path(path)
        listener_id = uuid4().hex
        with self._lock:
            self._listeners[listener_id] = (parts, listener)
            current = copy.deepcopy(self._lookup(parts))
        listener(StoreEvent(event="put", path="/", data=current))

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(listener_id, None)

        return unsubscribe

    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def close(self) -> None:
        with self._lock:
            self._listeners.clear()

    def _lookup(self, parts: list[str]) -> Any:
        node: Any = self._root
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def _prune(self, parts: list[str]) -> None:
        # Empty containers do not exist in the hosted service either.
        while parts:
            node = self._lookup(parts)
            if node:
                return
            parent = self._lookup(parts[:-1])
            parent.pop(parts[-1], None)
            parts = parts[:-1]

    def _notify(self, changed: list[str], event: str, data: Any) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for parts, listener in listeners:
            if changed[: len(parts)] == parts:
                relative = "/" + "/".join(changed[len(parts):])
                payload = data
            elif parts[: len(changed)] == changed:
                relative = "/"
                with self._lock:
                    payload = copy.deepcopy(self._lookup(parts))
            else:
                continue
            try:
                listener(StoreEvent(event=event, path=relative, data=copy.deepcopy(payload)))
            except Exception:  # noqa: BLE001 - one listener must not starve the others
                logger.exception("Store listener failed", extra={"path": "/".join(changed)})

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        self.persistence_path.write_text(json.dumps(self._root, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        if isinstance(data, dict):
            self._root = data
