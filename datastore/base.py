"""Capability interface shared by the realtime store clients."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol


@dataclass(frozen=True)
class StoreEvent:
    """A change notification: ``path`` is relative to the subscribed key."""

    event: str
    path: str
    data: Any = None


StoreListener = Callable[[StoreEvent], None]
Unsubscribe = Callable[[], None]


class RealtimeStore(Protocol):
    """Hierarchical key-value store with change notifications.

    Paths are slash-separated keys such as ``"heltec-packets/latest"``.
    Implementations raise ``StoreUnavailable`` when the backend cannot be reached.
    """

    def get(self, path: str) -> Any:
        """Return the value stored at ``path`` or ``None`` when absent."""

    def remove(self, path: str) -> None:
        """Delete ``path`` and everything below it; absent paths are not an error."""

    def subscribe(self, path: str, listener: StoreListener) -> Unsubscribe:
        """Call ``listener`` for every change at or below ``path``."""

    def close(self) -> None:
        """Release network resources and stop any listeners."""


def split_path(path: str) -> list[str]:
    return [part for part in path.strip("/").split("/") if part]
