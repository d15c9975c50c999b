"""Append-only retained history of accepted ledger events."""

import threading
from bisect import insort

from tokenestate.models.events import Event


def history_key(event: Event):
    return event.sort_key


class EventLog:
    """Accepted events kept sorted by (occurred_at, sequence, id).

    Events are indexed globally and per asset. Appends take a short lock;
    readers get an immutable tuple snapshot and never see a half-inserted
    list.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._all: list[Event] = []
        self._by_asset: dict[str, list[Event]] = {}
        self._keys: set[tuple[str, str]] = set()

    def append(self, event: Event) -> bool:
        """Retain an event. Returns False if the same (asset, id) is already held."""
        key = (event.asset_id, event.id)
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            insort(self._all, event, key=history_key)
            insort(self._by_asset.setdefault(event.asset_id, []), event, key=history_key)
        return True

    def snapshot(self, asset_id: str | None = None) -> tuple[Event, ...]:
        """Point-in-time copy of the history, oldest first."""
        with self._lock:
            if asset_id is None:
                return tuple(self._all)
            return tuple(self._by_asset.get(asset_id, ()))

    def asset_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._by_asset)

    def __len__(self) -> int:
        with self._lock:
            return len(self._all)

    def __contains__(self, key: tuple[str, str]) -> bool:
        with self._lock:
            return key in self._keys
