"""Client-side mirror of the board lists.

Entries are keyed by tuples (see ``QueryKeys``) and carry a stale flag.
Writes to an entry never clear its stale flag; only ``set`` (used when a
fetch lands) does, so a speculative update made after an invalidation is
still replaced by the next refresh.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from loguru import logger

Key = tuple
Subscriber = Callable[[str, Key], None]


class QueryKeys:
    columns: Key = ("columns",)
    tasks: Key = ("tasks",)
    by_column_prefix: Key = ("tasks", "column")

    @staticmethod
    def tasks_by_column(column_id: str) -> Key:
        return ("tasks", "column", column_id)


@dataclass
class _Entry:
    data: list
    stale: bool = False


class BoardCache:
    def __init__(self):
        self._lock = threading.RLock()
        self._entries: dict[Key, _Entry] = {}
        self._subscribers: list[Subscriber] = []

    # -------------------- reads --------------------
    def get(self, key: Key) -> Optional[list]:
        with self._lock:
            entry = self._entries.get(key)
            return list(entry.data) if entry else None

    def is_stale(self, key: Key) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is None or entry.stale

    def keys(self) -> list[Key]:
        with self._lock:
            return list(self._entries)

    def stale_keys(self) -> list[Key]:
        with self._lock:
            return [k for k, e in self._entries.items() if e.stale]

    # -------------------- writes --------------------
    def set(self, key: Key, data: list) -> None:
        """Store authoritative data for ``key`` and mark it fresh."""
        with self._lock:
            self._entries[key] = _Entry(list(data))
        self._publish("updated", key)

    def update(self, key: Key, fn: Callable[[list], list]) -> bool:
        """Apply ``fn`` to the cached list. Keys never fetched are left alone."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            entry.data = list(fn(list(entry.data)))
        self._publish("updated", key)
        return True

    def invalidate(self, prefix: Key) -> list[Key]:
        with self._lock:
            hit = [k for k in self._entries if k[: len(prefix)] == prefix]
            for k in hit:
                self._entries[k].stale = True
        for k in hit:
            self._publish("invalidated", k)
        return hit

    def snapshot(self, keys: list[Key]) -> dict[Key, Optional[_Entry]]:
        with self._lock:
            snap = {}
            for k in keys:
                entry = self._entries.get(k)
                snap[k] = _Entry(list(entry.data), entry.stale) if entry else None
            return snap

    def restore(self, snap: dict[Key, Optional[_Entry]]) -> None:
        with self._lock:
            for k, entry in snap.items():
                if entry is None:
                    self._entries.pop(k, None)
                else:
                    self._entries[k] = _Entry(list(entry.data), entry.stale)
        for k in snap:
            self._publish("restored", k)

    # -------------------- pub/sub --------------------
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, event: str, key: Key) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event, key)
            except Exception:
                logger.exception("Cache subscriber failed on {} {}", event, key)


def replace_item(items: list, row: Any) -> list:
    return [row if item.id == row.id else item for item in items]


def without_item(items: list, item_id: str) -> list:
    return [item for item in items if item.id != item_id]


def append_item(items: list, row: Any) -> list:
    return without_item(items, row.id) + [row]
