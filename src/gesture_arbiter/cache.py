"""Bounded store of recently captured samples, keyed by gesture id."""

from __future__ import annotations

import threading
from typing import Optional

from gesture_arbiter.modes import RECENT_CACHE_SIZE
from gesture_arbiter.samples import GestureSample


class RecentGestureCache:
    """Keeps the last `capacity` samples so a gesture can be re-dispatched
    by id without re-capturing it.

    When full, the entry with the smallest (oldest) id is evicted before
    the new one is inserted.
    """

    def __init__(self, capacity: int = RECENT_CACHE_SIZE):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._items: dict[int, GestureSample] = {}
        self._lock = threading.Lock()

    def add(self, gesture_id: int, sample: GestureSample):
        with self._lock:
            self._items.pop(gesture_id, None)
            while len(self._items) >= self.capacity:
                del self._items[min(self._items)]
            self._items[gesture_id] = sample

    def get(self, gesture_id: int) -> Optional[GestureSample]:
        with self._lock:
            return self._items.get(gesture_id)

    def last(self) -> Optional[tuple[int, GestureSample]]:
        """Most recent (id, sample) pair, or None when empty."""
        with self._lock:
            if not self._items:
                return None
            key = max(self._items)
            return key, self._items[key]

    def ids(self) -> list[int]:
        with self._lock:
            return sorted(self._items)

    def clear(self):
        with self._lock:
            self._items.clear()

    def __contains__(self, gesture_id: int) -> bool:
        with self._lock:
            return gesture_id in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
