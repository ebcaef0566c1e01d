"""Bounded per-floor reading history."""

import threading
from typing import cast

from core.models import FloorReading

DEFAULT_RETENTION = 1440  # 24 h at one reading per minute


class FloorHistory:
    """Fixed-capacity ring buffer of readings for a single floor.

    Appends are O(1); once full the oldest reading is overwritten. Readers
    always receive a copied, chronological snapshot.
    """

    def __init__(self, floor_id: int, capacity: int = DEFAULT_RETENTION) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.floor_id = floor_id
        self._capacity = capacity
        self._slots: list[FloorReading | None] = [None] * capacity
        self._start = 0
        self._size = 0
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return self._size

    def append(self, reading: FloorReading) -> None:
        with self._lock:
            end = (self._start + self._size) % self._capacity
            self._slots[end] = reading
            if self._size < self._capacity:
                self._size += 1
            else:
                self._start = (self._start + 1) % self._capacity

    def latest(self, limit: int | None = None) -> list[FloorReading]:
        """Most recent ``limit`` readings in chronological order."""
        with self._lock:
            count = self._size if limit is None else max(0, min(limit, self._size))
            first = self._start + self._size - count
            out: list[FloorReading] = []
            for i in range(first, first + count):
                out.append(cast(FloorReading, self._slots[i % self._capacity]))
            return out

    def last(self) -> FloorReading | None:
        with self._lock:
            if self._size == 0:
                return None
            return self._slots[(self._start + self._size - 1) % self._capacity]

    def clear(self) -> None:
        with self._lock:
            self._slots = [None] * self._capacity
            self._start = 0
            self._size = 0
