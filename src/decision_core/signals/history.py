"""History store — previous indicator snapshot per (symbol, timeframe), sharded by key."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from decision_core.errors import InvariantViolation
from decision_core.models import IndicatorSnapshot

HistoryKey = tuple[str, str]


class HistoryCycle:
    """Exclusive view of one key for the duration of a generation cycle.

    ``previous`` is frozen at cycle start; ``commit`` may be called once.
    """

    def __init__(self, store: HistoryStore, key: HistoryKey) -> None:
        self._store = store
        self.key = key
        self.previous: IndicatorSnapshot | None = store._entries.get(key)
        self.committed = False

    def commit(self, snapshot: IndicatorSnapshot) -> None:
        if self.committed:
            raise InvariantViolation(f"history for {self.key} written twice in one cycle")
        self._store._entries[self.key] = snapshot
        self.committed = True


class HistoryStore:
    """Previous-snapshot store with one lock per key.

    Different keys never contend; the read-old / detect / write-new sequence
    for a single key is serialized by holding that key's lock for the whole
    cycle.
    """

    def __init__(self) -> None:
        self._entries: dict[HistoryKey, IndicatorSnapshot] = {}
        self._locks: dict[HistoryKey, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: HistoryKey) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def cycle(self, symbol: str, timeframe: str) -> Iterator[HistoryCycle]:
        """Hold the key's lock while the caller reads, detects and commits."""
        key = (symbol, timeframe)
        with self._lock_for(key):
            yield HistoryCycle(self, key)

    def get(self, symbol: str, timeframe: str) -> IndicatorSnapshot | None:
        with self._lock_for((symbol, timeframe)):
            return self._entries.get((symbol, timeframe))

    def keys(self) -> list[HistoryKey]:
        return list(self._entries)

    def clear(self, symbol: str, timeframe: str) -> None:
        with self._lock_for((symbol, timeframe)):
            self._entries.pop((symbol, timeframe), None)

    def __len__(self) -> int:
        return len(self._entries)
