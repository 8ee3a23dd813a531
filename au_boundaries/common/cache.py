"""In-memory session cache for fetched and derived tables."""

from __future__ import annotations

import threading
from typing import Any, Callable, Hashable

import pandas as pd

CacheKey = tuple[str, tuple[Hashable, ...]]


def make_key(operation: str, *params: Hashable) -> CacheKey:
    return operation, tuple(params)


def _copy(value: Any) -> Any:
    # Callers mutate frames freely; never hand out the stored instance.
    if isinstance(value, pd.DataFrame):
        return value.copy()
    return value


class SessionCache:
    def __init__(self) -> None:
        self._entries: dict[CacheKey, Any] = {}
        self.lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __contains__(self, key: CacheKey) -> bool:
        with self.lock:
            return key in self._entries

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)

    def get(self, key: CacheKey) -> Any | None:
        with self.lock:
            if key not in self._entries:
                self.misses += 1
                return None
            self.hits += 1
            return _copy(self._entries[key])

    def set(self, key: CacheKey, value: Any) -> None:
        with self.lock:
            self._entries[key] = _copy(value)

    def get_or_compute(self, key: CacheKey, compute: Callable[[], Any]) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        # Only successful results are stored; exceptions propagate uncached.
        value = compute()
        self.set(key, value)
        return _copy(value)

    def clear(self) -> None:
        with self.lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0
