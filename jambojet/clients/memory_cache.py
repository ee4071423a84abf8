"""Process-local stand-in for the shared cache, used in development and tests."""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Optional, Tuple


class InMemorySharedCache:
    """Thread-safe dict of ``key -> (value, expire_at)`` with lazy eviction."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _live_value(self, key: str) -> Optional[str]:
        item = self._data.get(key)
        if not item:
            return None
        value, expire_at = item
        if self._clock() >= expire_at:
            self._data.pop(key, None)
            return None
        return value

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live_value(key)

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        with self._lock:
            self._data[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def add(self, key: str, value: str, ttl_seconds: float) -> bool:
        with self._lock:
            if self._live_value(key) is not None:
                return False
            self._data[key] = (value, self._clock() + ttl_seconds)
            return True

    def delete_if_equals(self, key: str, value: str) -> bool:
        with self._lock:
            if self._live_value(key) != value:
                return False
            self._data.pop(key, None)
            return True


__all__ = ["InMemorySharedCache"]
