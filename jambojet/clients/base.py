"""Contract every shared-tier cache backend fulfils."""

from __future__ import annotations

import math
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class SharedCache(Protocol):
    """Key-value cache reachable by every cooperating process.

    Implementations need per-key read-after-write consistency and a
    per-entry time-to-live. Any failure to reach the backing service is
    raised as ``SharedTierUnavailable``.
    """

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def add(self, key: str, value: str, ttl_seconds: float) -> bool:
        """Store ``value`` only if ``key`` holds nothing live; report success."""
        ...

    def delete_if_equals(self, key: str, value: str) -> bool:
        """Delete ``key`` only while it still holds ``value``."""
        ...


def ttl_milliseconds(ttl_seconds: float) -> int:
    return max(1, math.ceil(ttl_seconds * 1000))


def ttl_whole_seconds(ttl_seconds: float) -> int:
    return max(1, math.ceil(ttl_seconds))


__all__ = ["SharedCache", "ttl_milliseconds", "ttl_whole_seconds"]
