"""
Redis-backed shared tier.

Every cooperating process points at the same Redis instance; entries carry a
millisecond TTL so Redis evicts them in step with the credential's expiry.
"""

from __future__ import annotations

from typing import Any, Optional

import redis

from jambojet.clients.base import ttl_milliseconds
from jambojet.core.exceptions import SharedTierUnavailable

# KEYS[1] = lock key, ARGV[1] = expected owner value
_COMPARE_AND_DELETE = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


class RedisSharedCache:
    """Thin wrapper translating redis-py errors into ``SharedTierUnavailable``."""

    def __init__(self, client: Any) -> None:
        self._redis = client
        self._compare_and_delete = client.register_script(_COMPARE_AND_DELETE)

    @classmethod
    def from_url(cls, url: str, *, timeout_seconds: float) -> "RedisSharedCache":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        return cls(client)

    def get(self, key: str) -> Optional[str]:
        try:
            return self._redis.get(key)
        except redis.RedisError as exc:
            raise SharedTierUnavailable(f"Redis GET {key!r} failed: {exc}") from exc

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        try:
            self._redis.set(key, value, px=ttl_milliseconds(ttl_seconds))
        except redis.RedisError as exc:
            raise SharedTierUnavailable(f"Redis SET {key!r} failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._redis.delete(key)
        except redis.RedisError as exc:
            raise SharedTierUnavailable(f"Redis DEL {key!r} failed: {exc}") from exc

    def add(self, key: str, value: str, ttl_seconds: float) -> bool:
        try:
            return bool(self._redis.set(key, value, px=ttl_milliseconds(ttl_seconds), nx=True))
        except redis.RedisError as exc:
            raise SharedTierUnavailable(f"Redis SET NX {key!r} failed: {exc}") from exc

    def delete_if_equals(self, key: str, value: str) -> bool:
        try:
            return bool(self._compare_and_delete(keys=[key], args=[value]))
        except redis.RedisError as exc:
            raise SharedTierUnavailable(f"Redis compare-and-delete {key!r} failed: {exc}") from exc


__all__ = ["RedisSharedCache"]
