"""Pytest configuration shared across the suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

import _bootstrap  # noqa: F401

from jambojet.clients import InMemorySharedCache
from jambojet.core.exceptions import SharedTierUnavailable
from jambojet.services import TokenStore


class FakeClock:
    """UTC clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FlakyCache:
    """Wraps a cache and raises ``SharedTierUnavailable`` while ``down`` is set."""

    def __init__(self, inner: InMemorySharedCache | None = None) -> None:
        self.inner = inner or InMemorySharedCache()
        self.down = False

    def _check(self) -> None:
        if self.down:
            raise SharedTierUnavailable("cache is down")

    def get(self, key):
        self._check()
        return self.inner.get(key)

    def set(self, key, value, ttl_seconds):
        self._check()
        self.inner.set(key, value, ttl_seconds)

    def delete(self, key):
        self._check()
        self.inner.delete(key)

    def add(self, key, value, ttl_seconds):
        self._check()
        return self.inner.add(key, value, ttl_seconds)

    def delete_if_equals(self, key, value):
        self._check()
        return self.inner.delete_if_equals(key, value)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def shared_cache() -> FlakyCache:
    return FlakyCache()


@pytest.fixture
def store(shared_cache: FlakyCache, clock: FakeClock) -> TokenStore:
    return TokenStore(shared_cache, clock=clock)
