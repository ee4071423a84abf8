"""
Single-flight coordination around re-authentication.

When many callers find the token missing at once, only one of them runs the
authentication callable: threads in the same process queue on a local lock,
and other processes see a short-lived lock key in the shared cache and poll
the store until the winner's token shows up.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from typing import Callable, Optional, Tuple
from uuid import uuid4

from jambojet.clients.base import SharedCache
from jambojet.core.exceptions import RefreshTimeout, SharedTierUnavailable
from jambojet.services.token_store import TokenStore

logger = logging.getLogger(__name__)

Authenticator = Callable[[], Tuple[str, datetime]]


class TokenRefresher:
    """Hands out a usable token, re-authenticating at most once per expiry."""

    def __init__(
        self,
        store: TokenStore,
        authenticate: Authenticator,
        shared_cache: Optional[SharedCache] = None,
        *,
        lock_key: Optional[str] = None,
        lock_ttl_seconds: float = 30.0,
        wait_timeout_seconds: float = 30.0,
        local_wait_timeout_seconds: Optional[float] = None,
        poll_interval_seconds: float = 0.25,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._authenticate = authenticate
        self._shared = shared_cache
        self._lock_key = lock_key or f"{store.shared_key}_refresh_lock"
        self._lock_ttl = lock_ttl_seconds
        self._wait_timeout = wait_timeout_seconds
        # The lock holder may poll for up to wait_timeout and then authenticate.
        if local_wait_timeout_seconds is None:
            local_wait_timeout_seconds = 2 * wait_timeout_seconds
        self._local_wait_timeout = local_wait_timeout_seconds
        self._poll_interval = poll_interval_seconds
        self._sleep = sleep
        self._monotonic = monotonic
        self._refresh_lock = threading.Lock()

    def get_token(self) -> str:
        """Return the current token, running ``authenticate`` only if none is usable."""
        token = self._store.fetch()
        if token:
            return token

        if not self._refresh_lock.acquire(timeout=self._local_wait_timeout):
            token = self._store.fetch()
            if token:
                return token
            raise RefreshTimeout(
                f"Timed out after {self._local_wait_timeout}s waiting for an in-process token refresh."
            )
        try:
            # Another thread may have finished a refresh while we waited.
            token = self._store.fetch()
            if token:
                return token
            return self._refresh_across_processes()
        finally:
            self._refresh_lock.release()

    def invalidate(self, token: str) -> bool:
        """Drop ``token`` after the upstream API rejected it, unless it was already replaced."""
        return self._store.clear(expected=token)

    def _refresh_across_processes(self) -> str:
        if self._shared is None:
            return self._run_authentication()

        owner = uuid4().hex
        try:
            acquired = self._shared.add(self._lock_key, owner, self._lock_ttl)
        except SharedTierUnavailable as exc:
            logger.warning("JamboJet: refresh lock unavailable, refreshing without it: %s", exc)
            return self._run_authentication()

        if acquired:
            try:
                return self._run_authentication()
            finally:
                self._release(owner)

        token = self._wait_for_other_process()
        if token:
            return token
        logger.warning(
            "JamboJet: no token appeared within %.1fs of another process's refresh; authenticating",
            self._wait_timeout,
        )
        return self._run_authentication()

    def _wait_for_other_process(self) -> Optional[str]:
        deadline = self._monotonic() + self._wait_timeout
        while self._monotonic() < deadline:
            self._sleep(self._poll_interval)
            token = self._store.fetch()
            if token:
                return token
        return None

    def _run_authentication(self) -> str:
        value, expires_at = self._authenticate()
        self._store.install(value, expires_at)
        logger.info("JamboJet: token refreshed by this process")
        return value

    def _release(self, owner: str) -> None:
        try:
            self._shared.delete_if_equals(self._lock_key, owner)  # type: ignore[union-attr]
        except SharedTierUnavailable as exc:
            logger.warning(
                "JamboJet: could not release refresh lock; it expires in %.0fs: %s",
                self._lock_ttl,
                exc,
            )


__all__ = ["Authenticator", "TokenRefresher"]
