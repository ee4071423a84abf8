"""
Two-tier store for the bearer credential shared by every JamboJet API call.

The local tier is a single ``Credential`` held by the store instance; the
shared tier is one JSON record in an external cache so that other processes
pick up a token installed here. Reads never hand out an expired token, and
shared-tier outages degrade to local-only behaviour instead of failing.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from jambojet.clients.base import SharedCache
from jambojet.core.exceptions import InvalidExpiry, SharedTierUnavailable
from jambojet.models.credential import (
    EVENT_SHARED_TIER_UNAVAILABLE,
    EVENT_TOKEN_CLEARED,
    EVENT_TOKEN_INSTALLED,
    Credential,
    StoredCredentialRecord,
    TokenEvent,
    ensure_utc,
    utc_now,
)
from jambojet.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

EventListener = Callable[[TokenEvent], None]


class TokenStore:
    """Single source of truth for the current JamboJet credential."""

    def __init__(
        self,
        shared_cache: SharedCache,
        *,
        key_prefix: str = "jambojet_global_",
        cipher: Optional[TokenCipherService] = None,
        clock: Callable[[], datetime] = utc_now,
        listeners: Iterable[EventListener] = (),
    ) -> None:
        self._shared = shared_cache
        self._key = f"{key_prefix}token"
        self._cipher = cipher
        self._clock = clock
        self._listeners: List[EventListener] = list(listeners)
        self._local: Optional[Credential] = None
        self._lock = threading.Lock()
        self.shared_tier_failures = 0

    @property
    def shared_key(self) -> str:
        return self._key

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def install(self, value: str, expires_at: datetime) -> None:
        """Replace the credential in both tiers.

        Raises ``InvalidExpiry`` when ``expires_at`` is not strictly in the
        future; nothing is modified in that case. A failed shared-tier write
        leaves the local tier updated and is only logged.
        """
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Token value must be a non-empty string.")
        expires_at = ensure_utc(expires_at)
        now = self._now()
        if expires_at <= now:
            raise InvalidExpiry(
                f"Token expiry {expires_at.isoformat()} is not after {now.isoformat()}."
            )

        credential = Credential(value=value, expires_at=expires_at)
        ttl_seconds = credential.remaining(now)
        payload = self._encode(credential)
        failures: List[str] = []
        with self._lock:
            previous = self._local
            replaced = previous is not None and previous.is_live(now)
            self._local = credential
            self._call_shared("install", failures, self._shared.set, self._key, payload, ttl_seconds)

        expires_in = int(ttl_seconds)
        logger.info(
            "JamboJet: global token updated (expires_at=%s, expires_in_seconds=%d)",
            expires_at.isoformat(),
            expires_in,
            extra={
                "token_event": EVENT_TOKEN_INSTALLED,
                "expires_at": expires_at.isoformat(),
                "expires_in_seconds": expires_in,
            },
        )
        self._report_failures(failures)
        self._emit(
            TokenEvent(
                kind=EVENT_TOKEN_INSTALLED,
                expires_at=expires_at,
                expires_in_seconds=expires_in,
                replaced=replaced,
            )
        )

    def fetch(self) -> Optional[str]:
        """Return the current token, or None when absent or expired."""
        credential = self._current()
        return credential.value if credential else None

    def is_valid(self) -> bool:
        return self._current() is not None

    def expires_at(self) -> Optional[datetime]:
        credential = self._current()
        return credential.expires_at if credential else None

    def remaining_seconds(self) -> int:
        """Whole seconds until expiry; 0 when absent or expired."""
        credential = self._current()
        if credential is None:
            return 0
        return max(0, int(credential.remaining(self._now())))

    def clear(self, expected: Optional[str] = None) -> bool:
        """Remove the credential from both tiers.

        With ``expected`` set, each tier is cleared only while it still holds
        that value, so rejecting a stale token cannot discard a newer one
        installed in the meantime by this or another process. Returns whether
        a clear happened.
        """
        failures: List[str] = []
        skipped = False
        with self._lock:
            if expected is None:
                self._local = None
                self._call_shared("clear", failures, self._shared.delete, self._key)
            else:
                skipped = not self._clear_matching_locked(expected, failures)

        self._report_failures(failures)
        if skipped:
            logger.debug("JamboJet: token clear skipped; a different token is current")
            return False

        logger.info("JamboJet: global token cleared", extra={"token_event": EVENT_TOKEN_CLEARED})
        self._emit(TokenEvent(kind=EVENT_TOKEN_CLEARED))
        return True

    def forget_local(self) -> None:
        """Drop the process-local copy so the next read consults the shared tier."""
        with self._lock:
            self._local = None

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    def _current(self) -> Optional[Credential]:
        failures: List[str] = []
        with self._lock:
            credential = self._resolve_locked(self._now(), failures)
        self._report_failures(failures)
        return credential

    def _resolve_locked(self, now: datetime, failures: List[str]) -> Optional[Credential]:
        local = self._local
        if local is not None:
            if local.is_live(now):
                return local
            self._local = None

        ok, raw = self._call_shared("fetch", failures, self._shared.get, self._key)
        if not ok or raw is None:
            return None
        credential = self._decode(raw)
        if credential is None or not credential.is_live(now):
            return None
        self._local = credential
        return credential

    def _clear_matching_locked(self, expected: str, failures: List[str]) -> bool:
        now = self._now()
        local = self._local
        local_match = local is not None and local.is_live(now) and local.value == expected
        if local_match:
            self._local = None

        ok, raw = self._call_shared("clear", failures, self._shared.get, self._key)
        shared_match = False
        if ok and raw is not None:
            shared = self._decode(raw)
            shared_match = shared is not None and shared.value == expected
        if shared_match:
            # Owner-checked so a record rewritten since the read survives.
            self._call_shared("clear", failures, self._shared.delete_if_equals, self._key, raw)
        return local_match or shared_match

    def _call_shared(
        self,
        operation: str,
        failures: List[str],
        func: Callable[..., Any],
        *args: Any,
    ) -> Tuple[bool, Any]:
        try:
            return True, func(*args)
        except SharedTierUnavailable as exc:
            self.shared_tier_failures += 1
            failures.append(operation)
            logger.warning(
                "JamboJet: shared token tier unavailable during %s; using local tier only: %s",
                operation,
                exc,
                extra={"token_event": EVENT_SHARED_TIER_UNAVAILABLE, "operation": operation},
            )
            return False, None

    def _encode(self, credential: Credential) -> str:
        if self._cipher is not None:
            record = StoredCredentialRecord(
                token=self._cipher.encrypt(credential.value),
                expires_at=credential.expires_at,
                encrypted=True,
            )
        else:
            record = StoredCredentialRecord(token=credential.value, expires_at=credential.expires_at)
        return record.model_dump_json()

    def _decode(self, raw: str) -> Optional[Credential]:
        try:
            record = StoredCredentialRecord.model_validate_json(raw)
        except (ValidationError, TypeError) as exc:
            logger.warning("JamboJet: ignoring malformed shared token record: %s", exc)
            return None

        token = record.token
        if record.encrypted:
            if self._cipher is None:
                logger.warning("JamboJet: shared token is encrypted but no encryption secret is configured")
                return None
            try:
                token = self._cipher.decrypt(token)
            except ValueError as exc:
                logger.warning("JamboJet: ignoring shared token record: %s", exc)
                return None
        if not token:
            return None
        return Credential(value=token, expires_at=record.expires_at)

    def _report_failures(self, failures: List[str]) -> None:
        for operation in failures:
            self._emit(TokenEvent(kind=EVENT_SHARED_TIER_UNAVAILABLE, detail=operation))

    def _emit(self, event: TokenEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # pylint: disable=broad-except
                logger.exception("JamboJet: token event listener %r failed", listener)


__all__ = ["EventListener", "TokenStore"]
