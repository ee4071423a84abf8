"""
Domain models for the shared bearer credential.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

EVENT_TOKEN_INSTALLED = "token_installed"
EVENT_TOKEN_CLEARED = "token_cleared"
EVENT_SHARED_TIER_UNAVAILABLE = "shared_tier_unavailable"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class Credential:
    """An opaque token together with the absolute instant it stops being usable."""

    value: str
    expires_at: datetime

    def is_live(self, now: datetime) -> bool:
        return now < self.expires_at

    def remaining(self, now: datetime) -> float:
        return (self.expires_at - now).total_seconds()


@dataclass(frozen=True, slots=True)
class TokenEvent:
    """Observability record emitted on install, clear and shared-tier failures."""

    kind: str
    expires_at: Optional[datetime] = None
    expires_in_seconds: Optional[int] = None
    replaced: bool = False
    detail: Optional[str] = None


class StoredCredentialRecord(BaseModel):
    """Represents the single JSON document kept in the shared tier."""

    token: str = Field(..., description="Token value, or its ciphertext when encrypted.")
    expires_at: datetime
    encrypted: bool = False

    @field_validator("expires_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


__all__ = [
    "Credential",
    "EVENT_SHARED_TIER_UNAVAILABLE",
    "EVENT_TOKEN_CLEARED",
    "EVENT_TOKEN_INSTALLED",
    "StoredCredentialRecord",
    "TokenEvent",
    "ensure_utc",
    "utc_now",
]
