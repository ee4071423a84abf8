"""Credential token lifecycle manager for the JamboJet NSK API client."""

from jambojet.core.exceptions import (
    InvalidExpiry,
    RefreshTimeout,
    SharedTierUnavailable,
    TokenStoreError,
)
from jambojet.models.credential import Credential, TokenEvent
from jambojet.services.token_refresh import TokenRefresher
from jambojet.services.token_store import TokenStore

__version__ = "0.1.0"

__all__ = [
    "Credential",
    "InvalidExpiry",
    "RefreshTimeout",
    "SharedTierUnavailable",
    "TokenEvent",
    "TokenRefresher",
    "TokenStore",
    "TokenStoreError",
]
