"""Error taxonomy for the token lifecycle manager."""

from __future__ import annotations


class TokenStoreError(Exception):
    """Base class for token manager errors."""


class InvalidExpiry(TokenStoreError, ValueError):
    """Raised when a credential is installed with an expiry that is not in the future."""


class SharedTierUnavailable(TokenStoreError):
    """Raised by shared cache backends when the external cache cannot be reached.

    The token store records and swallows this condition; it never reaches
    callers of the store itself.
    """


class RefreshTimeout(TokenStoreError):
    """Raised when a caller gives up waiting for another caller's refresh."""


__all__ = [
    "InvalidExpiry",
    "RefreshTimeout",
    "SharedTierUnavailable",
    "TokenStoreError",
]
