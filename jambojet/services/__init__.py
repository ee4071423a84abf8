"""Service layer exports."""

from .token_cipher import TokenCipherService
from .token_refresh import Authenticator, TokenRefresher
from .token_store import EventListener, TokenStore

__all__ = [
    "Authenticator",
    "EventListener",
    "TokenCipherService",
    "TokenRefresher",
    "TokenStore",
]
