"""Expose factory helpers wiring settings into the token manager."""

from .clients import (
    build_shared_cache,
    build_token_refresher,
    get_shared_cache,
    get_token_cipher_service,
    get_token_store,
)

__all__ = [
    "build_shared_cache",
    "build_token_refresher",
    "get_shared_cache",
    "get_token_cipher_service",
    "get_token_store",
]
