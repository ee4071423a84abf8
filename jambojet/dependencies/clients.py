"""
Factory functions providing the per-process token store and its collaborators.
"""

from functools import lru_cache
from typing import Optional

from jambojet.clients import (
    DynamoDBSharedCache,
    InMemorySharedCache,
    RedisSharedCache,
    SQLiteSharedCache,
    SharedCache,
)
from jambojet.core.config import AppSettings, get_settings
from jambojet.services import Authenticator, TokenCipherService, TokenRefresher, TokenStore


@lru_cache()
def _settings() -> AppSettings:
    """Internal helper to cache settings for client factories."""
    return get_settings()


def build_shared_cache(settings: AppSettings) -> SharedCache:
    """Construct the shared-tier backend named by ``settings.cache.backend``."""
    cache = settings.cache
    if cache.backend == "redis":
        return RedisSharedCache.from_url(cache.redis_url, timeout_seconds=cache.timeout_seconds)
    if cache.backend == "sqlite":
        return SQLiteSharedCache(cache.sqlite_path, timeout_seconds=cache.timeout_seconds)
    if cache.backend == "dynamodb":
        return DynamoDBSharedCache(settings.aws, timeout_seconds=cache.timeout_seconds)
    return InMemorySharedCache()


@lru_cache()
def get_shared_cache() -> SharedCache:
    """Provide the configured shared cache backend."""
    return build_shared_cache(_settings())


@lru_cache()
def get_token_cipher_service() -> Optional[TokenCipherService]:
    """Provide the shared-tier cipher when an encryption secret is configured."""
    return TokenCipherService.from_settings(_settings().security)


@lru_cache()
def get_token_store() -> TokenStore:
    """Provide the process-wide token store."""
    settings = _settings()
    return TokenStore(
        get_shared_cache(),
        key_prefix=settings.cache.key_prefix,
        cipher=get_token_cipher_service(),
    )


def build_token_refresher(authenticate: Authenticator) -> TokenRefresher:
    """Build a single-flight refresher around ``authenticate`` for the shared store."""
    refresh = _settings().refresh
    return TokenRefresher(
        get_token_store(),
        authenticate,
        get_shared_cache(),
        lock_ttl_seconds=refresh.lock_ttl_seconds,
        wait_timeout_seconds=refresh.wait_timeout_seconds,
        poll_interval_seconds=refresh.poll_interval_seconds,
    )


__all__ = [
    "build_shared_cache",
    "build_token_refresher",
    "get_shared_cache",
    "get_token_cipher_service",
    "get_token_store",
]
