"""Expose shared-tier cache backends."""

from .base import SharedCache
from .dynamodb import DynamoDBSharedCache
from .memory_cache import InMemorySharedCache
from .redis_cache import RedisSharedCache
from .sqlite_store import SQLiteSharedCache

__all__ = [
    "DynamoDBSharedCache",
    "InMemorySharedCache",
    "RedisSharedCache",
    "SQLiteSharedCache",
    "SharedCache",
]
