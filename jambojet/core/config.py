"""
Configuration models and helpers for the JamboJet token manager.

Centralizes settings management so every process sharing a token cache
resolves the same backend, key prefix and timeouts.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CacheBackendName = Literal["memory", "redis", "sqlite", "dynamodb"]


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class TokenCacheSettings(BaseSettings):
    """Where the shared token tier lives and how long calls to it may take."""

    backend: CacheBackendName = Field("memory", validation_alias="JAMBOJET_TOKEN_CACHE_BACKEND")
    key_prefix: str = Field("jambojet_global_", validation_alias="JAMBOJET_CACHE_PREFIX")
    timeout_seconds: float = Field(
        2.0,
        validation_alias="JAMBOJET_CACHE_TIMEOUT",
        description="Upper bound for a single shared-tier round trip.",
    )
    redis_url: Optional[str] = Field(None, validation_alias="JAMBOJET_REDIS_URL")
    sqlite_path: str = Field(
        "./.jambojet/token_cache.db",
        validation_alias="JAMBOJET_SQLITE_PATH",
    )

    @field_validator("backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Cache timeout must be greater than zero.")
        return value


class AWSSettings(BaseSettings):
    """Settings for the DynamoDB-backed shared tier."""

    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")
    dynamodb_table_name: Optional[str] = Field(
        None,
        validation_alias="JAMBOJET_DYNAMODB_TABLE",
        description="Table with a string 'pk' key and TTL enabled on 'ttl'.",
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting the shared token."
        ),
    )


class RefreshSettings(BaseSettings):
    """Single-flight refresh coordination."""

    lock_ttl_seconds: float = Field(30.0, validation_alias="JAMBOJET_REFRESH_LOCK_TTL")
    wait_timeout_seconds: float = Field(30.0, validation_alias="JAMBOJET_REFRESH_WAIT_TIMEOUT")
    poll_interval_seconds: float = Field(0.25, validation_alias="JAMBOJET_REFRESH_POLL_INTERVAL")

    @field_validator("lock_ttl_seconds", "wait_timeout_seconds", "poll_interval_seconds")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Refresh timings must be greater than zero.")
        return value


class AppSettings(BaseSettings):
    """Root settings object for the token manager."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: str = Field("test", validation_alias="JAMBOJET_ENVIRONMENT")
    log_level: str = Field("INFO", validation_alias="JAMBOJET_LOG_LEVEL")
    cache: TokenCacheSettings = Field(default_factory=TokenCacheSettings)
    aws: AWSSettings = Field(default_factory=AWSSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    refresh: RefreshSettings = Field(default_factory=RefreshSettings)

    @model_validator(mode="after")
    def _backend_requirements(self) -> "AppSettings":
        if self.cache.backend == "redis" and not self.cache.redis_url:
            raise ValueError("JAMBOJET_REDIS_URL is required for the redis backend.")
        if self.cache.backend == "dynamodb" and not self.aws.dynamodb_table_name:
            raise ValueError("JAMBOJET_DYNAMODB_TABLE is required for the dynamodb backend.")
        return self


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "AWSSettings",
    "CacheBackendName",
    "RefreshSettings",
    "SecuritySettings",
    "TokenCacheSettings",
    "get_settings",
]
