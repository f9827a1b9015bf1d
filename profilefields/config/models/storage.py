"""Storage and cache backend configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

StoreBackendType = Literal["inmemory", "postgres"]
CacheBackendType = Literal["inmemory", "redis", "none"]


class PostgresConfig(BaseModel):
    """PostgreSQL connection pool configuration."""

    connection_url: str | None = Field(
        default=None,
        description="DSN (from PROFILEFIELDS_STORAGE__POSTGRES__CONNECTION_URL)",
    )
    min_pool_size: int = Field(default=2, gt=0, description="Connections kept open")
    max_pool_size: int = Field(default=10, gt=0, description="Maximum connections")
    max_inactive_connection_lifetime: float = Field(
        default=300.0,
        gt=0,
        description="Close connections idle longer than this (seconds)",
    )
    command_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Default timeout for queries (seconds)",
    )


class StorageConfig(BaseModel):
    """Which store backend holds definitions, values and history."""

    backend: StoreBackendType = Field(default="inmemory", description="Store backend")
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)


class RedisCacheConfig(BaseModel):
    """Redis cache connection settings."""

    url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    key_prefix: str = Field(default="profilefields", description="Prefix for cache keys")


class CacheConfig(BaseModel):
    """Definition cache configuration.

    Definition data is invalidated on every write and carries no TTL;
    only aggregated statistics expire on their own.
    """

    backend: CacheBackendType = Field(default="inmemory", description="Cache backend")
    stats_ttl_seconds: int = Field(
        default=300,  # 5 minutes
        gt=0,
        description="TTL for aggregated statistics",
    )
    fallback_on_error: bool = Field(
        default=True,
        description="Treat failed cache reads and writes as misses; invalidation failures always raise",
    )
    redis: RedisCacheConfig = Field(default_factory=RedisCacheConfig)
