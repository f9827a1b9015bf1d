"""Configuration section models."""

from profilefields.config.models.engine import (
    LifecycleConfig,
    TransferConfig,
    ValidationConfig,
)
from profilefields.config.models.storage import (
    CacheConfig,
    PostgresConfig,
    RedisCacheConfig,
    StorageConfig,
)

__all__ = [
    "CacheConfig",
    "LifecycleConfig",
    "PostgresConfig",
    "RedisCacheConfig",
    "StorageConfig",
    "TransferConfig",
    "ValidationConfig",
]
