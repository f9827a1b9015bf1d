"""Wiring of the engine from settings.

Builds the registry, store, cache, validator, manager and transfer
service for the configured backends. Nothing here is global; callers own
the returned Engine and close it when done.
"""

from dataclasses import dataclass, field

import redis.asyncio as redis

from profilefields.cache import (
    DefinitionCache,
    InMemoryDefinitionCache,
    NullDefinitionCache,
    RedisDefinitionCache,
)
from profilefields.config import get_settings
from profilefields.config.settings import Settings
from profilefields.db.pool import PostgresPool
from profilefields.manager import DefinitionManager
from profilefields.observability.logging import get_logger, setup_logging
from profilefields.registry import KindRegistry, build_default_registry
from profilefields.store import AttributeStore
from profilefields.stores.inmemory import InMemoryAttributeStore
from profilefields.stores.postgres import PostgresAttributeStore
from profilefields.transfer import DefinitionTransfer
from profilefields.validation import DefinitionValidator

logger = get_logger(__name__)


@dataclass
class Engine:
    """Constructed engine components sharing one registry."""

    settings: Settings
    registry: KindRegistry
    store: AttributeStore
    cache: DefinitionCache
    validator: DefinitionValidator
    manager: DefinitionManager
    transfer: DefinitionTransfer
    postgres_pool: PostgresPool | None = None
    redis_client: redis.Redis | None = field(default=None, repr=False)

    async def close(self) -> None:
        """Release pool and client connections."""
        if self.postgres_pool is not None:
            await self.postgres_pool.close()
        if self.redis_client is not None:
            await self.redis_client.aclose()
        logger.info("engine_closed")


async def create_store(settings: Settings) -> tuple[AttributeStore, PostgresPool | None]:
    """Create the configured store backend.

    Returns:
        Store and, for postgres, the connected pool it uses
    """
    if settings.storage.backend == "postgres":
        pool = PostgresPool.from_config(settings.storage.postgres)
        await pool.connect()
        logger.info("store_initialized", store_type="postgres")
        return PostgresAttributeStore(pool), pool
    logger.info("store_initialized", store_type="inmemory")
    return InMemoryAttributeStore(), None


def create_cache(settings: Settings) -> tuple[DefinitionCache, redis.Redis | None]:
    """Create the configured cache backend.

    Returns:
        Cache and, for redis, the client it uses
    """
    config = settings.cache
    if config.backend == "redis":
        client = redis.from_url(config.redis.url, decode_responses=True)
        logger.info("cache_initialized", cache_type="redis", url=config.redis.url.split("@")[-1])
        cache = RedisDefinitionCache(
            client,
            key_prefix=config.redis.key_prefix,
            fallback_on_error=config.fallback_on_error,
        )
        return cache, client
    if config.backend == "none":
        logger.info("cache_initialized", cache_type="none")
        return NullDefinitionCache(), None
    logger.info("cache_initialized", cache_type="inmemory")
    return InMemoryDefinitionCache(), None


async def create_engine(
    settings: Settings | None = None,
    registry: KindRegistry | None = None,
    configure_logging: bool = False,
) -> Engine:
    """Build every engine component from settings.

    Args:
        settings: Settings to use (process settings if omitted)
        registry: Pre-populated registry, e.g. with plugin kinds
        configure_logging: Apply the logging settings as well

    Returns:
        Ready-to-use Engine
    """
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings.log_level, settings.log_format, settings.redact_pii)

    registry = registry or build_default_registry()
    store, pool = await create_store(settings)
    cache, client = create_cache(settings)
    validator = DefinitionValidator(registry, settings.validation)
    manager = DefinitionManager(store, cache, registry, validator, settings)
    transfer = DefinitionTransfer(manager, validator, settings)

    logger.info(
        "engine_created",
        kinds=len(registry.names()),
        store=settings.storage.backend,
        cache=settings.cache.backend,
    )
    return Engine(
        settings=settings,
        registry=registry,
        store=store,
        cache=cache,
        validator=validator,
        manager=manager,
        transfer=transfer,
        postgres_pool=pool,
        redis_client=client,
    )
