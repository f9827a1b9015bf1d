"""Integration tests for RedisDefinitionCache against a real Redis."""

import asyncio
from uuid import uuid4

import pytest
import pytest_asyncio

from profilefields.cache import DEFINITIONS_GROUP, LISTINGS_GROUP, RedisDefinitionCache
from profilefields.manager import DefinitionManager


@pytest_asyncio.fixture
async def redis_cache(redis_client):
    """Cache under a per-test prefix, cleaned up afterwards."""
    prefix = f"test_profilefields_{uuid4().hex}"
    yield RedisDefinitionCache(redis_client, key_prefix=prefix, fallback_on_error=False)

    async for key in redis_client.scan_iter(match=f"{prefix}:*"):
        await redis_client.delete(key)


@pytest.mark.integration
class TestRedisDefinitionCache:
    async def test_set_get_delete(self, redis_cache) -> None:
        await redis_cache.set(DEFINITIONS_GROUP, "name:eye_color", '{"name": "eye_color"}')
        assert await redis_cache.get(DEFINITIONS_GROUP, "name:eye_color") == '{"name": "eye_color"}'

        await redis_cache.delete(DEFINITIONS_GROUP, "name:eye_color")
        assert await redis_cache.get(DEFINITIONS_GROUP, "name:eye_color") is None

    async def test_flush_group_leaves_other_groups(self, redis_cache) -> None:
        for i in range(3):
            await redis_cache.set(LISTINGS_GROUP, f"page:{i}", "[]")
        await redis_cache.set(DEFINITIONS_GROUP, "name:eye_color", "{}")

        await redis_cache.flush_group(LISTINGS_GROUP)

        assert await redis_cache.get(LISTINGS_GROUP, "page:0") is None
        assert await redis_cache.get(DEFINITIONS_GROUP, "name:eye_color") == "{}"

    async def test_ttl_expires(self, redis_cache) -> None:
        await redis_cache.set(LISTINGS_GROUP, "definition-stats", "{}", ttl=1)
        await asyncio.sleep(1.5)
        assert await redis_cache.get(LISTINGS_GROUP, "definition-stats") is None


@pytest.mark.integration
class TestManagerWithRedis:
    async def test_update_is_visible_through_cache(
        self, redis_cache, store, registry, validator, settings, admin
    ) -> None:
        """A write through one manager invalidates what another reads."""
        writer = DefinitionManager(store, redis_cache, registry, validator, settings)
        reader = DefinitionManager(store, redis_cache, registry, validator, settings)
        definition_id = await writer.create(
            {"name": "pet_name", "label": "Pet Name", "kind": "text"}, admin
        )

        assert (await reader.get(definition_id)).label == "Pet Name"
        await writer.update(definition_id, {"label": "Companion Name"}, admin)
        assert (await reader.get(definition_id)).label == "Companion Name"
