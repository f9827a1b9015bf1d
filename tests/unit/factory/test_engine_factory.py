"""Tests for engine wiring."""

from typing import Any

import pytest
import structlog

from profilefields.cache import InMemoryDefinitionCache, NullDefinitionCache, RedisDefinitionCache
from profilefields.config.settings import Settings
from profilefields.factory import create_cache, create_engine
from profilefields.kinds import TextKind
from profilefields.models import AttributeDefinition
from profilefields.registry import build_default_registry
from profilefields.stores import InMemoryAttributeStore


class HandleKind(TextKind):
    """Plugin kind storing lowercase handles."""

    name = "handle"
    label = "Handle"

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        return str(super().sanitize(definition, value)).lower()


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()


class TestCreateCache:
    def test_inmemory(self) -> None:
        cache, client = create_cache(Settings())
        assert isinstance(cache, InMemoryDefinitionCache)
        assert client is None

    def test_disabled(self) -> None:
        cache, _ = create_cache(Settings(cache={"backend": "none"}))
        assert isinstance(cache, NullDefinitionCache)

    async def test_redis_client_is_lazy(self) -> None:
        """Building the redis cache does not connect."""
        cache, client = create_cache(Settings(cache={"backend": "redis"}))
        assert isinstance(cache, RedisDefinitionCache)
        assert client is not None
        await client.aclose()


class TestCreateEngine:
    async def test_inmemory_engine(self, admin) -> None:
        engine = await create_engine(Settings())
        try:
            assert isinstance(engine.store, InMemoryAttributeStore)
            assert engine.postgres_pool is None
            definition_id = await engine.manager.create(
                {"name": "pet_name", "label": "Pet Name", "kind": "text"}, admin
            )
            exported = await engine.transfer.export(None, admin)
            assert [d["name"] for d in exported.data.definitions] == ["pet_name"]
            assert (await engine.manager.get(definition_id)).order == 10
        finally:
            await engine.close()

    async def test_custom_registry(self, admin) -> None:
        """Plugin kinds registered before wiring are usable by the manager."""
        registry = build_default_registry()
        registry.register(HandleKind())
        engine = await create_engine(Settings(), registry=registry)

        definition_id = await engine.manager.create(
            {"name": "handle", "label": "Handle", "kind": "handle"}, admin
        )
        stored = await engine.manager.set_value(admin.id, definition_id, "<b>Neo</b>", admin)

        assert engine.registry is registry
        assert stored.value == "neo"

    async def test_settings_shared(self) -> None:
        settings = Settings(lifecycle={"order_step": 5})
        engine = await create_engine(settings, configure_logging=True)
        assert engine.settings is settings
        assert engine.validator.registry is engine.registry
