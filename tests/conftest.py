"""Shared test fixtures for the profilefields test suite."""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest

from profilefields.cache import InMemoryDefinitionCache
from profilefields.config.settings import Settings
from profilefields.enums import Permission
from profilefields.manager import DefinitionManager
from profilefields.models import Actor
from profilefields.registry import KindRegistry, build_default_registry
from profilefields.stores.inmemory import InMemoryAttributeStore
from profilefields.transfer import DefinitionTransfer
from profilefields.validation import DefinitionValidator


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "log_level = 'DEBUG'",
                "development.toml": "[lifecycle]\\norder_step = 5",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            toml_file = test_config_dir / filename
            toml_file.write_text(content)

    return _create_toml_files


class EnvOverrideContext:
    """Context manager for temporarily setting environment variables."""

    def __init__(self, overrides: dict[str, str]) -> None:
        self.overrides = overrides
        self.original_env: dict[str, str | None] = {}

    def __enter__(self) -> None:
        for key, value in self.overrides.items():
            self.original_env[key] = os.environ.get(key)
            os.environ[key] = value

    def __exit__(self, *args: Any) -> None:
        for key in self.overrides:
            if self.original_env[key] is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = self.original_env[key]


@pytest.fixture
def env_override() -> Generator[Callable[[dict[str, str]], EnvOverrideContext], None, None]:
    """Context manager for temporarily setting environment variables.

    Usage:
        def test_something(env_override):
            with env_override({"PROFILEFIELDS_LOG_LEVEL": "DEBUG"}):
                # test code here
    """

    def _env_override(overrides: dict[str, str]) -> EnvOverrideContext:
        return EnvOverrideContext(overrides)

    yield _env_override


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache before and after each test.

    This ensures test isolation for configuration tests.
    """
    from profilefields.config import get_settings
    from profilefields.config.settings import set_toml_config

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    set_toml_config({})


# Engine fixtures


@pytest.fixture
def settings() -> Settings:
    """Settings built from model defaults only."""
    return Settings()


@pytest.fixture
def registry() -> KindRegistry:
    """Registry with every built-in kind."""
    return build_default_registry()


@pytest.fixture
def validator(registry: KindRegistry, settings: Settings) -> DefinitionValidator:
    return DefinitionValidator(registry, settings.validation)


@pytest.fixture
def store() -> InMemoryAttributeStore:
    return InMemoryAttributeStore()


@pytest.fixture
def cache() -> InMemoryDefinitionCache:
    return InMemoryDefinitionCache()


@pytest.fixture
def manager(
    store: InMemoryAttributeStore,
    cache: InMemoryDefinitionCache,
    registry: KindRegistry,
    validator: DefinitionValidator,
    settings: Settings,
) -> DefinitionManager:
    """Manager over in-memory store and cache."""
    return DefinitionManager(store, cache, registry, validator, settings)


@pytest.fixture
def transfer(manager: DefinitionManager, settings: Settings) -> DefinitionTransfer:
    return DefinitionTransfer(manager, settings=settings)


@pytest.fixture
def admin() -> Actor:
    """Actor holding every permission."""
    return Actor(id=uuid4(), permissions=frozenset(Permission), address="127.0.0.1")


@pytest.fixture
def field_manager() -> Actor:
    """Actor that may manage definitions but not values."""
    return Actor(id=uuid4(), permissions=frozenset({Permission.MANAGE_FIELDS}))


@pytest.fixture
def member() -> Actor:
    """Actor without any permission."""
    return Actor(id=uuid4())
