"""Fixtures shared by unit tests."""

from collections.abc import Callable
from typing import Any

import pytest

from profilefields.models import AttributeDefinition


@pytest.fixture
def make_definition() -> Callable[..., AttributeDefinition]:
    """Factory for definitions with sensible defaults.

    Usage:
        definition = make_definition(kind="number", min_value=1)
    """

    def _make(**overrides: Any) -> AttributeDefinition:
        data: dict[str, Any] = {"name": "test_field", "label": "Test Field", "kind": "text"}
        data.update(overrides)
        return AttributeDefinition(**data)

    return _make
