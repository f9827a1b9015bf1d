"""Kind registry: maps kind names to AttributeKind implementations.

Registration is append-only for the life of the registry so one plugin
cannot replace another's kind at runtime. Dispatch never fails on an
unknown kind; the text kind stands in for anything missing.
"""

import threading
from typing import Any

from profilefields.enums import Capability
from profilefields.kinds import BUILTIN_KINDS, AttributeKind, TextKind
from profilefields.models.definition import AttributeDefinition
from profilefields.models.validation import ValidationResult
from profilefields.observability.logging import get_logger

logger = get_logger(__name__)


class KindRegistry:
    """Catalog of attribute kinds with render/validate/sanitize dispatch.

    Construct one per process (see ``build_default_registry``) and pass
    it to the validator and manager.
    """

    def __init__(self, fallback: AttributeKind | None = None) -> None:
        self._kinds: dict[str, AttributeKind] = {}
        self._lock = threading.RLock()
        self._fallback = fallback or TextKind()

    def register(self, kind: AttributeKind) -> bool:
        """Add a kind. Returns False when the name is empty or already taken."""
        if not kind.name:
            logger.warning("kind_register_rejected", reason="empty_name")
            return False
        with self._lock:
            if kind.name in self._kinds:
                logger.warning("kind_register_rejected", kind=kind.name, reason="duplicate")
                return False
            self._kinds[kind.name] = kind
        logger.debug("kind_registered", kind=kind.name)
        return True

    def unregister(self, name: str) -> bool:
        with self._lock:
            removed = self._kinds.pop(name, None)
        if removed is None:
            return False
        logger.info("kind_unregistered", kind=name)
        return True

    def get(self, name: str) -> AttributeKind | None:
        with self._lock:
            return self._kinds.get(name)

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._kinds

    def names(self) -> list[str]:
        with self._lock:
            return list(self._kinds)

    def all(self) -> list[AttributeKind]:
        with self._lock:
            return list(self._kinds.values())

    def describe(self) -> list[dict[str, Any]]:
        return [kind.describe() for kind in self.all()]

    def default_options(self, name: str) -> dict[str, Any]:
        kind = self.get(name)
        return kind.default_options() if kind else {}

    def supports(self, name: str, capability: Capability) -> bool:
        kind = self.get(name)
        return kind.supports(capability) if kind else False

    def resolve(self, name: str) -> AttributeKind:
        """Kind for ``name``, or the fallback when it is not registered."""
        kind = self.get(name)
        if kind is None:
            logger.debug("kind_fallback_used", kind=name)
            return self._fallback
        return kind

    def render(
        self, definition: AttributeDefinition, value: Any = None, **render_args: Any
    ) -> str:
        kind = self.resolve(definition.kind)
        try:
            return kind.render(definition, value, **render_args)
        except NotImplementedError:
            return self._fallback.render(definition, value, **render_args)

    def validate(self, definition: AttributeDefinition, value: Any) -> ValidationResult:
        kind = self.resolve(definition.kind)
        try:
            return kind.validate(definition, value)
        except NotImplementedError:
            return self._fallback.validate(definition, value)

    def sanitize(self, definition: AttributeDefinition, value: Any) -> Any:
        kind = self.resolve(definition.kind)
        try:
            return kind.sanitize(definition, value)
        except NotImplementedError:
            return self._fallback.sanitize(definition, value)


def build_default_registry() -> KindRegistry:
    """Registry populated with every built-in kind."""
    registry = KindRegistry()
    for kind_class in BUILTIN_KINDS:
        registry.register(kind_class())
    return registry
