"""Storage backends for the attribute-schema engine."""

from profilefields.stores.inmemory import InMemoryAttributeStore
from profilefields.stores.postgres import PostgresAttributeStore

__all__ = ["InMemoryAttributeStore", "PostgresAttributeStore"]
