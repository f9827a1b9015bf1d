"""In-memory implementation of AttributeStore."""

import asyncio
from collections import Counter
from datetime import datetime
from typing import Any
from uuid import UUID

from profilefields.db.errors import ConflictError, NotFoundError
from profilefields.enums import AttributeStatus, OrderDirection
from profilefields.models import (
    AttributeDefinition,
    AttributeGroup,
    AttributeValue,
    DefinitionQuery,
    HistoryRecord,
    PendingPurge,
)
from profilefields.store import AttributeStore, WriteBatch


def _sort_key(definition: AttributeDefinition, column: str) -> tuple[Any, str]:
    value = getattr(definition, column)
    if isinstance(value, AttributeStatus):
        value = value.value
    if isinstance(value, str):
        value = value.lower()
    return value, definition.name


class InMemoryAttributeStore(AttributeStore):
    """In-memory implementation of AttributeStore for testing and development.

    Returned models are copies, so callers cannot mutate stored state
    without going through the store.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._definitions: dict[UUID, AttributeDefinition] = {}
        self._values: dict[tuple[UUID, UUID], AttributeValue] = {}
        self._groups: dict[str, AttributeGroup] = {}
        self._history: list[HistoryRecord] = []
        self._purges: dict[UUID, PendingPurge] = {}
        self._lock = asyncio.Lock()

    # Definitions

    async def get_definition(self, definition_id: UUID) -> AttributeDefinition | None:
        definition = self._definitions.get(definition_id)
        return definition.model_copy(deep=True) if definition else None

    async def get_definition_by_name(self, name: str) -> AttributeDefinition | None:
        for definition in self._definitions.values():
            if definition.name == name:
                return definition.model_copy(deep=True)
        return None

    def _matching(self, query: DefinitionQuery) -> list[AttributeDefinition]:
        return [d for d in self._definitions.values() if query.matches(d)]

    async def query_definitions(self, query: DefinitionQuery) -> list[AttributeDefinition]:
        rows = sorted(
            self._matching(query),
            key=lambda d: _sort_key(d, query.order_by),
            reverse=query.direction == OrderDirection.DESC,
        )
        page = rows[query.offset : query.offset + query.limit]
        return [d.model_copy(deep=True) for d in page]

    async def count_definitions(self, query: DefinitionQuery) -> int:
        return len(self._matching(query))

    def _check_name_free(self, definition: AttributeDefinition) -> None:
        for existing in self._definitions.values():
            if existing.name == definition.name and existing.id != definition.id:
                raise ConflictError(
                    f"Definition name already exists: {definition.name}",
                    constraint="attribute_definitions_name_key",
                )

    async def insert_definition(self, definition: AttributeDefinition) -> UUID:
        async with self._lock:
            if definition.id in self._definitions:
                raise ConflictError(
                    f"Definition id already exists: {definition.id}",
                    constraint="attribute_definitions_pkey",
                )
            self._check_name_free(definition)
            self._definitions[definition.id] = definition.model_copy(deep=True)
        return definition.id

    async def update_definition(self, definition: AttributeDefinition) -> None:
        async with self._lock:
            if definition.id not in self._definitions:
                raise NotFoundError(f"Definition not found: {definition.id}")
            self._check_name_free(definition)
            self._definitions[definition.id] = definition.model_copy(deep=True)

    async def delete_definition(self, definition_id: UUID) -> bool:
        async with self._lock:
            if self._definitions.pop(definition_id, None) is None:
                return False
            for key in [k for k in self._values if k[1] == definition_id]:
                del self._values[key]
            self._purges.pop(definition_id, None)
        return True

    async def max_order(self, group: str) -> int | None:
        orders = [d.order for d in self._definitions.values() if d.group == group]
        return max(orders) if orders else None

    async def status_counts(self) -> dict[AttributeStatus, int]:
        counts = Counter(d.status for d in self._definitions.values())
        return {status: counts.get(status, 0) for status in AttributeStatus}

    async def apply_batch(self, batch: WriteBatch) -> None:
        """Validate every change first, then apply; nothing is written on failure."""
        async with self._lock:
            staged = dict(self._definitions)
            for definition in batch.inserts:
                if definition.id in staged:
                    raise ConflictError(
                        f"Definition id already exists: {definition.id}",
                        constraint="attribute_definitions_pkey",
                    )
                staged[definition.id] = definition
            for definition in batch.updates:
                if definition.id not in staged:
                    raise NotFoundError(f"Definition not found: {definition.id}")
                staged[definition.id] = definition
            names = Counter(d.name for d in staged.values())
            duplicates = [name for name, count in names.items() if count > 1]
            if duplicates:
                raise ConflictError(
                    f"Definition name already exists: {duplicates[0]}",
                    constraint="attribute_definitions_name_key",
                )
            for value in batch.values:
                if value.definition_id not in staged:
                    raise NotFoundError(f"Definition not found: {value.definition_id}")

            self._definitions = {
                key: definition.model_copy(deep=True) for key, definition in staged.items()
            }
            for group in batch.groups:
                self._groups[group.name] = group.model_copy(deep=True)
            for value in batch.values:
                self._values[(value.principal_id, value.definition_id)] = value.model_copy(deep=True)

    # Values

    async def upsert_value(self, value: AttributeValue) -> None:
        if value.definition_id not in self._definitions:
            raise NotFoundError(f"Definition not found: {value.definition_id}")
        self._values[(value.principal_id, value.definition_id)] = value.model_copy(deep=True)

    async def get_value(
        self, principal_id: UUID, definition_id: UUID
    ) -> AttributeValue | None:
        value = self._values.get((principal_id, definition_id))
        return value.model_copy(deep=True) if value else None

    async def list_values(self, principal_id: UUID) -> list[AttributeValue]:
        return [
            v.model_copy(deep=True)
            for (owner, _), v in self._values.items()
            if owner == principal_id
        ]

    async def list_values_for_definition(self, definition_id: UUID) -> list[AttributeValue]:
        return [
            v.model_copy(deep=True)
            for (_, field_id), v in self._values.items()
            if field_id == definition_id
        ]

    async def delete_value(self, principal_id: UUID, definition_id: UUID) -> bool:
        return self._values.pop((principal_id, definition_id), None) is not None

    async def usage_count(self, definition_id: UUID) -> int:
        return sum(1 for (_, field_id) in self._values if field_id == definition_id)

    # Groups

    async def save_group(self, group: AttributeGroup) -> None:
        self._groups[group.name] = group.model_copy(deep=True)

    async def get_group(self, name: str) -> AttributeGroup | None:
        group = self._groups.get(name)
        return group.model_copy(deep=True) if group else None

    async def list_groups(self) -> list[AttributeGroup]:
        groups = sorted(self._groups.values(), key=lambda g: (g.order, g.name))
        return [g.model_copy(deep=True) for g in groups]

    async def delete_group(self, name: str) -> bool:
        return self._groups.pop(name, None) is not None

    # History

    async def append_history(self, record: HistoryRecord) -> None:
        self._history.append(record)

    async def list_history(
        self, definition_id: UUID, limit: int = 50
    ) -> list[HistoryRecord]:
        records = [r for r in self._history if r.definition_id == definition_id]
        return list(reversed(records))[:limit]

    # Pending purges

    async def save_purge(self, purge: PendingPurge) -> None:
        self._purges[purge.definition_id] = purge

    async def get_purge(self, definition_id: UUID) -> PendingPurge | None:
        return self._purges.get(definition_id)

    async def list_due_purges(self, now: datetime) -> list[PendingPurge]:
        due = [p for p in self._purges.values() if p.is_due(now)]
        return sorted(due, key=lambda p: p.due_at)

    async def delete_purge(self, definition_id: UUID) -> bool:
        return self._purges.pop(definition_id, None) is not None

    def clear(self) -> None:
        """Drop all data (test utility)."""
        self._definitions.clear()
        self._values.clear()
        self._groups.clear()
        self._history.clear()
        self._purges.clear()
