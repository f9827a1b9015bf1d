"""PostgreSQL implementation of AttributeStore.

Uses asyncpg through PostgresPool. JSON document columns are jsonb and
travel as JSON text. History rows carry no foreign key so the trail
survives a hard delete.
"""

import json
from datetime import datetime
from typing import Any
from uuid import UUID

import asyncpg

from profilefields.db.errors import ConflictError, ConnectionError, NotFoundError, StoreError
from profilefields.db.pool import PostgresPool
from profilefields.enums import AttributeStatus, OrderDirection
from profilefields.models import (
    AttributeDefinition,
    AttributeGroup,
    AttributeValue,
    DefinitionQuery,
    HistoryRecord,
    PendingPurge,
)
from profilefields.observability.logging import get_logger
from profilefields.observability.metrics import STORE_LATENCY
from profilefields.store import AttributeStore, WriteBatch

logger = get_logger(__name__)

# Sortable columns; keys are the only values DefinitionQuery.order_by accepts
ORDER_COLUMNS = {
    "order": "field_order",
    "name": "name",
    "label": "label",
    "kind": "kind",
    "group": "group_name",
    "status": "status",
    "created_at": "created_at",
    "updated_at": "updated_at",
}

DEFINITION_COLUMNS = """
    id, name, label, kind, description, placeholder, help_text,
    options, validation_rules, display_options, conditional_logic,
    group_name, field_order, is_required, is_searchable, is_public,
    is_editable, status, min_value, max_value, min_length, max_length,
    regex_pattern, default_value, width, css_class, is_system,
    created_by, created_at, updated_by, updated_at
"""

INSERT_DEFINITION = f"""
    INSERT INTO attribute_definitions ({DEFINITION_COLUMNS})
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15,
            $16, $17, $18, $19, $20, $21, $22, $23, $24, $25, $26, $27, $28,
            $29, $30, $31)
"""

UPDATE_DEFINITION = """
    UPDATE attribute_definitions SET
        name = $2, label = $3, kind = $4, description = $5, placeholder = $6,
        help_text = $7, options = $8, validation_rules = $9,
        display_options = $10, conditional_logic = $11, group_name = $12,
        field_order = $13, is_required = $14, is_searchable = $15,
        is_public = $16, is_editable = $17, status = $18, min_value = $19,
        max_value = $20, min_length = $21, max_length = $22,
        regex_pattern = $23, default_value = $24, width = $25,
        css_class = $26, is_system = $27, created_by = $28, created_at = $29,
        updated_by = $30, updated_at = $31
    WHERE id = $1
"""

UPSERT_VALUE = """
    INSERT INTO attribute_values (
        principal_id, definition_id, value, value_numeric, value_date,
        privacy, is_verified, verification_data, last_updated_by, updated_at
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
    ON CONFLICT (principal_id, definition_id) DO UPDATE SET
        value = EXCLUDED.value,
        value_numeric = EXCLUDED.value_numeric,
        value_date = EXCLUDED.value_date,
        privacy = EXCLUDED.privacy,
        is_verified = EXCLUDED.is_verified,
        verification_data = EXCLUDED.verification_data,
        last_updated_by = EXCLUDED.last_updated_by,
        updated_at = EXCLUDED.updated_at
"""

UPSERT_GROUP = """
    INSERT INTO attribute_groups (name, label, description, icon, group_order, is_active)
    VALUES ($1, $2, $3, $4, $5, $6)
    ON CONFLICT (name) DO UPDATE SET
        label = EXCLUDED.label,
        description = EXCLUDED.description,
        icon = EXCLUDED.icon,
        group_order = EXCLUDED.group_order,
        is_active = EXCLUDED.is_active
"""


def _dumps(value: Any) -> str | None:
    return None if value is None else json.dumps(value)


def _loads(value: Any) -> Any:
    return json.loads(value) if isinstance(value, str) else value


def _definition_args(definition: AttributeDefinition) -> tuple[Any, ...]:
    return (
        definition.id,
        definition.name,
        definition.label,
        definition.kind,
        definition.description,
        definition.placeholder,
        definition.help_text,
        _dumps(definition.options),
        _dumps(definition.validation_rules),
        _dumps(definition.display_options),
        _dumps(definition.conditional_logic),
        definition.group,
        definition.order,
        definition.is_required,
        definition.is_searchable,
        definition.is_public,
        definition.is_editable,
        definition.status.value,
        definition.min_value,
        definition.max_value,
        definition.min_length,
        definition.max_length,
        definition.regex_pattern,
        _dumps(definition.default_value),
        definition.width.value,
        definition.css_class,
        definition.is_system,
        definition.created_by,
        definition.created_at,
        definition.updated_by,
        definition.updated_at,
    )


def _value_args(value: AttributeValue) -> tuple[Any, ...]:
    return (
        value.principal_id,
        value.definition_id,
        _dumps(value.value),
        value.value_numeric,
        value.value_date,
        value.privacy.value,
        value.is_verified,
        _dumps(value.verification_data),
        value.last_updated_by,
        value.updated_at,
    )


def _group_args(group: AttributeGroup) -> tuple[Any, ...]:
    return (
        group.name,
        group.label,
        group.description,
        group.icon,
        group.order,
        group.is_active,
    )


class PostgresAttributeStore(AttributeStore):
    """PostgreSQL implementation of AttributeStore."""

    def __init__(self, pool: PostgresPool) -> None:
        """Initialize with connection pool.

        Args:
            pool: PostgreSQL connection pool
        """
        self._pool = pool

    # Definitions

    async def get_definition(self, definition_id: UUID) -> AttributeDefinition | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {DEFINITION_COLUMNS} FROM attribute_definitions WHERE id = $1",
                    definition_id,
                )
                return self._row_to_definition(row) if row else None
        except StoreError:
            raise
        except Exception as e:
            logger.error("postgres_get_definition_error", definition_id=str(definition_id), error=str(e))
            raise ConnectionError(f"Failed to get definition: {e}", cause=e) from e

    async def get_definition_by_name(self, name: str) -> AttributeDefinition | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {DEFINITION_COLUMNS} FROM attribute_definitions WHERE name = $1",
                    name,
                )
                return self._row_to_definition(row) if row else None
        except StoreError:
            raise
        except Exception as e:
            logger.error("postgres_get_definition_by_name_error", name=name, error=str(e))
            raise ConnectionError(f"Failed to get definition: {e}", cause=e) from e

    @staticmethod
    def _build_where(query: DefinitionQuery) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        args: list[Any] = []

        def bind(value: Any) -> str:
            args.append(value)
            return f"${len(args)}"

        if query.statuses is not None:
            clauses.append(f"status = ANY({bind([s.value for s in query.statuses])}::text[])")
        if query.kind is not None:
            clauses.append(f"kind = {bind(query.kind)}")
        if query.group is not None:
            clauses.append(f"group_name = {bind(query.group)}")
        for flag in ("is_searchable", "is_public", "is_required"):
            wanted = getattr(query, flag)
            if wanted is not None:
                clauses.append(f"{flag} = {bind(wanted)}")
        if query.search:
            pattern = bind(f"%{query.search.lower()}%")
            clauses.append(f"(lower(name) LIKE {pattern} OR lower(label) LIKE {pattern})")

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, args

    async def query_definitions(self, query: DefinitionQuery) -> list[AttributeDefinition]:
        where, args = self._build_where(query)
        column = ORDER_COLUMNS[query.order_by]
        direction = "DESC" if query.direction == OrderDirection.DESC else "ASC"
        sql = (
            f"SELECT {DEFINITION_COLUMNS} FROM attribute_definitions {where} "
            f"ORDER BY {column} {direction}, name ASC "
            f"LIMIT ${len(args) + 1} OFFSET ${len(args) + 2}"
        )
        try:
            with STORE_LATENCY.labels(backend="postgres", operation="query_definitions").time():
                async with self._pool.acquire() as conn:
                    rows = await conn.fetch(sql, *args, query.limit, query.offset)
            return [self._row_to_definition(row) for row in rows]
        except StoreError:
            raise
        except Exception as e:
            logger.error("postgres_query_definitions_error", error=str(e))
            raise ConnectionError(f"Failed to query definitions: {e}", cause=e) from e

    async def count_definitions(self, query: DefinitionQuery) -> int:
        where, args = self._build_where(query)
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetchval(
                    f"SELECT COUNT(*) FROM attribute_definitions {where}", *args
                )
        except StoreError:
            raise
        except Exception as e:
            logger.error("postgres_count_definitions_error", error=str(e))
            raise ConnectionError(f"Failed to count definitions: {e}", cause=e) from e

    async def insert_definition(self, definition: AttributeDefinition) -> UUID:
        try:
            async with self._pool.acquire() as conn:
                try:
                    await conn.execute(INSERT_DEFINITION, *_definition_args(definition))
                except asyncpg.UniqueViolationError as e:
                    raise ConflictError(
                        f"Definition name already exists: {definition.name}",
                        cause=e,
                        constraint=e.constraint_name,
                    ) from e
            logger.debug("definition_row_inserted", definition_id=str(definition.id))
            return definition.id
        except StoreError:
            raise
        except Exception as e:
            logger.error("postgres_insert_definition_error", name=definition.name, error=str(e))
            raise ConnectionError(f"Failed to insert definition: {e}", cause=e) from e

    async def update_definition(self, definition: AttributeDefinition) -> None:
        try:
            async with self._pool.acquire() as conn:
                try:
                    result = await conn.execute(UPDATE_DEFINITION, *_definition_args(definition))
                except asyncpg.UniqueViolationError as e:
                    raise ConflictError(
                        f"Definition name already exists: {definition.name}",
                        cause=e,
                        constraint=e.constraint_name,
                    ) from e
            if result == "UPDATE 0":
                raise NotFoundError(f"Definition not found: {definition.id}")
        except StoreError:
            raise
        except Exception as e:
            logger.error("postgres_update_definition_error", definition_id=str(definition.id), error=str(e))
            raise ConnectionError(f"Failed to update definition: {e}", cause=e) from e

    async def delete_definition(self, definition_id: UUID) -> bool:
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(
                        "DELETE FROM attribute_pending_purges WHERE definition_id = $1",
                        definition_id,
                    )
                    result = await conn.execute(
                        "DELETE FROM attribute_definitions WHERE id = $1", definition_id
                    )
            return result == "DELETE 1"
        except StoreError:
            raise
        except Exception as e:
            logger.error("postgres_delete_definition_error", definition_id=str(definition_id), error=str(e))
            raise ConnectionError(f"Failed to delete definition: {e}", cause=e) from e

    async def max_order(self, group: str) -> int | None:
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetchval(
                    "SELECT MAX(field_order) FROM attribute_definitions WHERE group_name = $1",
                    group,
                )
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to read max order: {e}", cause=e) from e

    async def status_counts(self) -> dict[AttributeStatus, int]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT status, COUNT(*) AS total FROM attribute_definitions GROUP BY status"
                )
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to count statuses: {e}", cause=e) from e
        counts = {status: 0 for status in AttributeStatus}
        for row in rows:
            counts[AttributeStatus(row["status"])] = row["total"]
        return counts

    async def apply_batch(self, batch: WriteBatch) -> None:
        """Apply the batch in one transaction; any failure rolls back all rows."""
        try:
            with STORE_LATENCY.labels(backend="postgres", operation="apply_batch").time():
                async with self._pool.acquire() as conn:
                    async with conn.transaction():
                        try:
                            for definition in batch.inserts:
                                await conn.execute(INSERT_DEFINITION, *_definition_args(definition))
                            for definition in batch.updates:
                                result = await conn.execute(
                                    UPDATE_DEFINITION, *_definition_args(definition)
                                )
                                if result == "UPDATE 0":
                                    raise NotFoundError(f"Definition not found: {definition.id}")
                            for group in batch.groups:
                                await conn.execute(UPSERT_GROUP, *_group_args(group))
                            for value in batch.values:
                                await conn.execute(UPSERT_VALUE, *_value_args(value))
                        except asyncpg.UniqueViolationError as e:
                            raise ConflictError(
                                f"Batch violates a unique constraint: {e}",
                                cause=e,
                                constraint=e.constraint_name,
                            ) from e
                        except asyncpg.ForeignKeyViolationError as e:
                            raise NotFoundError(f"Batch references a missing row: {e}", cause=e) from e
            logger.debug(
                "postgres_batch_applied",
                inserts=len(batch.inserts),
                updates=len(batch.updates),
                groups=len(batch.groups),
                values=len(batch.values),
            )
        except StoreError:
            raise
        except Exception as e:
            logger.error("postgres_apply_batch_error", error=str(e))
            raise ConnectionError(f"Failed to apply batch: {e}", cause=e) from e

    # Values

    async def upsert_value(self, value: AttributeValue) -> None:
        try:
            async with self._pool.acquire() as conn:
                try:
                    await conn.execute(UPSERT_VALUE, *_value_args(value))
                except asyncpg.ForeignKeyViolationError as e:
                    raise NotFoundError(
                        f"Definition not found: {value.definition_id}", cause=e
                    ) from e
        except StoreError:
            raise
        except Exception as e:
            logger.error("postgres_upsert_value_error", definition_id=str(value.definition_id), error=str(e))
            raise ConnectionError(f"Failed to save value: {e}", cause=e) from e

    async def get_value(
        self, principal_id: UUID, definition_id: UUID
    ) -> AttributeValue | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT * FROM attribute_values WHERE principal_id = $1 AND definition_id = $2",
                    principal_id,
                    definition_id,
                )
            return self._row_to_value(row) if row else None
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to get value: {e}", cause=e) from e

    async def list_values(self, principal_id: UUID) -> list[AttributeValue]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT * FROM attribute_values WHERE principal_id = $1", principal_id
                )
            return [self._row_to_value(row) for row in rows]
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to list values: {e}", cause=e) from e

    async def list_values_for_definition(self, definition_id: UUID) -> list[AttributeValue]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT * FROM attribute_values WHERE definition_id = $1", definition_id
                )
            return [self._row_to_value(row) for row in rows]
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to list values: {e}", cause=e) from e

    async def delete_value(self, principal_id: UUID, definition_id: UUID) -> bool:
        try:
            async with self._pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM attribute_values WHERE principal_id = $1 AND definition_id = $2",
                    principal_id,
                    definition_id,
                )
            return result == "DELETE 1"
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to delete value: {e}", cause=e) from e

    async def usage_count(self, definition_id: UUID) -> int:
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetchval(
                    "SELECT COUNT(DISTINCT principal_id) FROM attribute_values "
                    "WHERE definition_id = $1",
                    definition_id,
                )
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to count usage: {e}", cause=e) from e

    # Groups

    async def save_group(self, group: AttributeGroup) -> None:
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(UPSERT_GROUP, *_group_args(group))
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to save group: {e}", cause=e) from e

    async def get_group(self, name: str) -> AttributeGroup | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow("SELECT * FROM attribute_groups WHERE name = $1", name)
            return self._row_to_group(row) if row else None
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to get group: {e}", cause=e) from e

    async def list_groups(self) -> list[AttributeGroup]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT * FROM attribute_groups ORDER BY group_order ASC, name ASC"
                )
            return [self._row_to_group(row) for row in rows]
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to list groups: {e}", cause=e) from e

    async def delete_group(self, name: str) -> bool:
        try:
            async with self._pool.acquire() as conn:
                result = await conn.execute("DELETE FROM attribute_groups WHERE name = $1", name)
            return result == "DELETE 1"
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to delete group: {e}", cause=e) from e

    # History

    async def append_history(self, record: HistoryRecord) -> None:
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO attribute_history (
                        id, definition_id, change_type, old_values, new_values,
                        changed_by, reason, origin_address, created_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    """,
                    record.id,
                    record.definition_id,
                    record.change_type.value,
                    _dumps(record.old_values),
                    _dumps(record.new_values),
                    record.changed_by,
                    record.reason,
                    record.origin_address,
                    record.created_at,
                )
        except StoreError:
            raise
        except Exception as e:
            logger.error("postgres_append_history_error", definition_id=str(record.definition_id), error=str(e))
            raise ConnectionError(f"Failed to append history: {e}", cause=e) from e

    async def list_history(
        self, definition_id: UUID, limit: int = 50
    ) -> list[HistoryRecord]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT * FROM attribute_history
                    WHERE definition_id = $1
                    ORDER BY created_at DESC
                    LIMIT $2
                    """,
                    definition_id,
                    limit,
                )
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to list history: {e}", cause=e) from e
        return [
            HistoryRecord(
                id=row["id"],
                definition_id=row["definition_id"],
                change_type=row["change_type"],
                old_values=_loads(row["old_values"]),
                new_values=_loads(row["new_values"]),
                changed_by=row["changed_by"],
                reason=row["reason"],
                origin_address=row["origin_address"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    # Pending purges

    async def save_purge(self, purge: PendingPurge) -> None:
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO attribute_pending_purges (
                        id, definition_id, definition_name, snapshot, usage_count,
                        scheduled_at, due_at, requested_by
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                    ON CONFLICT (definition_id) DO UPDATE SET
                        snapshot = EXCLUDED.snapshot,
                        usage_count = EXCLUDED.usage_count,
                        scheduled_at = EXCLUDED.scheduled_at,
                        due_at = EXCLUDED.due_at,
                        requested_by = EXCLUDED.requested_by
                    """,
                    purge.id,
                    purge.definition_id,
                    purge.definition_name,
                    _dumps(purge.snapshot),
                    purge.usage_count,
                    purge.scheduled_at,
                    purge.due_at,
                    purge.requested_by,
                )
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to save pending purge: {e}", cause=e) from e

    async def get_purge(self, definition_id: UUID) -> PendingPurge | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT * FROM attribute_pending_purges WHERE definition_id = $1",
                    definition_id,
                )
            return self._row_to_purge(row) if row else None
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to get pending purge: {e}", cause=e) from e

    async def list_due_purges(self, now: datetime) -> list[PendingPurge]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT * FROM attribute_pending_purges WHERE due_at <= $1 ORDER BY due_at",
                    now,
                )
            return [self._row_to_purge(row) for row in rows]
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to list pending purges: {e}", cause=e) from e

    async def delete_purge(self, definition_id: UUID) -> bool:
        try:
            async with self._pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM attribute_pending_purges WHERE definition_id = $1",
                    definition_id,
                )
            return result == "DELETE 1"
        except StoreError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to delete pending purge: {e}", cause=e) from e

    # Row mapping

    def _row_to_definition(self, row: asyncpg.Record) -> AttributeDefinition:
        return AttributeDefinition(
            id=row["id"],
            name=row["name"],
            label=row["label"],
            kind=row["kind"],
            description=row["description"] or "",
            placeholder=row["placeholder"] or "",
            help_text=row["help_text"] or "",
            options=_loads(row["options"]) or {},
            validation_rules=_loads(row["validation_rules"]) or {},
            display_options=_loads(row["display_options"]) or {},
            conditional_logic=_loads(row["conditional_logic"]) or {},
            group=row["group_name"],
            order=row["field_order"],
            is_required=row["is_required"],
            is_searchable=row["is_searchable"],
            is_public=row["is_public"],
            is_editable=row["is_editable"],
            status=row["status"],
            min_value=row["min_value"],
            max_value=row["max_value"],
            min_length=row["min_length"],
            max_length=row["max_length"],
            regex_pattern=row["regex_pattern"],
            default_value=_loads(row["default_value"]),
            width=row["width"],
            css_class=row["css_class"] or "",
            is_system=row["is_system"],
            created_by=row["created_by"],
            created_at=row["created_at"],
            updated_by=row["updated_by"],
            updated_at=row["updated_at"],
        )

    def _row_to_value(self, row: asyncpg.Record) -> AttributeValue:
        return AttributeValue(
            principal_id=row["principal_id"],
            definition_id=row["definition_id"],
            value=_loads(row["value"]),
            value_numeric=row["value_numeric"],
            value_date=row["value_date"],
            privacy=row["privacy"],
            is_verified=row["is_verified"],
            verification_data=_loads(row["verification_data"]) or {},
            last_updated_by=row["last_updated_by"],
            updated_at=row["updated_at"],
        )

    def _row_to_group(self, row: asyncpg.Record) -> AttributeGroup:
        return AttributeGroup(
            name=row["name"],
            label=row["label"],
            description=row["description"] or "",
            icon=row["icon"] or "",
            order=row["group_order"],
            is_active=row["is_active"],
        )

    def _row_to_purge(self, row: asyncpg.Record) -> PendingPurge:
        return PendingPurge(
            id=row["id"],
            definition_id=row["definition_id"],
            definition_name=row["definition_name"],
            snapshot=_loads(row["snapshot"]) or {},
            usage_count=row["usage_count"],
            scheduled_at=row["scheduled_at"],
            due_at=row["due_at"],
            requested_by=row["requested_by"],
        )
