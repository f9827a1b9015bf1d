"""Definition manager: the only writer of definitions and their audit trail.

Every mutation runs permission check, validation, persistence, audit
append and cache invalidation, in that order. Audit records are written
only after the store has confirmed the write.
"""

import hashlib
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from profilefields.cache import (
    DEFINITIONS_GROUP,
    LISTINGS_GROUP,
    VALUES_GROUP,
    DefinitionCache,
)
from profilefields.config import get_settings
from profilefields.config.settings import Settings
from profilefields.db.errors import ConflictError, NotFoundError
from profilefields.defaults import DEFAULT_DEFINITIONS, DEFAULT_GROUPS
from profilefields.enums import AttributeStatus, ChangeType, Permission, PrivacyLevel
from profilefields.errors import (
    DuplicateName,
    HasDependentData,
    NotFound,
    PermissionDenied,
    ProfileFieldsError,
    StorageError,
    SystemProtected,
    ValidationFailed,
)
from profilefields.kinds import NUMERIC_KINDS
from profilefields.kinds.base import clean_multiline, clean_text, is_empty, to_number
from profilefields.kinds.numeric import parse_date
from profilefields.models import (
    CREATABLE_FIELDS,
    MAX_ORDER,
    MUTABLE_FIELDS,
    Actor,
    AttributeDefinition,
    AttributeGroup,
    AttributeValue,
    BulkStatusResult,
    DefinitionPage,
    DefinitionQuery,
    DeleteOutcome,
    FieldError,
    HistoryRecord,
    PendingPurge,
    ReorderChange,
    ValidationResult,
    utc_now,
)
from profilefields.observability.logging import get_logger
from profilefields.observability.metrics import (
    CACHE_HITS,
    CACHE_MISSES,
    DEFINITION_MUTATIONS,
    PENDING_PURGES,
)
from profilefields.registry import KindRegistry
from profilefields.store import AttributeStore, WriteBatch
from profilefields.validation import (
    BOOLEAN_FLAGS,
    LABEL_MAX_LENGTH,
    NAME_MAX_LENGTH,
    NAME_PATTERN,
    DefinitionValidator,
    coerce_flag,
)

logger = get_logger(__name__)

# Allowed status changes; reactivation to active is open from every
# parked state.
STATUS_TRANSITIONS: dict[AttributeStatus, frozenset[AttributeStatus]] = {
    AttributeStatus.DRAFT: frozenset({AttributeStatus.ACTIVE}),
    AttributeStatus.ACTIVE: frozenset({
        AttributeStatus.INACTIVE,
        AttributeStatus.DEPRECATED,
        AttributeStatus.ARCHIVED,
    }),
    AttributeStatus.INACTIVE: frozenset({AttributeStatus.ACTIVE}),
    AttributeStatus.DEPRECATED: frozenset({AttributeStatus.ACTIVE}),
    AttributeStatus.ARCHIVED: frozenset({AttributeStatus.ACTIVE}),
}

SINGLE_LINE_KEYS = ("label", "placeholder", "css_class")
NULLABLE_KEYS = ("min_value", "max_value", "min_length", "max_length", "regex_pattern", "default_value")
MULTILINE_KEYS = ("description", "help_text")

_groups_adapter = TypeAdapter(list[AttributeGroup])
_values_adapter = TypeAdapter(list[AttributeValue])
_counts_adapter = TypeAdapter(dict[AttributeStatus, int])


def name_hash(name: str) -> str:
    """Cache key suffix for a definition name."""
    return hashlib.sha1(name.encode()).hexdigest()


def can_transition(current: AttributeStatus, target: AttributeStatus) -> bool:
    return current == target or target in STATUS_TRANSITIONS[current]


def project_value(definition: AttributeDefinition, value: Any) -> tuple[float | None, Any]:
    """Numeric and date projections stored next to a sanitized value."""
    numeric = to_number(value) if definition.kind in NUMERIC_KINDS else None
    value_date = parse_date(value) if definition.kind == "date" else None
    return numeric, value_date


def _valid_order(order: Any) -> bool:
    return isinstance(order, int) and not isinstance(order, bool) and 0 <= order <= MAX_ORDER


def clean_payload(data: Mapping[str, Any]) -> dict[str, Any]:
    """Sanitize validated definition keys into model-ready values."""
    clean: dict[str, Any] = {}
    for key, value in data.items():
        if key in SINGLE_LINE_KEYS:
            clean[key] = clean_text(value)
        elif key in MULTILINE_KEYS:
            clean[key] = clean_multiline(value)
        elif key in BOOLEAN_FLAGS:
            clean[key] = coerce_flag(value)
        elif key in ("min_value", "max_value"):
            clean[key] = to_number(value)
        elif key in ("name", "kind", "group") and isinstance(value, str):
            clean[key] = value.strip()
        elif key == "regex_pattern":
            clean[key] = value if value else None
        elif key in ("options", "validation_rules", "display_options", "conditional_logic"):
            clean[key] = dict(value) if value else {}
        else:
            clean[key] = value
    return {key: value for key, value in clean.items() if value is not None or key in NULLABLE_KEYS}


def _pydantic_errors(error: PydanticValidationError) -> list[FieldError]:
    return [
        FieldError(
            field=".".join(str(part) for part in item["loc"]) or "definition",
            code="invalid_value",
            message=item["msg"],
        )
        for item in error.errors()
    ]


class DefinitionManager:
    """CRUD, ordering, lifecycle and audit for attribute definitions.

    Read paths consult the cache first and repopulate it on a miss. Write
    paths invalidate every affected key before returning.
    """

    def __init__(
        self,
        store: AttributeStore,
        cache: DefinitionCache,
        registry: KindRegistry,
        validator: DefinitionValidator | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            store: Definition, value and history storage
            cache: Shared definition cache
            registry: Kind registry used for values and defaults
            validator: Definition validator (built from the registry if omitted)
            settings: Engine settings (process settings if omitted)
        """
        self._settings = settings or get_settings()
        self._store = store
        self._cache = cache
        self._registry = registry
        self._validator = validator or DefinitionValidator(registry, self._settings.validation)

    @property
    def store(self) -> AttributeStore:
        return self._store

    @property
    def registry(self) -> KindRegistry:
        return self._registry

    @property
    def validator(self) -> DefinitionValidator:
        return self._validator

    # Authorization

    def authorize(self, actor: Actor, permission: Permission) -> None:
        """Raise PermissionDenied unless the actor holds the permission."""
        if not actor.can(permission):
            logger.warning(
                "permission_denied",
                actor_id=str(actor.id) if actor.id else None,
                permission=permission.value,
            )
            raise PermissionDenied(f"Missing permission: {permission.value}")

    # Read paths

    async def get(self, definition_id: UUID) -> AttributeDefinition:
        """Get a definition by id.

        Raises:
            NotFound: If no definition has this id
        """
        key = f"definition:{definition_id}"
        cached = await self._cache_read(DEFINITIONS_GROUP, key, "definition")
        if cached is not None:
            definition = self._decode(cached, AttributeDefinition.model_validate_json, key)
            if definition is not None:
                return definition

        definition = await self._store.get_definition(definition_id)
        if definition is None:
            raise NotFound(f"Field not found: {definition_id}")
        await self._cache.set(DEFINITIONS_GROUP, key, definition.model_dump_json())
        return definition

    async def get_by_name(self, name: str) -> AttributeDefinition | None:
        """Get a definition by its unique name, None if absent."""
        key = f"definition-by-name:{name_hash(name)}"
        cached = await self._cache_read(DEFINITIONS_GROUP, key, "definition_by_name")
        if cached is not None:
            definition = self._decode(cached, AttributeDefinition.model_validate_json, key)
            if definition is not None:
                return definition

        definition = await self._store.get_definition_by_name(name)
        if definition is not None:
            await self._cache.set(DEFINITIONS_GROUP, key, definition.model_dump_json())
        return definition

    async def list_definitions(self, query: DefinitionQuery | None = None) -> DefinitionPage:
        """List definitions with filters, ordering and pagination."""
        query = query or DefinitionQuery()
        key = f"definition-list:{query.fingerprint()}"
        cached = await self._cache_read(LISTINGS_GROUP, key, "definition_list")
        if cached is not None:
            page = self._decode(cached, DefinitionPage.model_validate_json, key)
            if page is not None:
                return page

        items = await self._store.query_definitions(query)
        total = await self._store.count_definitions(query)
        page = DefinitionPage(items=items, total=total, limit=query.limit, offset=query.offset)
        await self._cache.set(LISTINGS_GROUP, key, page.model_dump_json())
        return page

    async def count(self, query: DefinitionQuery | None = None) -> int:
        """Count definitions matching the filters."""
        query = query or DefinitionQuery()
        key = f"definition-count:{query.fingerprint()}"
        cached = await self._cache_read(LISTINGS_GROUP, key, "definition_count")
        if cached is not None and cached.isdigit():
            return int(cached)

        total = await self._store.count_definitions(query)
        await self._cache.set(LISTINGS_GROUP, key, str(total))
        return total

    async def list_groups(self) -> list[AttributeGroup]:
        """Group metadata ordered by position."""
        cached = await self._cache_read(LISTINGS_GROUP, "groups", "groups")
        if cached is not None:
            groups = self._decode(cached, _groups_adapter.validate_json, "groups")
            if groups is not None:
                return groups

        groups = await self._store.list_groups()
        await self._cache.set(LISTINGS_GROUP, "groups", _groups_adapter.dump_json(groups).decode())
        return groups

    async def status_counts(self) -> dict[AttributeStatus, int]:
        """Number of definitions per status; cached for a short TTL."""
        cached = await self._cache_read(LISTINGS_GROUP, "definition-stats", "stats")
        if cached is not None:
            counts = self._decode(cached, _counts_adapter.validate_json, "definition-stats")
            if counts is not None:
                return counts

        counts = await self._store.status_counts()
        await self._cache.set(
            LISTINGS_GROUP,
            "definition-stats",
            _counts_adapter.dump_json(counts).decode(),
            ttl=self._settings.cache.stats_ttl_seconds,
        )
        return counts

    async def history(self, definition_id: UUID, limit: int = 50) -> list[HistoryRecord]:
        """Audit trail for a definition, newest first."""
        return await self._store.list_history(definition_id, limit=limit)

    async def usage_count(self, definition_id: UUID) -> int:
        """Number of principals holding a value for the definition."""
        return await self._store.usage_count(definition_id)

    # Create

    async def create(
        self,
        data: Mapping[str, Any],
        actor: Actor,
        is_system: bool = False,
    ) -> UUID:
        """Create a definition.

        Args:
            data: Definition fields; keys outside the creatable set are ignored
            actor: Acting principal, needs manage_fields
            is_system: Mark the definition as a protected built-in

        Returns:
            Id of the new definition

        Raises:
            PermissionDenied, ValidationFailed, DuplicateName
        """
        self.authorize(actor, Permission.MANAGE_FIELDS)
        try:
            definition = await self.build_definition(data, actor, is_system=is_system)
            if await self._store.get_definition_by_name(definition.name) is not None:
                raise DuplicateName(definition.name)
            try:
                await self._store.insert_definition(definition)
            except ConflictError as e:
                raise DuplicateName(definition.name) from e
        except ProfileFieldsError as e:
            self._count("create", e)
            raise

        await self._after_create(definition, actor)
        return definition.id

    async def build_definition(
        self,
        data: Mapping[str, Any],
        actor: Actor,
        is_system: bool = False,
        next_orders: dict[str, int] | None = None,
    ) -> AttributeDefinition:
        """Validate and sanitize a new definition without persisting it.

        Args:
            data: Incoming definition fields
            actor: Acting principal, recorded as creator
            is_system: Protected built-in flag
            next_orders: Per-group next order shared across one batch;
                updated in place when an order is assigned

        Raises:
            ValidationFailed: If any check fails
        """
        payload = {key: value for key, value in data.items() if key in CREATABLE_FIELDS}
        result = self._validator.validate_definition(payload)
        if not result.is_valid:
            raise ValidationFailed(result.errors)

        clean = clean_payload(payload)
        clean.setdefault("group", "basic")
        if clean.get("order") is None:
            clean["order"] = await self._next_order(clean["group"], next_orders)
        elif next_orders is not None:
            group = clean["group"]
            next_orders[group] = max(
                next_orders.get(group, 0), clean["order"] + self._settings.lifecycle.order_step
            )

        now = utc_now()
        definition = self._to_model({
            **clean,
            "is_system": is_system,
            "created_by": actor.id,
            "created_at": now,
            "updated_by": actor.id,
            "updated_at": now,
        })
        self._sanitize_default(definition)
        return definition

    async def _next_order(self, group: str, next_orders: dict[str, int] | None) -> int:
        step = self._settings.lifecycle.order_step
        if next_orders is not None and group in next_orders:
            order = next_orders[group]
        else:
            current = await self._store.max_order(group)
            order = step if current is None else current + step
        if order > MAX_ORDER:
            raise ValidationFailed([
                FieldError(
                    field="order",
                    code="invalid_order",
                    message=f"Group '{group}' has no free position after {MAX_ORDER}.",
                )
            ])
        if next_orders is not None:
            next_orders[group] = order + step
        return order

    async def _after_create(self, definition: AttributeDefinition, actor: Actor) -> None:
        await self._record(definition.id, ChangeType.CREATED, actor, new=definition.snapshot())
        await self._invalidate_definition(definition)
        DEFINITION_MUTATIONS.labels(operation="create", outcome="success").inc()
        logger.info(
            "definition_created",
            definition_id=str(definition.id),
            name=definition.name,
            kind=definition.kind,
            group=definition.group,
            order=definition.order,
        )

    # Update

    async def update(
        self,
        definition_id: UUID,
        data: Mapping[str, Any],
        actor: Actor,
        force: bool = False,
        reason: str | None = None,
    ) -> AttributeDefinition:
        """Update the mutable keys of a definition.

        Args:
            definition_id: Definition to change
            data: Changed fields; ``name`` and ``kind`` may only repeat
                their current values
            actor: Acting principal, needs manage_fields
            force: Allow changes to system definitions
            reason: Optional note stored in the audit record

        Raises:
            PermissionDenied, NotFound, SystemProtected, ValidationFailed,
            DuplicateName
        """
        self.authorize(actor, Permission.MANAGE_FIELDS)
        try:
            existing = await self._load(definition_id)
            if existing.is_system and not force:
                raise SystemProtected(f"Field '{existing.name}' is a system field")
            updated = await self.build_update(existing, data, actor)
            await self._write_update(updated)
        except ProfileFieldsError as e:
            self._count("update", e)
            raise

        await self._after_update(existing, updated, actor, reason)
        return updated

    async def build_update(
        self,
        existing: AttributeDefinition,
        data: Mapping[str, Any],
        actor: Actor,
    ) -> AttributeDefinition:
        """Validate changes against an existing definition without persisting.

        Raises:
            ValidationFailed: If any check fails
        """
        result = ValidationResult()
        for key in ("name", "kind"):
            if key in data and data[key] != getattr(existing, key):
                result.add(key, f"{key}_immutable", f"Field {key} cannot be changed.")

        changes = {key: value for key, value in data.items() if key in MUTABLE_FIELDS}
        current = existing.model_dump(include=set(MUTABLE_FIELDS) | {"kind"})
        result.merge(
            self._validator.validate_definition({**current, **changes}, existing_id=existing.id)
        )

        if "status" in changes and result.is_valid:
            target = AttributeStatus(getattr(changes["status"], "value", changes["status"]))
            if not can_transition(existing.status, target):
                result.add(
                    "status",
                    "invalid_status_transition",
                    f"Cannot change status from {existing.status.value} to {target.value}.",
                )
        if not result.is_valid:
            raise ValidationFailed(result.errors)

        clean = clean_payload(changes)
        updated = self._to_model({
            **existing.model_dump(),
            **clean,
            "updated_by": actor.id,
            "updated_at": utc_now(),
        })
        if "default_value" in clean:
            self._sanitize_default(updated)
        return updated

    async def _write_update(self, definition: AttributeDefinition) -> None:
        try:
            await self._store.update_definition(definition)
        except ConflictError as e:
            raise DuplicateName(definition.name) from e
        except NotFoundError as e:
            raise NotFound(f"Field not found: {definition.id}") from e

    async def _after_update(
        self,
        before: AttributeDefinition,
        after: AttributeDefinition,
        actor: Actor,
        reason: str | None = None,
    ) -> None:
        await self._record(
            after.id,
            ChangeType.UPDATED,
            actor,
            old=before.snapshot(),
            new=after.snapshot(),
            reason=reason,
        )
        if before.status == AttributeStatus.DEPRECATED and after.status != before.status:
            await self._cancel_purge(after.id)
        await self._invalidate_definition(after)
        DEFINITION_MUTATIONS.labels(operation="update", outcome="success").inc()
        logger.info(
            "definition_updated",
            definition_id=str(after.id),
            name=after.name,
            changed=sorted(
                key for key in MUTABLE_FIELDS if getattr(before, key) != getattr(after, key)
            ),
        )

    # Status

    async def update_status(
        self,
        definition_id: UUID,
        status: AttributeStatus | str,
        actor: Actor,
        reason: str | None = None,
        force: bool = False,
    ) -> AttributeDefinition:
        """Move a definition through its lifecycle.

        Same-state changes are no-ops. Reactivating a deprecated
        definition cancels its pending purge.

        Raises:
            PermissionDenied, NotFound, SystemProtected, ValidationFailed
        """
        self.authorize(actor, Permission.MANAGE_FIELDS)
        try:
            try:
                target = AttributeStatus(status)
            except ValueError as e:
                raise ValidationFailed([
                    FieldError(field="status", code="invalid_status", message=f"Unknown status: {status}")
                ]) from e

            existing = await self._load(definition_id)
            if existing.status == target:
                return existing
            if existing.is_system and not force:
                raise SystemProtected(f"Field '{existing.name}' is a system field")
            if not can_transition(existing.status, target):
                raise ValidationFailed([
                    FieldError(
                        field="status",
                        code="invalid_status_transition",
                        message=(
                            f"Cannot change status from {existing.status.value} "
                            f"to {target.value}."
                        ),
                    )
                ])

            updated = existing.model_copy(
                update={"status": target, "updated_by": actor.id, "updated_at": utc_now()}
            )
            await self._write_update(updated)
        except ProfileFieldsError as e:
            self._count("update_status", e)
            raise

        await self._record(
            updated.id,
            ChangeType.STATUS_CHANGE,
            actor,
            old={"status": existing.status.value},
            new={"status": target.value},
            reason=reason,
        )
        if existing.status == AttributeStatus.DEPRECATED:
            await self._cancel_purge(updated.id)
        await self._invalidate_definition(updated)
        DEFINITION_MUTATIONS.labels(operation="update_status", outcome="success").inc()
        logger.info(
            "definition_status_changed",
            definition_id=str(updated.id),
            name=updated.name,
            old_status=existing.status.value,
            new_status=target.value,
        )
        return updated

    async def bulk_update_status(
        self,
        definition_ids: Iterable[UUID],
        status: AttributeStatus | str,
        actor: Actor,
        reason: str | None = None,
    ) -> BulkStatusResult:
        """Change the status of many definitions; failures do not stop the batch."""
        self.authorize(actor, Permission.MANAGE_FIELDS)
        outcome = BulkStatusResult()
        for definition_id in definition_ids:
            try:
                before = await self._load(definition_id)
                after = await self.update_status(definition_id, status, actor, reason=reason)
            except ProfileFieldsError as e:
                outcome.failed[str(definition_id)] = e.message
                continue
            if after.status == before.status:
                outcome.unchanged.append(definition_id)
            else:
                outcome.updated.append(definition_id)

        logger.info(
            "definitions_bulk_status_changed",
            status=str(getattr(status, "value", status)),
            updated=len(outcome.updated),
            unchanged=len(outcome.unchanged),
            failed=len(outcome.failed),
        )
        return outcome

    # Delete

    async def delete(
        self,
        definition_id: UUID,
        actor: Actor,
        force: bool = False,
    ) -> DeleteOutcome:
        """Delete a definition, or deprecate it if principals hold values.

        Without ``force``, a definition with stored values is moved to
        deprecated and a purge is scheduled after the retention window;
        HasDependentData is raised to report that. With ``force`` (or
        when no values exist) the definition and its values are removed.

        Raises:
            PermissionDenied, NotFound, SystemProtected, HasDependentData
        """
        self.authorize(actor, Permission.MANAGE_FIELDS)
        try:
            existing = await self._load(definition_id)
            if existing.is_system and not force:
                raise SystemProtected(f"Field '{existing.name}' is a system field")

            usage = await self._store.usage_count(definition_id)
            if usage > 0 and not force:
                purge = await self._schedule_purge(existing, usage, actor)
                raise HasDependentData(usage, purge)

            had_purge = await self._store.get_purge(definition_id) is not None
            if not await self._store.delete_definition(definition_id):
                raise NotFound(f"Field not found: {definition_id}")
        except ProfileFieldsError as e:
            self._count("delete", e)
            raise

        if had_purge:
            PENDING_PURGES.dec()
        await self._record(definition_id, ChangeType.DELETED, actor, old=existing.snapshot())
        await self._invalidate_definition(existing)
        if force:
            await self._cache.flush_group(DEFINITIONS_GROUP)
        if usage:
            await self._cache.flush_group(VALUES_GROUP)
        DEFINITION_MUTATIONS.labels(operation="delete", outcome="success").inc()
        logger.info(
            "definition_deleted",
            definition_id=str(definition_id),
            name=existing.name,
            usage_count=usage,
            forced=force,
        )
        return DeleteOutcome(
            definition_id=definition_id,
            name=existing.name,
            usage_count=usage,
            forced=force,
        )

    async def _schedule_purge(
        self,
        definition: AttributeDefinition,
        usage: int,
        actor: Actor,
    ) -> PendingPurge:
        existing_purge = await self._store.get_purge(definition.id)
        if existing_purge is not None and definition.status == AttributeStatus.DEPRECATED:
            return existing_purge

        now = utc_now()
        purge = PendingPurge(
            definition_id=definition.id,
            definition_name=definition.name,
            snapshot=definition.snapshot(),
            usage_count=usage,
            scheduled_at=now,
            due_at=now + timedelta(days=self._settings.lifecycle.purge_retention_days),
            requested_by=actor.id,
        )
        deprecated = definition.model_copy(
            update={"status": AttributeStatus.DEPRECATED, "updated_by": actor.id, "updated_at": now}
        )
        await self._write_update(deprecated)
        await self._store.save_purge(purge)
        if existing_purge is None:
            PENDING_PURGES.inc()

        await self._record(
            definition.id,
            ChangeType.DEPRECATED,
            actor,
            old=definition.snapshot(),
            new=deprecated.snapshot(),
            reason=f"Deleted with {usage} stored value(s); purge due {purge.due_at.isoformat()}",
        )
        await self._invalidate_definition(deprecated)
        logger.warning(
            "definition_deprecated_with_data",
            definition_id=str(definition.id),
            name=definition.name,
            usage_count=usage,
            due_at=purge.due_at.isoformat(),
        )
        return purge

    async def _cancel_purge(self, definition_id: UUID) -> None:
        if await self._store.delete_purge(definition_id):
            PENDING_PURGES.dec()
            logger.info("definition_purge_cancelled", definition_id=str(definition_id))

    async def due_purges(self, now: datetime | None = None) -> list[PendingPurge]:
        """Pending purges whose retention window has passed."""
        return await self._store.list_due_purges(now or utc_now())

    async def run_due_purges(
        self,
        actor: Actor | None = None,
        now: datetime | None = None,
    ) -> list[DeleteOutcome]:
        """Force-delete every due purge; called by an external scheduler.

        Purges whose definition is gone or no longer deprecated are
        dropped instead of executed.
        """
        actor = actor or Actor.system()
        outcomes: list[DeleteOutcome] = []
        for purge in await self.due_purges(now):
            definition = await self._store.get_definition(purge.definition_id)
            if definition is None or definition.status != AttributeStatus.DEPRECATED:
                await self._cancel_purge(purge.definition_id)
                logger.info(
                    "definition_purge_skipped",
                    definition_id=str(purge.definition_id),
                    name=purge.definition_name,
                )
                continue
            try:
                outcomes.append(await self.delete(purge.definition_id, actor, force=True))
            except ProfileFieldsError as e:
                logger.error(
                    "definition_purge_failed",
                    definition_id=str(purge.definition_id),
                    name=purge.definition_name,
                    error=e.message,
                )
        return outcomes

    # Ordering

    async def reorder(
        self,
        changes: Mapping[UUID, ReorderChange | Mapping[str, Any]],
        actor: Actor,
    ) -> list[AttributeDefinition]:
        """Apply new positions (and optionally groups) in one atomic write.

        Every change is checked before anything is written; one bad
        entry rejects the whole batch.

        Raises:
            PermissionDenied, NotFound, ValidationFailed
        """
        self.authorize(actor, Permission.MANAGE_FIELDS)
        result = ValidationResult()
        pairs: list[tuple[AttributeDefinition, AttributeDefinition]] = []
        now = utc_now()

        try:
            for definition_id, raw in changes.items():
                try:
                    change = (
                        raw if isinstance(raw, ReorderChange) else ReorderChange.model_validate(raw)
                    )
                except PydanticValidationError as e:
                    for error in _pydantic_errors(e):
                        result.add(f"{definition_id}.{error.field}", "invalid_order", error.message)
                    continue
                if change.group is not None and not NAME_PATTERN.match(change.group):
                    result.add(
                        f"{definition_id}.group",
                        "invalid_group",
                        "Field group must contain only lowercase letters, numbers, and underscores.",
                    )
                    continue
                before = await self._load(definition_id)
                after = before.model_copy(update={
                    "order": change.order,
                    "group": change.group or before.group,
                    "updated_by": actor.id,
                    "updated_at": now,
                })
                pairs.append((before, after))

            if not result.is_valid:
                raise ValidationFailed(result.errors)
            if not pairs:
                return []
            try:
                await self._store.apply_batch(WriteBatch(updates=[after for _, after in pairs]))
            except NotFoundError as e:
                raise NotFound(str(e)) from e
        except ProfileFieldsError as e:
            self._count("reorder", e)
            raise

        for before, after in pairs:
            await self._record(
                after.id,
                ChangeType.UPDATED,
                actor,
                old={"order": before.order, "group": before.group},
                new={"order": after.order, "group": after.group},
                reason="reorder",
            )
        await self._flush_definitions()
        DEFINITION_MUTATIONS.labels(operation="reorder", outcome="success").inc()
        logger.info("definitions_reordered", count=len(pairs))
        return [after for _, after in pairs]

    # Duplicate

    async def available_name(self, base: str, taken: set[str] | None = None) -> str:
        """First free name among ``base``, ``base_1``, ``base_2``, ...

        Args:
            base: Preferred name
            taken: Names already claimed by the caller but not yet stored
        """
        taken = taken or set()
        base = base[:NAME_MAX_LENGTH].rstrip("_")
        candidate = base
        counter = 1
        while candidate in taken or await self._store.get_definition_by_name(candidate) is not None:
            suffix = f"_{counter}"
            candidate = base[: NAME_MAX_LENGTH - len(suffix)].rstrip("_") + suffix
            counter += 1
        return candidate

    async def duplicate(
        self,
        definition_id: UUID,
        actor: Actor,
        group: str | None = None,
    ) -> UUID:
        """Clone a definition as a draft at the end of its (or another) group.

        The copy is named ``<name>_copy`` (then ``_copy_1``, ``_copy_2``...)
        and labelled ``<label> (Copy)``.
        """
        self.authorize(actor, Permission.MANAGE_FIELDS)
        source = await self._load(definition_id)
        data = source.model_dump(include=set(CREATABLE_FIELDS))
        data.update({
            "name": await self.available_name(f"{source.name}_copy"),
            "label": f"{source.label} (Copy)"[:LABEL_MAX_LENGTH],
            "status": AttributeStatus.DRAFT.value,
            "group": group or source.group,
            "order": None,
        })
        new_id = await self.create(data, actor)
        logger.info(
            "definition_duplicated",
            source_id=str(definition_id),
            definition_id=str(new_id),
            name=data["name"],
        )
        return new_id

    # Batches

    async def commit_batch(
        self,
        batch: WriteBatch,
        actor: Actor,
        previous: Mapping[UUID, AttributeDefinition] | None = None,
        reason: str | None = None,
    ) -> None:
        """Persist a prepared batch atomically, then audit and invalidate.

        Args:
            batch: Prepared inserts, updates, groups and values
            actor: Acting principal
            previous: Pre-update state of every definition in ``batch.updates``
            reason: Note stored on the audit records
        """
        if batch.is_empty:
            return
        try:
            await self._store.apply_batch(batch)
        except ConflictError:
            DEFINITION_MUTATIONS.labels(operation="batch", outcome="conflict").inc()
            raise
        except NotFoundError as e:
            DEFINITION_MUTATIONS.labels(operation="batch", outcome="not_found").inc()
            raise NotFound(str(e)) from e

        previous = previous or {}
        for definition in batch.inserts:
            await self._record(
                definition.id, ChangeType.CREATED, actor, new=definition.snapshot(), reason=reason
            )
        for definition in batch.updates:
            before = previous.get(definition.id)
            await self._record(
                definition.id,
                ChangeType.UPDATED,
                actor,
                old=before.snapshot() if before else None,
                new=definition.snapshot(),
                reason=reason,
            )
        await self._flush_definitions()
        if batch.values:
            await self._cache.flush_group(VALUES_GROUP)
        DEFINITION_MUTATIONS.labels(operation="batch", outcome="success").inc()
        logger.info(
            "definition_batch_committed",
            inserts=len(batch.inserts),
            updates=len(batch.updates),
            groups=len(batch.groups),
            values=len(batch.values),
        )

    # Values

    async def set_value(
        self,
        principal_id: UUID,
        definition_id: UUID,
        value: Any,
        actor: Actor,
        privacy: PrivacyLevel = PrivacyLevel.PUBLIC,
    ) -> AttributeValue:
        """Validate, sanitize and store one principal's value.

        Principals may write their own editable values; anything else
        needs edit_values.

        Raises:
            PermissionDenied, NotFound, ValidationFailed
        """
        definition = await self.get(definition_id)
        own_value = actor.id is not None and actor.id == principal_id
        if not (own_value and definition.is_editable):
            self.authorize(actor, Permission.EDIT_VALUES)
        if definition.status != AttributeStatus.ACTIVE:
            raise ValidationFailed([
                FieldError(
                    field=definition.name,
                    code="field_inactive",
                    message=f"The {definition.label} field is not accepting values.",
                )
            ])

        result = self._validator.validate_value(definition, value)
        if not result.is_valid:
            raise ValidationFailed(result.errors)

        clean = self._validator.sanitize_value(definition, value)
        numeric, value_date = project_value(definition, clean)
        stored = AttributeValue(
            principal_id=principal_id,
            definition_id=definition_id,
            value=clean,
            value_numeric=numeric,
            value_date=value_date,
            privacy=privacy,
            last_updated_by=actor.id,
        )
        try:
            await self._store.upsert_value(stored)
        except NotFoundError as e:
            raise NotFound(f"Field not found: {definition_id}") from e

        await self._cache.delete(VALUES_GROUP, f"principal-values:{principal_id}")
        logger.info(
            "attribute_value_saved",
            principal_id=str(principal_id),
            definition_id=str(definition_id),
            name=definition.name,
        )
        return stored

    async def get_values(self, principal_id: UUID) -> list[AttributeValue]:
        """Every stored value of a principal."""
        key = f"principal-values:{principal_id}"
        cached = await self._cache_read(VALUES_GROUP, key, "principal_values")
        if cached is not None:
            values = self._decode(cached, _values_adapter.validate_json, key)
            if values is not None:
                return values

        values = await self._store.list_values(principal_id)
        await self._cache.set(VALUES_GROUP, key, _values_adapter.dump_json(values).decode())
        return values

    # Groups

    async def save_group(
        self,
        group: AttributeGroup | Mapping[str, Any],
        actor: Actor,
    ) -> AttributeGroup:
        """Insert or replace group metadata."""
        self.authorize(actor, Permission.MANAGE_FIELDS)
        group = self.build_group(group)
        await self._store.save_group(group)
        await self._cache.flush_group(LISTINGS_GROUP)
        logger.info("attribute_group_saved", group=group.name)
        return group

    def build_group(self, group: AttributeGroup | Mapping[str, Any]) -> AttributeGroup:
        """Validate and sanitize group metadata.

        Raises:
            ValidationFailed: If the key or label is unusable
        """
        data = group.model_dump() if isinstance(group, AttributeGroup) else dict(group)
        result = ValidationResult()
        name = data.get("name")
        if not isinstance(name, str) or not NAME_PATTERN.match(name) or len(name) > NAME_MAX_LENGTH:
            result.add(
                "name",
                "invalid_group",
                "Group key must contain only lowercase letters, numbers, and underscores.",
            )
        label = clean_text(data.get("label") or name or "")
        if is_empty(label):
            result.add("label", "required", "The label field is required.")
        elif len(label) > LABEL_MAX_LENGTH:
            result.add("label", "label_too_long", f"Group label must be {LABEL_MAX_LENGTH} characters or less.")
        if "order" in data and not _valid_order(data["order"]):
            result.add("order", "invalid_order", f"Group order must be between 0 and {MAX_ORDER}.")
        if not result.is_valid:
            raise ValidationFailed(result.errors)
        try:
            return AttributeGroup.model_validate({
                **data,
                "label": label,
                "description": clean_multiline(data.get("description")),
                "icon": clean_text(data.get("icon")),
            })
        except PydanticValidationError as e:
            raise ValidationFailed(_pydantic_errors(e)) from e

    async def delete_group(self, name: str, actor: Actor) -> bool:
        """Remove group metadata; definitions keep their group key."""
        self.authorize(actor, Permission.MANAGE_FIELDS)
        deleted = await self._store.delete_group(name)
        if deleted:
            await self._cache.flush_group(LISTINGS_GROUP)
            logger.info("attribute_group_deleted", group=name)
        return deleted

    async def reorder_groups(
        self,
        orders: Mapping[str, int],
        actor: Actor,
    ) -> list[AttributeGroup]:
        """Move groups to new positions in one atomic write.

        Every group must already have metadata. One bad entry rejects the
        whole batch.

        Raises:
            PermissionDenied, NotFound, ValidationFailed
        """
        self.authorize(actor, Permission.MANAGE_FIELDS)
        result = ValidationResult()
        moved: list[AttributeGroup] = []
        try:
            for name, order in orders.items():
                if not _valid_order(order):
                    result.add(
                        f"{name}.order",
                        "invalid_order",
                        f"Group order must be between 0 and {MAX_ORDER}.",
                    )
                    continue
                group = await self._store.get_group(name)
                if group is None:
                    raise NotFound(f"Group not found: {name}")
                moved.append(group.model_copy(update={"order": order}))
            if not result.is_valid:
                raise ValidationFailed(result.errors)
            if not moved:
                return []
            await self._store.apply_batch(WriteBatch(groups=moved))
        except ProfileFieldsError as e:
            self._count("reorder_groups", e)
            raise

        await self._cache.flush_group(LISTINGS_GROUP)
        DEFINITION_MUTATIONS.labels(operation="reorder_groups", outcome="success").inc()
        logger.info("attribute_groups_reordered", count=len(moved))
        return moved

    async def count_in_group(self, name: str) -> int:
        """Definitions of any status filed under a group key."""
        return await self.count(DefinitionQuery(group=name))

    async def group_counts(self) -> dict[str, int]:
        """Definition count for every group with metadata, in group order."""
        return {group.name: await self.count_in_group(group.name) for group in await self.list_groups()}

    # Defaults

    async def install_default_definitions(self, actor: Actor) -> list[UUID]:
        """Seed the starter groups and definitions.

        Definitions are created as system definitions. Names and group keys
        that already exist are left untouched, so the call is safe to
        repeat.

        Returns:
            Ids of the definitions created by this call
        """
        self.authorize(actor, Permission.MANAGE_FIELDS)
        for group in DEFAULT_GROUPS:
            if await self._store.get_group(group["name"]) is None:
                await self.save_group(group, actor)

        created: list[UUID] = []
        for data in DEFAULT_DEFINITIONS:
            if await self._store.get_definition_by_name(data["name"]) is not None:
                continue
            try:
                created.append(await self.create(data, actor, is_system=True))
            except DuplicateName:
                logger.info("default_definition_exists", name=data["name"])
        logger.info(
            "default_definitions_installed",
            created=len(created),
            skipped=len(DEFAULT_DEFINITIONS) - len(created),
        )
        return created

    # Internals

    async def _load(self, definition_id: UUID) -> AttributeDefinition:
        definition = await self._store.get_definition(definition_id)
        if definition is None:
            raise NotFound(f"Field not found: {definition_id}")
        return definition

    def _to_model(self, data: Mapping[str, Any]) -> AttributeDefinition:
        try:
            return AttributeDefinition.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationFailed(_pydantic_errors(e)) from e

    def _sanitize_default(self, definition: AttributeDefinition) -> None:
        if not is_empty(definition.default_value):
            definition.default_value = self._registry.sanitize(definition, definition.default_value)

    async def _record(
        self,
        definition_id: UUID,
        change_type: ChangeType,
        actor: Actor,
        old: dict[str, Any] | None = None,
        new: dict[str, Any] | None = None,
        reason: str | None = None,
    ) -> None:
        """Append an audit record for a committed change.

        The change is already persisted, so a failing audit write is
        logged rather than reported as a failed mutation.
        """
        record = HistoryRecord(
            definition_id=definition_id,
            change_type=change_type,
            old_values=old,
            new_values=new,
            changed_by=actor.id,
            reason=reason,
            origin_address=actor.address,
        )
        try:
            await self._store.append_history(record)
        except StorageError as e:
            logger.error(
                "definition_history_append_failed",
                definition_id=str(definition_id),
                change_type=change_type.value,
                error=e.message,
            )

    async def _invalidate_definition(self, definition: AttributeDefinition) -> None:
        await self._cache.delete(DEFINITIONS_GROUP, f"definition:{definition.id}")
        await self._cache.delete(DEFINITIONS_GROUP, f"definition-by-name:{name_hash(definition.name)}")
        await self._cache.flush_group(LISTINGS_GROUP)

    async def _flush_definitions(self) -> None:
        await self._cache.flush_group(DEFINITIONS_GROUP)
        await self._cache.flush_group(LISTINGS_GROUP)

    async def _cache_read(self, group: str, key: str, key_kind: str) -> str | None:
        cached = await self._cache.get(group, key)
        if cached is None:
            CACHE_MISSES.labels(key_kind=key_kind).inc()
        else:
            CACHE_HITS.labels(key_kind=key_kind).inc()
        return cached

    def _decode(self, raw: str, parse: Any, key: str) -> Any:
        try:
            return parse(raw)
        except PydanticValidationError:
            # Corrupted entry, treat as miss
            logger.warning("cache_entry_corrupted", key=key)
            return None

    def _count(self, operation: str, error: ProfileFieldsError) -> None:
        DEFINITION_MUTATIONS.labels(operation=operation, outcome=error.error_code.value).inc()
