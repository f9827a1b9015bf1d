"""Import and export of portable definition documents.

An import plans every entry first (validation, conflict handling, order
assignment) and then commits all valid entries in one atomic batch. A dry
run follows the same path and stops before the commit, so a preview and
the real run always agree.
"""

import json
from collections.abc import Mapping
from typing import Any
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from profilefields.config import get_settings
from profilefields.config.settings import Settings
from profilefields.enums import ConflictMode, Permission, PrivacyLevel
from profilefields.errors import (
    ConflictUnresolved,
    FormatIncompatible,
    ProfileFieldsError,
    ValidationFailed,
)
from profilefields.manager import DefinitionManager, project_value
from profilefields.models import (
    Actor,
    AttributeDefinition,
    AttributeValue,
    DefinitionQuery,
    DocumentData,
    ExportOptions,
    FieldError,
    ImportDocument,
    ImportOptions,
    ImportResult,
)
from profilefields.observability.logging import get_logger
from profilefields.observability.metrics import EXPORTED_DEFINITIONS, IMPORT_ENTRIES
from profilefields.store import WriteBatch
from profilefields.validation import LABEL_MAX_LENGTH, DefinitionValidator

logger = get_logger(__name__)

# Settings sections written by include_settings
EXPORTED_SETTINGS = {"validation", "lifecycle"}

PAGE_SIZE = 500


def parse_version(version: str) -> tuple[int, int, int]:
    """Parse ``major.minor.patch``; missing parts count as zero.

    Raises:
        ValueError: If a part is not a non-negative integer
    """
    parts = str(version).strip().split(".")
    if not 1 <= len(parts) <= 3 or not all(part.isdigit() for part in parts):
        raise ValueError(f"Invalid format version: {version}")
    numbers = [int(part) for part in parts] + [0] * (3 - len(parts))
    return numbers[0], numbers[1], numbers[2]


class DefinitionTransfer:
    """Exports definitions to and imports them from ImportDocument bundles."""

    def __init__(
        self,
        manager: DefinitionManager,
        validator: DefinitionValidator | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._manager = manager
        self._validator = validator or manager.validator
        self._settings = settings or get_settings()

    @property
    def format_version(self) -> str:
        return self._settings.transfer.format_version

    # Export

    async def export(self, options: ExportOptions | None, actor: Actor) -> ImportDocument:
        """Build a portable document.

        Values are personal data and need export_values in addition to
        manage_fields.

        Raises:
            PermissionDenied: If the actor lacks a needed permission
        """
        options = options or ExportOptions()
        self._manager.authorize(actor, Permission.MANAGE_FIELDS)
        if options.include_values:
            self._manager.authorize(actor, Permission.EXPORT_VALUES)

        definitions = await self._collect(options)
        data = DocumentData()
        if options.include_definitions:
            data.definitions = [definition.to_portable() for definition in definitions]
        if options.include_groups:
            data.groups = {
                group.name: group.model_dump(mode="json", exclude={"name"})
                for group in await self._manager.list_groups()
                if options.groups is None or group.name in options.groups
            }
        if options.include_values:
            data.values = await self._export_values(definitions)
        if options.include_settings:
            data.settings = self._settings.model_dump(mode="json", include=EXPORTED_SETTINGS)

        document = ImportDocument(
            format_version=self.format_version,
            origin={
                "name": self._settings.transfer.origin,
                "exported_by": str(actor.id) if actor.id else None,
            },
            data=data,
        )
        EXPORTED_DEFINITIONS.inc(len(data.definitions))
        logger.info(
            "definitions_exported",
            definitions=len(data.definitions),
            groups=len(data.groups),
            principals=len(data.values),
            include_settings=options.include_settings,
        )
        return document

    async def export_json(self, options: ExportOptions | None, actor: Actor) -> str:
        """Export as a JSON string with camelCase top-level keys."""
        document = await self.export(options, actor)
        return document.to_json()

    async def _collect(self, options: ExportOptions) -> list[AttributeDefinition]:
        groups: tuple[str | None, ...] = options.groups if options.groups is not None else (None,)
        definitions: list[AttributeDefinition] = []
        for group in groups:
            offset = 0
            while True:
                page = await self._manager.list_definitions(
                    DefinitionQuery(
                        statuses=options.statuses,
                        group=group,
                        order_by="order",
                        limit=PAGE_SIZE,
                        offset=offset,
                    )
                )
                definitions.extend(page.items)
                offset += len(page.items)
                if not page.items or offset >= page.total:
                    break
        return definitions

    async def _export_values(
        self, definitions: list[AttributeDefinition]
    ) -> dict[str, dict[str, Any]]:
        values: dict[str, dict[str, Any]] = {}
        for definition in definitions:
            for stored in await self._manager.store.list_values_for_definition(definition.id):
                values.setdefault(str(stored.principal_id), {})[definition.name] = {
                    "value": stored.value,
                    "privacy": stored.privacy.value,
                    "updated_at": stored.updated_at.isoformat(),
                }
        return values

    # Import

    def parse(self, document: ImportDocument | Mapping[str, Any] | str) -> ImportDocument:
        """Check structure and format version of an incoming document.

        Raises:
            ValidationFailed: If the document is not a well-formed bundle
            FormatIncompatible: If it was written by a newer format
        """
        if isinstance(document, ImportDocument):
            parsed = document
        else:
            if isinstance(document, str):
                try:
                    document = json.loads(document)
                except json.JSONDecodeError as e:
                    raise ValidationFailed([
                        FieldError(
                            field="document",
                            code="invalid_document",
                            message=f"Import file is not valid JSON: {e.msg}",
                        )
                    ]) from e
            if not isinstance(document, Mapping):
                raise ValidationFailed([
                    FieldError(
                        field="document",
                        code="invalid_document",
                        message="Invalid import file structure.",
                    )
                ])
            try:
                parsed = ImportDocument.model_validate(document)
            except PydanticValidationError as e:
                raise ValidationFailed([
                    FieldError(
                        field=".".join(str(part) for part in item["loc"]) or "document",
                        code="invalid_document",
                        message=item["msg"],
                    )
                    for item in e.errors()
                ]) from e

        try:
            incoming = parse_version(parsed.format_version)
        except ValueError as e:
            raise ValidationFailed([
                FieldError(field="formatVersion", code="invalid_format_version", message=str(e))
            ]) from e
        if incoming > parse_version(self.format_version):
            raise FormatIncompatible(parsed.format_version, self.format_version)
        return parsed

    async def import_document(
        self,
        document: ImportDocument | Mapping[str, Any] | str,
        options: ImportOptions | None,
        actor: Actor,
    ) -> ImportResult:
        """Apply a document with the configured conflict policy.

        Invalid entries are reported per entry and never stop the others.
        All valid changes are written in one atomic batch; with
        ``dry_run`` nothing is written and ``field_mapping`` holds the
        ids the entries would receive.

        Raises:
            PermissionDenied, ValidationFailed, FormatIncompatible
        """
        options = options or ImportOptions()
        self._manager.authorize(actor, Permission.MANAGE_FIELDS)
        if options.import_values:
            self._manager.authorize(actor, Permission.EXPORT_VALUES)
        parsed = self.parse(document)

        plan = _ImportPlan(options)
        logger.info(
            "import_started",
            definitions=len(parsed.data.definitions),
            conflict_mode=options.conflict_mode.value,
            dry_run=options.dry_run,
        )

        for index, entry in enumerate(parsed.data.definitions):
            await self._plan_definition(plan, index, entry, actor)
        if options.import_groups:
            self._plan_groups(plan, parsed.data.groups)
        if options.import_values:
            await self._plan_values(plan, parsed.data.values, actor)
        for key in parsed.data.settings:
            plan.note(f"Settings are configuration-managed and were not imported: {key}")

        if not options.dry_run:
            await self._manager.commit_batch(
                plan.batch, actor, previous=plan.previous, reason="import"
            )

        result = plan.result
        logger.info(
            "import_completed",
            imported=result.imported,
            updated=result.updated,
            skipped=result.skipped,
            errors=result.errors,
            groups=result.groups,
            values=result.values,
            dry_run=result.dry_run,
        )
        return result

    async def _plan_definition(
        self,
        plan: "_ImportPlan",
        index: int,
        entry: Any,
        actor: Actor,
    ) -> None:
        if not isinstance(entry, Mapping):
            plan.fail(f"#{index}", ["Field entry must be an object."])
            return
        name = entry.get("name")
        if not isinstance(name, str) or not name:
            plan.fail(f"#{index}", ["Field entry is missing a name."])
            return
        if name in plan.seen:
            plan.fail(name, [f"Duplicate field name in import file: {name}"])
            return
        plan.seen.add(name)

        existing = await self._manager.get_by_name(name)
        mode = plan.options.conflict_mode
        try:
            if existing is None and name not in plan.claimed:
                definition = await self._manager.build_definition(
                    entry, actor, next_orders=plan.next_orders
                )
                plan.insert(name, definition, f"field: {name}")
            elif mode == ConflictMode.SKIP:
                plan.skip(name, existing)
            elif mode == ConflictMode.UPDATE and existing is not None:
                if existing.is_system:
                    plan.fail(name, [f"Field '{name}' is a system field"])
                    return
                updated = await self._manager.build_update(existing, entry, actor)
                plan.update(name, existing, updated)
            elif mode == ConflictMode.RENAME:
                new_name = await self._manager.available_name(name, taken=plan.claimed)
                label = f"{entry.get('label', name)} (Imported)"[:LABEL_MAX_LENGTH]
                definition = await self._manager.build_definition(
                    {**entry, "name": new_name, "label": label},
                    actor,
                    next_orders=plan.next_orders,
                )
                plan.insert(name, definition, f"field as: {new_name} (renamed from {name})")
            else:
                raise ConflictUnresolved(
                    f"No conflict policy applies to field '{name}' ({mode.value})"
                )
        except ValidationFailed as e:
            plan.fail(name, e.messages)
        except ProfileFieldsError as e:
            plan.fail(name, [e.message])

    def _plan_groups(self, plan: "_ImportPlan", groups: Mapping[str, Any]) -> None:
        for name, metadata in groups.items():
            payload = dict(metadata) if isinstance(metadata, Mapping) else {}
            try:
                group = self._manager.build_group({**payload, "name": name})
            except ValidationFailed as e:
                plan.result.errors += 1
                plan.note(f"Error importing group metadata {name}: {'; '.join(e.messages)}")
                continue
            plan.batch.groups.append(group)
            plan.result.groups += 1
            plan.note(f"{plan.verb} group metadata: {name}")

    async def _plan_values(
        self,
        plan: "_ImportPlan",
        values: Mapping[str, Any],
        actor: Actor,
    ) -> None:
        for principal_key, fields in values.items():
            try:
                principal_id = UUID(str(principal_key))
            except ValueError:
                plan.note(f"Principal {principal_key} is not a valid id, skipping its values.")
                continue
            if not isinstance(fields, Mapping):
                plan.note(f"Values for principal {principal_key} must be an object, skipping.")
                continue

            for field_name, record in fields.items():
                definition = plan.resolved.get(field_name) or await self._manager.get_by_name(
                    field_name
                )
                if definition is None:
                    plan.note(
                        f"Field {field_name} not found, skipping value for principal {principal_id}."
                    )
                    continue
                raw = record.get("value") if isinstance(record, Mapping) else record
                privacy = record.get("privacy") if isinstance(record, Mapping) else None

                outcome = self._validator.validate_value(definition, raw)
                if not outcome.is_valid:
                    plan.result.errors += 1
                    plan.note(
                        f"Invalid value for field {field_name}, principal {principal_id}: "
                        f"{'; '.join(outcome.messages())}"
                    )
                    continue
                clean = self._validator.sanitize_value(definition, raw)
                numeric, value_date = project_value(definition, clean)
                try:
                    level = PrivacyLevel(privacy) if privacy else PrivacyLevel.PUBLIC
                except ValueError:
                    level = PrivacyLevel.PUBLIC
                plan.batch.values.append(
                    AttributeValue(
                        principal_id=principal_id,
                        definition_id=definition.id,
                        value=clean,
                        value_numeric=numeric,
                        value_date=value_date,
                        privacy=level,
                        last_updated_by=actor.id,
                    )
                )
                plan.result.values += 1
                plan.note(f"{plan.verb} value for field {field_name}, principal {principal_id}.")


class _ImportPlan:
    """Mutable state of one import run."""

    def __init__(self, options: ImportOptions) -> None:
        self.options = options
        self.result = ImportResult(dry_run=options.dry_run)
        self.batch = WriteBatch()
        self.previous: dict[UUID, AttributeDefinition] = {}
        self.next_orders: dict[str, int] = {}
        # Incoming name -> definition the entry resolved to
        self.resolved: dict[str, AttributeDefinition] = {}
        self.seen: set[str] = set()
        self.claimed: set[str] = set()
        self.dry_label = "true" if options.dry_run else "false"

    @property
    def verb(self) -> str:
        return "Would import" if self.options.dry_run else "Imported"

    def note(self, message: str) -> None:
        self.result.messages.append(message)

    def insert(self, name: str, definition: AttributeDefinition, detail: str) -> None:
        self.batch.inserts.append(definition)
        self.claimed.add(definition.name)
        self.resolved[name] = definition
        self.result.imported += 1
        self.result.field_mapping[name] = definition.id
        self.note(f"{self.verb} {detail}")
        IMPORT_ENTRIES.labels(outcome="imported", dry_run=self.dry_label).inc()

    def update(
        self, name: str, existing: AttributeDefinition, updated: AttributeDefinition
    ) -> None:
        self.batch.updates.append(updated)
        self.previous[updated.id] = existing
        self.resolved[name] = updated
        self.result.updated += 1
        self.result.field_mapping[name] = updated.id
        verb = "Would update" if self.options.dry_run else "Updated"
        self.note(f"{verb} field: {name}")
        IMPORT_ENTRIES.labels(outcome="updated", dry_run=self.dry_label).inc()

    def skip(self, name: str, existing: AttributeDefinition | None) -> None:
        if existing is not None:
            self.resolved[name] = existing
        self.result.skipped += 1
        self.note(f"Skipped existing field: {name}")
        IMPORT_ENTRIES.labels(outcome="skipped", dry_run=self.dry_label).inc()

    def fail(self, name: str, messages: list[str]) -> None:
        self.result.errors += 1
        self.result.entry_errors[name] = messages
        self.note(f"Error importing field {name}: {'; '.join(messages)}")
        IMPORT_ENTRIES.labels(outcome="error", dry_run=self.dry_label).inc()
