"""Portable document and option models for import/export."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from profilefields.enums import AttributeStatus, ConflictMode
from profilefields.models.definition import utc_now


class DocumentData(BaseModel):
    """Payload sections of a portable document."""

    definitions: list[dict[str, Any]] = Field(default_factory=list)
    groups: dict[str, dict[str, Any]] = Field(default_factory=dict)
    values: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="principal id -> {definition name: {value, privacy, updated_at}}",
    )
    settings: dict[str, Any] = Field(default_factory=dict)


class ImportDocument(BaseModel):
    """Versioned bundle exchanged between deployments.

    Serialized with camelCase top-level keys; use ``to_json()`` rather
    than ``model_dump_json()`` so aliases are applied.
    """

    model_config = ConfigDict(populate_by_name=True)

    format_version: str = Field(..., alias="formatVersion")
    exported_at: datetime = Field(default_factory=utc_now, alias="exportedAt")
    origin: dict[str, Any] = Field(default_factory=dict)
    data: DocumentData = Field(default_factory=DocumentData)

    def to_json(self, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ExportOptions(BaseModel):
    """Selection of what goes into an export."""

    model_config = ConfigDict(frozen=True)

    statuses: tuple[AttributeStatus, ...] | None = Field(
        default=(AttributeStatus.ACTIVE,), description="None exports every status"
    )
    groups: tuple[str, ...] | None = Field(default=None, description="None exports all groups")
    include_definitions: bool = Field(default=True)
    include_groups: bool = Field(default=True)
    include_values: bool = Field(default=False, description="Needs export_values")
    include_settings: bool = Field(default=False)


class ImportOptions(BaseModel):
    """How an import applies a document."""

    model_config = ConfigDict(frozen=True)

    conflict_mode: ConflictMode = Field(default=ConflictMode.SKIP)
    dry_run: bool = Field(default=False, description="Plan everything, persist nothing")
    import_groups: bool = Field(default=True)
    import_values: bool = Field(default=False, description="Needs export_values")


class ImportResult(BaseModel):
    """Outcome counters and per-entry log of an import run."""

    imported: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    groups: int = 0
    values: int = 0
    dry_run: bool = False
    messages: list[str] = Field(default_factory=list)
    entry_errors: dict[str, list[str]] = Field(
        default_factory=dict, description="incoming name -> validation messages"
    )
    field_mapping: dict[str, UUID] = Field(
        default_factory=dict, description="incoming name -> resulting definition id"
    )
