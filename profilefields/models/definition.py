"""Attribute definition models."""

import hashlib
from datetime import UTC, datetime
from typing import Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from profilefields.enums import AttributeStatus, FieldWidth, OrderDirection


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


# Keys an update may change. ``name``, ``kind`` and ``is_system`` are fixed
# once a definition exists.
MUTABLE_FIELDS: frozenset[str] = frozenset({
    "label",
    "description",
    "placeholder",
    "help_text",
    "options",
    "validation_rules",
    "display_options",
    "conditional_logic",
    "group",
    "order",
    "is_required",
    "is_searchable",
    "is_public",
    "is_editable",
    "status",
    "min_value",
    "max_value",
    "min_length",
    "max_length",
    "regex_pattern",
    "default_value",
    "width",
    "css_class",
})

# Keys accepted when creating a definition.
CREATABLE_FIELDS: frozenset[str] = MUTABLE_FIELDS | {"name", "kind"}

# Keys never written to a portable document.
NON_PORTABLE_FIELDS: frozenset[str] = frozenset({
    "id",
    "is_system",
    "created_by",
    "updated_by",
})

# Largest position a definition or group can hold (INTEGER column)
MAX_ORDER = 2_147_483_647

ORDERABLE_COLUMNS = Literal[
    "order", "name", "label", "kind", "group", "status", "created_at", "updated_at"
]


class AttributeDefinition(BaseModel):
    """Schema for one profile attribute.

    ``options``, ``validation_rules``, ``display_options`` and
    ``conditional_logic`` are kind-specific documents; the registry owns
    their interpretation.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    id: UUID = Field(default_factory=uuid4, description="Definition identifier")
    name: str = Field(..., description="Unique immutable machine name")
    label: str = Field(..., description="Display label")
    kind: str = Field(..., description="Registered attribute kind")
    description: str = Field(default="", description="Longer description")
    placeholder: str = Field(default="", description="Input placeholder")
    help_text: str = Field(default="", description="Help shown beside the input")
    options: dict[str, Any] = Field(
        default_factory=dict, description="Kind-specific configuration"
    )
    validation_rules: dict[str, Any] = Field(
        default_factory=dict, description="Structured value constraints"
    )
    display_options: dict[str, Any] = Field(
        default_factory=dict, description="Presentation hints"
    )
    conditional_logic: dict[str, Any] = Field(
        default_factory=dict, description="show_if / hide_if predicates"
    )
    group: str = Field(default="basic", description="Logical group key")
    order: int = Field(default=0, ge=0, le=MAX_ORDER, description="Position within the group")
    is_required: bool = Field(default=False, description="Value must be given")
    is_searchable: bool = Field(default=False, description="Usable as search filter")
    is_public: bool = Field(default=True, description="Visible to other principals")
    is_editable: bool = Field(default=True, description="Principal may edit value")
    status: AttributeStatus = Field(
        default=AttributeStatus.ACTIVE, description="Lifecycle status"
    )
    min_value: float | None = Field(default=None, description="Numeric lower bound")
    max_value: float | None = Field(default=None, description="Numeric upper bound")
    min_length: int | None = Field(default=None, description="Minimum text length")
    max_length: int | None = Field(default=None, description="Maximum text length")
    regex_pattern: str | None = Field(default=None, description="Pattern values must match")
    default_value: Any = Field(default=None, description="Initial value")
    width: FieldWidth = Field(default=FieldWidth.FULL, description="Layout width")
    css_class: str = Field(default="", description="Extra CSS classes")
    is_system: bool = Field(default=False, description="Built-in, protected from changes")
    created_by: UUID | None = Field(default=None, description="Creator")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    updated_by: UUID | None = Field(default=None, description="Last editor")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update")

    def snapshot(self) -> dict[str, Any]:
        """JSON-compatible dump used for history records and backups."""
        return self.model_dump(mode="json")

    def to_portable(self) -> dict[str, Any]:
        """Flat record for export, without identity and actor fields."""
        return self.model_dump(mode="json", exclude=set(NON_PORTABLE_FIELDS))

    def rule(self, key: str, default: Any = None) -> Any:
        """Look up a validation constraint.

        ``validation_rules`` wins over the top-level column of the same name.
        """
        if key in self.validation_rules:
            return self.validation_rules[key]
        if key == "required":
            return self.is_required
        if key == "regex":
            return self.regex_pattern if self.regex_pattern else default
        value = getattr(self, key, None)
        return default if value is None else value


class DefinitionQuery(BaseModel):
    """Filters, ordering and pagination for listing definitions.

    ``order_by`` is restricted to a fixed column set so untrusted callers
    can never inject a sort expression.
    """

    model_config = ConfigDict(frozen=True)

    statuses: tuple[AttributeStatus, ...] | None = Field(
        default=None, description="Only these statuses"
    )
    kind: str | None = Field(default=None, description="Only this kind")
    group: str | None = Field(default=None, description="Only this group")
    is_searchable: bool | None = Field(default=None, description="Searchable flag")
    is_public: bool | None = Field(default=None, description="Public flag")
    is_required: bool | None = Field(default=None, description="Required flag")
    search: str | None = Field(
        default=None, max_length=100, description="Substring of name or label"
    )
    order_by: ORDERABLE_COLUMNS = Field(default="order", description="Sort column")
    direction: OrderDirection = Field(default=OrderDirection.ASC, description="Sort direction")
    limit: int = Field(default=50, ge=1, le=500, description="Page size")
    offset: int = Field(default=0, ge=0, description="Rows to skip")

    def fingerprint(self) -> str:
        """Stable hash of the query used as a cache key suffix."""
        return hashlib.sha1(self.model_dump_json().encode()).hexdigest()

    def matches(self, definition: AttributeDefinition) -> bool:
        """Apply the filters to a single definition."""
        if self.statuses is not None and definition.status not in self.statuses:
            return False
        if self.kind is not None and definition.kind != self.kind:
            return False
        if self.group is not None and definition.group != self.group:
            return False
        for flag in ("is_searchable", "is_public", "is_required"):
            wanted = getattr(self, flag)
            if wanted is not None and getattr(definition, flag) != wanted:
                return False
        if self.search:
            needle = self.search.lower()
            if needle not in definition.name.lower() and needle not in definition.label.lower():
                return False
        return True


class DefinitionPage(BaseModel):
    """One page of a definition listing."""

    items: list[AttributeDefinition] = Field(default_factory=list)
    total: int = Field(default=0, ge=0, description="Rows matching the filters")
    limit: int = Field(..., description="Page size used")
    offset: int = Field(..., description="Offset used")


class ReorderChange(BaseModel):
    """Target position of one definition in a reorder batch."""

    model_config = ConfigDict(frozen=True)

    order: int = Field(..., ge=0, le=MAX_ORDER, description="New position")
    group: str | None = Field(default=None, description="New group, unchanged if None")


class DeleteOutcome(BaseModel):
    """Result of a hard delete."""

    model_config = ConfigDict(frozen=True)

    definition_id: UUID = Field(..., description="Deleted definition")
    name: str = Field(..., description="Name of the deleted definition")
    usage_count: int = Field(default=0, ge=0, description="Values removed with it")
    forced: bool = Field(default=False, description="Deleted despite stored values")


class BulkStatusResult(BaseModel):
    """Per-entry outcome of a bulk status change."""

    updated: list[UUID] = Field(default_factory=list)
    unchanged: list[UUID] = Field(default_factory=list)
    failed: dict[str, str] = Field(
        default_factory=dict, description="definition id -> error message"
    )
