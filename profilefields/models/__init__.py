"""Domain models for the attribute-schema engine."""

from profilefields.models.actor import Actor
from profilefields.models.definition import (
    CREATABLE_FIELDS,
    MAX_ORDER,
    MUTABLE_FIELDS,
    NON_PORTABLE_FIELDS,
    AttributeDefinition,
    BulkStatusResult,
    DefinitionPage,
    DefinitionQuery,
    DeleteOutcome,
    ReorderChange,
    utc_now,
)
from profilefields.models.group import AttributeGroup
from profilefields.models.history import HistoryRecord, PendingPurge
from profilefields.models.transfer import (
    DocumentData,
    ExportOptions,
    ImportDocument,
    ImportOptions,
    ImportResult,
)
from profilefields.models.validation import FieldError, ValidationResult
from profilefields.models.value import AttributeValue

__all__ = [
    "Actor",
    "AttributeDefinition",
    "AttributeGroup",
    "AttributeValue",
    "BulkStatusResult",
    "CREATABLE_FIELDS",
    "DefinitionPage",
    "DefinitionQuery",
    "DeleteOutcome",
    "DocumentData",
    "ExportOptions",
    "FieldError",
    "HistoryRecord",
    "ImportDocument",
    "ImportOptions",
    "ImportResult",
    "MAX_ORDER",
    "MUTABLE_FIELDS",
    "NON_PORTABLE_FIELDS",
    "PendingPurge",
    "ReorderChange",
    "ValidationResult",
    "utc_now",
]
