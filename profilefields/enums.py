"""Enums for the attribute-schema domain."""

from enum import Enum


class AttributeStatus(str, Enum):
    """Lifecycle status of an attribute definition.

    Deprecated definitions keep their stored values; they are hidden
    from active use until reactivated or purged.
    """

    ACTIVE = "active"
    INACTIVE = "inactive"
    DRAFT = "draft"
    DEPRECATED = "deprecated"
    ARCHIVED = "archived"


class FieldWidth(str, Enum):
    """Presentation width hint for form layouts."""

    FULL = "full"
    HALF = "half"
    THIRD = "third"
    QUARTER = "quarter"
    AUTO = "auto"


class ChangeType(str, Enum):
    """Kind of change recorded in the audit trail."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    STATUS_CHANGE = "status_change"
    DEPRECATED = "deprecated"


class PrivacyLevel(str, Enum):
    """Who may see a stored attribute value."""

    PUBLIC = "public"
    MEMBERS = "members"
    FRIENDS = "friends"
    PRIVATE = "private"


class Permission(str, Enum):
    """Capabilities an actor needs for guarded operations."""

    MANAGE_FIELDS = "manage_fields"
    EXPORT_VALUES = "export_values"
    EDIT_VALUES = "edit_values"


class ConflictMode(str, Enum):
    """How an import treats a definition whose name already exists."""

    SKIP = "skip"
    UPDATE = "update"
    RENAME = "rename"


class RequiredPrivatePolicy(str, Enum):
    """How a required but non-public definition is treated by validation."""

    ERROR = "error"
    WARN = "warn"
    ALLOW = "allow"


class OrderDirection(str, Enum):
    """Sort direction for definition listings."""

    ASC = "asc"
    DESC = "desc"


class Capability(str, Enum):
    """Features an attribute kind supports in its configuration."""

    PLACEHOLDER = "placeholder"
    OPTIONS = "options"
    CHOICES = "choices"
    MULTIPLE = "multiple"
    MIN_MAX_LENGTH = "min_max_length"
    MIN_MAX_VALUE = "min_max_value"
    REGEX = "regex"
    DEFAULT_VALUE = "default_value"
    COMPOSITE = "composite"


class ErrorCode(str, Enum):
    """Machine-readable codes carried by engine errors."""

    PERMISSION_DENIED = "permission_denied"
    VALIDATION_FAILED = "validation_failed"
    NOT_FOUND = "not_found"
    DUPLICATE_NAME = "duplicate_name"
    SYSTEM_PROTECTED = "system_protected"
    HAS_DEPENDENT_DATA = "has_dependent_data"
    STORAGE_ERROR = "storage_error"
    FORMAT_INCOMPATIBLE = "format_incompatible"
    CONFLICT_UNRESOLVED = "conflict_unresolved"
