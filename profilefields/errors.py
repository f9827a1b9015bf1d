"""Error hierarchy for the attribute-schema engine.

Every error carries a ``message`` and an ``error_code`` so an outer layer
(HTTP handler, CLI, job runner) can map it to a response without
inspecting the type.
"""

from profilefields.enums import ErrorCode
from profilefields.models.history import PendingPurge
from profilefields.models.validation import FieldError


class ProfileFieldsError(Exception):
    """Base exception for all engine errors."""

    error_code: ErrorCode = ErrorCode.STORAGE_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class PermissionDenied(ProfileFieldsError):
    """Raised when the actor lacks the permission an operation needs."""

    error_code = ErrorCode.PERMISSION_DENIED


class ValidationFailed(ProfileFieldsError):
    """Raised when input fails validation.

    ``errors`` holds every problem found, not just the first.
    """

    error_code = ErrorCode.VALIDATION_FAILED

    def __init__(self, errors: list[FieldError], message: str | None = None) -> None:
        super().__init__(message or f"Validation failed with {len(errors)} error(s)")
        self.errors = errors

    @property
    def messages(self) -> list[str]:
        return [error.message for error in self.errors]


class NotFound(ProfileFieldsError):
    """Raised when a definition or group does not exist."""

    error_code = ErrorCode.NOT_FOUND


class DuplicateName(ProfileFieldsError):
    """Raised when a definition name is already taken."""

    error_code = ErrorCode.DUPLICATE_NAME

    def __init__(self, name: str) -> None:
        super().__init__(f"A field named '{name}' already exists")
        self.name = name


class SystemProtected(ProfileFieldsError):
    """Raised when a built-in definition would be changed without force."""

    error_code = ErrorCode.SYSTEM_PROTECTED


class HasDependentData(ProfileFieldsError):
    """Signals that a delete became a deprecation.

    Not a hard rejection: the definition is now deprecated and ``purge``
    describes when it will be removed.
    """

    error_code = ErrorCode.HAS_DEPENDENT_DATA

    def __init__(self, usage_count: int, purge: PendingPurge | None = None) -> None:
        super().__init__(
            f"Field has data for {usage_count} principal(s); "
            "it was deprecated and scheduled for purge"
        )
        self.usage_count = usage_count
        self.purge = purge


class StorageError(ProfileFieldsError):
    """Wraps a failure reported by the storage collaborator."""

    error_code = ErrorCode.STORAGE_ERROR

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class FormatIncompatible(ProfileFieldsError):
    """Raised when an import document is newer than this engine understands."""

    error_code = ErrorCode.FORMAT_INCOMPATIBLE

    def __init__(self, document_version: str, engine_version: str) -> None:
        super().__init__(
            f"Document format {document_version} is newer than supported "
            f"format {engine_version}"
        )
        self.document_version = document_version
        self.engine_version = engine_version


class ConflictUnresolved(ProfileFieldsError):
    """Raised when an import entry conflicts and no policy applies."""

    error_code = ErrorCode.CONFLICT_UNRESOLVED
