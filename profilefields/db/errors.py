"""Store error hierarchy for storage backends.

All store implementations must raise these errors for consistent error
handling. They are ``StorageError`` subclasses, so callers of the engine
only need to catch one type for collaborator failures.
"""

from profilefields.errors import StorageError


class StoreError(StorageError):
    """Base exception for all store errors.

    Backends wrap driver-specific errors in one of the subclasses.
    """


class ConnectionError(StoreError):
    """Raised when store connection fails.

    Examples:
        - Database connection timeout
        - Redis server unavailable
    """


class NotFoundError(StoreError):
    """Raised when a keyed write targets a row that does not exist."""


class ConflictError(StoreError):
    """Raised on unique constraint violation.

    ``constraint`` names the violated key where the backend reports it.
    """

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        constraint: str | None = None,
    ) -> None:
        super().__init__(message, cause)
        self.constraint = constraint
