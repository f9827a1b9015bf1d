"""Database connectivity and store errors."""

from profilefields.db.errors import ConflictError, ConnectionError, NotFoundError, StoreError

__all__ = ["ConflictError", "ConnectionError", "NotFoundError", "StoreError"]
