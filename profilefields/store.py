"""AttributeStore abstract interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from profilefields.enums import AttributeStatus
from profilefields.models import (
    AttributeDefinition,
    AttributeGroup,
    AttributeValue,
    DefinitionQuery,
    HistoryRecord,
    PendingPurge,
)


class WriteBatch(BaseModel):
    """Row changes applied together or not at all."""

    inserts: list[AttributeDefinition] = Field(default_factory=list)
    updates: list[AttributeDefinition] = Field(default_factory=list)
    groups: list[AttributeGroup] = Field(default_factory=list)
    values: list[AttributeValue] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.inserts or self.updates or self.groups or self.values)


class AttributeStore(ABC):
    """Abstract interface for attribute schema storage.

    Backends enforce uniqueness of definition names and of
    (principal, definition) value pairs, raising ConflictError on
    violation. History records are insert-only.
    """

    # Definitions

    @abstractmethod
    async def get_definition(self, definition_id: UUID) -> AttributeDefinition | None:
        """Get a definition by id."""
        pass

    @abstractmethod
    async def get_definition_by_name(self, name: str) -> AttributeDefinition | None:
        """Get a definition by its unique name."""
        pass

    @abstractmethod
    async def query_definitions(self, query: DefinitionQuery) -> list[AttributeDefinition]:
        """List definitions matching filters, ordered and paginated."""
        pass

    @abstractmethod
    async def count_definitions(self, query: DefinitionQuery) -> int:
        """Count definitions matching filters, ignoring pagination."""
        pass

    @abstractmethod
    async def insert_definition(self, definition: AttributeDefinition) -> UUID:
        """Insert a new definition. Raises ConflictError on duplicate name."""
        pass

    @abstractmethod
    async def update_definition(self, definition: AttributeDefinition) -> None:
        """Replace a stored definition. Raises NotFoundError if absent."""
        pass

    @abstractmethod
    async def delete_definition(self, definition_id: UUID) -> bool:
        """Hard-delete a definition and its values."""
        pass

    @abstractmethod
    async def max_order(self, group: str) -> int | None:
        """Highest order value in a group, None for an empty group."""
        pass

    @abstractmethod
    async def status_counts(self) -> dict[AttributeStatus, int]:
        """Number of definitions per status."""
        pass

    @abstractmethod
    async def apply_batch(self, batch: WriteBatch) -> None:
        """Apply inserts, updates, group and value upserts atomically."""
        pass

    # Values

    @abstractmethod
    async def upsert_value(self, value: AttributeValue) -> None:
        """Insert or replace a principal's value for a definition."""
        pass

    @abstractmethod
    async def get_value(
        self, principal_id: UUID, definition_id: UUID
    ) -> AttributeValue | None:
        """Get one stored value."""
        pass

    @abstractmethod
    async def list_values(self, principal_id: UUID) -> list[AttributeValue]:
        """All values stored for a principal."""
        pass

    @abstractmethod
    async def list_values_for_definition(self, definition_id: UUID) -> list[AttributeValue]:
        """All values stored for a definition."""
        pass

    @abstractmethod
    async def delete_value(self, principal_id: UUID, definition_id: UUID) -> bool:
        """Delete one stored value."""
        pass

    @abstractmethod
    async def usage_count(self, definition_id: UUID) -> int:
        """Number of principals with a stored value for the definition."""
        pass

    # Groups

    @abstractmethod
    async def save_group(self, group: AttributeGroup) -> None:
        """Insert or replace group metadata."""
        pass

    @abstractmethod
    async def get_group(self, name: str) -> AttributeGroup | None:
        """Get group metadata by key."""
        pass

    @abstractmethod
    async def list_groups(self) -> list[AttributeGroup]:
        """All group metadata ordered by position."""
        pass

    @abstractmethod
    async def delete_group(self, name: str) -> bool:
        """Remove group metadata."""
        pass

    # History

    @abstractmethod
    async def append_history(self, record: HistoryRecord) -> None:
        """Append an audit record."""
        pass

    @abstractmethod
    async def list_history(
        self, definition_id: UUID, limit: int = 50
    ) -> list[HistoryRecord]:
        """Audit records for a definition, newest first."""
        pass

    # Pending purges

    @abstractmethod
    async def save_purge(self, purge: PendingPurge) -> None:
        """Insert or replace the pending purge for a definition."""
        pass

    @abstractmethod
    async def get_purge(self, definition_id: UUID) -> PendingPurge | None:
        """Pending purge for a definition, if scheduled."""
        pass

    @abstractmethod
    async def list_due_purges(self, now: datetime) -> list[PendingPurge]:
        """Pending purges whose due time has passed."""
        pass

    @abstractmethod
    async def delete_purge(self, definition_id: UUID) -> bool:
        """Cancel or complete a pending purge."""
        pass
