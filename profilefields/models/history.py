"""Audit trail and purge scheduling models."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from profilefields.enums import ChangeType
from profilefields.models.definition import utc_now


class HistoryRecord(BaseModel):
    """Immutable audit entry for one definition change.

    Records are only ever appended; nothing in the engine updates or
    deletes them.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4, description="Record identifier")
    definition_id: UUID = Field(..., description="Definition that changed")
    change_type: ChangeType = Field(..., description="What happened")
    old_values: dict[str, Any] | None = Field(default=None, description="State before")
    new_values: dict[str, Any] | None = Field(default=None, description="State after")
    changed_by: UUID | None = Field(default=None, description="Acting principal")
    reason: str | None = Field(default=None, description="Operator-supplied reason")
    origin_address: str | None = Field(default=None, description="Network origin")
    created_at: datetime = Field(default_factory=utc_now, description="When recorded")


class PendingPurge(BaseModel):
    """A deprecated definition waiting for its retention window to pass.

    An external scheduler picks up due purges and force-deletes them.
    ``snapshot`` keeps the full definition so it can be restored.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4, description="Purge identifier")
    definition_id: UUID = Field(..., description="Definition to purge")
    definition_name: str = Field(..., description="Name at deprecation time")
    snapshot: dict[str, Any] = Field(..., description="Recoverable definition dump")
    usage_count: int = Field(..., ge=0, description="Values present when scheduled")
    scheduled_at: datetime = Field(default_factory=utc_now, description="When scheduled")
    due_at: datetime = Field(..., description="Earliest purge time")
    requested_by: UUID | None = Field(default=None, description="Who asked for deletion")

    def is_due(self, now: datetime) -> bool:
        return now >= self.due_at
