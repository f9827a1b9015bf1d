"""Per-principal attribute value models."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from profilefields.enums import PrivacyLevel
from profilefields.models.definition import utc_now


class AttributeValue(BaseModel):
    """One principal's stored value for one definition.

    ``value_numeric`` and ``value_date`` are typed projections of ``value``
    kept for indexed range queries.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    principal_id: UUID = Field(..., description="Owner of the value")
    definition_id: UUID = Field(..., description="Definition the value belongs to")
    value: Any = Field(default=None, description="Sanitized raw value")
    value_numeric: float | None = Field(default=None, description="Numeric projection")
    value_date: date | None = Field(default=None, description="Date projection")
    privacy: PrivacyLevel = Field(default=PrivacyLevel.PUBLIC, description="Visibility")
    is_verified: bool = Field(default=False, description="Value was verified")
    verification_data: dict[str, Any] = Field(
        default_factory=dict, description="Verification details"
    )
    last_updated_by: UUID | None = Field(default=None, description="Last writer")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update")
