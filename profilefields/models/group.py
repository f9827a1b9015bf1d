"""Attribute group metadata."""

from pydantic import BaseModel, ConfigDict, Field

from profilefields.models.definition import MAX_ORDER


class AttributeGroup(BaseModel):
    """Decorative metadata for a group key.

    Definitions reference groups by free-text key; a group without metadata
    is still valid.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    name: str = Field(..., description="Group key")
    label: str = Field(..., description="Display label")
    description: str = Field(default="", description="Group description")
    icon: str = Field(default="", description="Icon identifier")
    order: int = Field(default=0, ge=0, le=MAX_ORDER, description="Position among groups")
    is_active: bool = Field(default=True, description="Shown in forms")
