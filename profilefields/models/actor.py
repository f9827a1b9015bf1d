"""Acting principal passed to guarded operations."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from profilefields.enums import Permission


class Actor(BaseModel):
    """Who is performing an operation, and what they may do.

    Permissions are resolved by the surrounding account system; the engine
    only checks membership.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID | None = Field(default=None, description="Principal identifier")
    permissions: frozenset[Permission] = Field(
        default_factory=frozenset, description="Granted permissions"
    )
    address: str | None = Field(default=None, description="Network origin of the call")

    def can(self, permission: Permission) -> bool:
        return permission in self.permissions

    @classmethod
    def system(cls) -> "Actor":
        """Actor used by scheduled jobs; holds every permission."""
        return cls(permissions=frozenset(Permission))
