"""Engine behaviour configuration models."""

from pydantic import BaseModel, Field

from profilefields.enums import RequiredPrivatePolicy


class ValidationConfig(BaseModel):
    """Definition validation policy."""

    required_private_policy: RequiredPrivatePolicy = Field(
        default=RequiredPrivatePolicy.WARN,
        description="Treatment of required fields that are not public",
    )
    extra_reserved_names: list[str] = Field(
        default_factory=list,
        description="Names reserved in addition to the built-in list",
    )
    forbidden_prefixes: list[str] = Field(
        default_factory=lambda: ["wp_", "_"],
        description="Name prefixes claimed by the host system",
    )


class LifecycleConfig(BaseModel):
    """Definition ordering and retention settings."""

    order_step: int = Field(default=10, gt=0, description="Gap appended after max order")
    purge_retention_days: int = Field(
        default=30,
        gt=0,
        description="Days a deprecated definition with data waits before purge",
    )


class TransferConfig(BaseModel):
    """Import/export document settings."""

    format_version: str = Field(default="1.0.0", description="Document format written")
    origin: str = Field(default="profilefields", description="Origin stamped on exports")
