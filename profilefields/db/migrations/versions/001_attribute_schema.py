"""Create attribute schema tables.

Revision ID: 001_attribute_schema
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_attribute_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    """Create definition, value, group, history and purge tables."""
    op.create_table(
        "attribute_definitions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("kind", sa.String(50), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("placeholder", sa.String(255), nullable=True),
        sa.Column("help_text", sa.Text, nullable=True),
        sa.Column("options", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("validation_rules", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("display_options", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("conditional_logic", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("group_name", sa.String(100), nullable=False, server_default="basic"),
        sa.Column("field_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_required", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("is_searchable", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("is_public", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("is_editable", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("min_value", sa.Float, nullable=True),
        sa.Column("max_value", sa.Float, nullable=True),
        sa.Column("min_length", sa.Integer, nullable=True),
        sa.Column("max_length", sa.Integer, nullable=True),
        sa.Column("regex_pattern", sa.String(500), nullable=True),
        sa.Column("default_value", postgresql.JSONB, nullable=True),
        sa.Column("width", sa.String(20), nullable=False, server_default="full"),
        sa.Column("css_class", sa.String(255), nullable=True),
        sa.Column("is_system", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        _timestamp("created_at"),
        sa.Column("updated_by", postgresql.UUID(as_uuid=True), nullable=True),
        _timestamp("updated_at"),
        sa.UniqueConstraint("name", name="attribute_definitions_name_key"),
    )
    op.create_index(
        "ix_attribute_definitions_group_order",
        "attribute_definitions",
        ["group_name", "field_order"],
    )
    op.create_index("ix_attribute_definitions_status", "attribute_definitions", ["status"])
    op.create_index("ix_attribute_definitions_kind", "attribute_definitions", ["kind"])
    op.create_index(
        "ix_attribute_definitions_searchable",
        "attribute_definitions",
        ["is_searchable"],
    )

    op.create_table(
        "attribute_values",
        sa.Column("principal_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "definition_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("attribute_definitions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("value", postgresql.JSONB, nullable=True),
        sa.Column("value_numeric", sa.Float, nullable=True),
        sa.Column("value_date", sa.Date, nullable=True),
        sa.Column("privacy", sa.String(20), nullable=False, server_default="public"),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("verification_data", postgresql.JSONB, nullable=True),
        sa.Column("last_updated_by", postgresql.UUID(as_uuid=True), nullable=True),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("principal_id", "definition_id", name="attribute_values_pkey"),
    )
    op.create_index("ix_attribute_values_definition", "attribute_values", ["definition_id"])
    op.create_index(
        "ix_attribute_values_numeric",
        "attribute_values",
        ["definition_id", "value_numeric"],
    )
    op.create_index(
        "ix_attribute_values_date",
        "attribute_values",
        ["definition_id", "value_date"],
    )

    op.create_table(
        "attribute_groups",
        sa.Column("name", sa.String(100), primary_key=True, nullable=False),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("icon", sa.String(100), nullable=True),
        sa.Column("group_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
    )

    # No foreign key: history outlives hard-deleted definitions
    op.create_table(
        "attribute_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("definition_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("change_type", sa.String(30), nullable=False),
        sa.Column("old_values", postgresql.JSONB, nullable=True),
        sa.Column("new_values", postgresql.JSONB, nullable=True),
        sa.Column("changed_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("origin_address", sa.String(45), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_attribute_history_definition_created",
        "attribute_history",
        ["definition_id", "created_at"],
    )

    op.create_table(
        "attribute_pending_purges",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "definition_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("attribute_definitions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("definition_name", sa.String(100), nullable=False),
        sa.Column("snapshot", postgresql.JSONB, nullable=False),
        sa.Column("usage_count", sa.Integer, nullable=False, server_default="0"),
        _timestamp("scheduled_at"),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("requested_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.UniqueConstraint("definition_id", name="attribute_pending_purges_definition_key"),
    )
    op.create_index("ix_attribute_pending_purges_due", "attribute_pending_purges", ["due_at"])


def downgrade() -> None:
    """Drop attribute schema tables."""
    op.drop_index("ix_attribute_pending_purges_due", table_name="attribute_pending_purges")
    op.drop_table("attribute_pending_purges")
    op.drop_index("ix_attribute_history_definition_created", table_name="attribute_history")
    op.drop_table("attribute_history")
    op.drop_table("attribute_groups")
    op.drop_index("ix_attribute_values_date", table_name="attribute_values")
    op.drop_index("ix_attribute_values_numeric", table_name="attribute_values")
    op.drop_index("ix_attribute_values_definition", table_name="attribute_values")
    op.drop_table("attribute_values")
    op.drop_index("ix_attribute_definitions_searchable", table_name="attribute_definitions")
    op.drop_index("ix_attribute_definitions_kind", table_name="attribute_definitions")
    op.drop_index("ix_attribute_definitions_status", table_name="attribute_definitions")
    op.drop_index("ix_attribute_definitions_group_order", table_name="attribute_definitions")
    op.drop_table("attribute_definitions")
