"""Username registry, pending DJ profiles, role grants and accounts."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261019_01_username_registry"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "usernames",
        sa.Column("canonical_key", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=False),
        sa.Column("holder_id", sa.String(length=320), nullable=False),
        sa.Column("reserved_for_email", sa.String(length=320), nullable=True),
        sa.Column("is_pending", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("claimed_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )

    op.create_table(
        "pending_dj_profiles",
        sa.Column("id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("chat_username", sa.Text(), nullable=True),
        sa.Column("chat_username_normalized", sa.String(length=128), nullable=True),
        sa.Column("dj_name", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("dj_profile", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        sa.Column("claimed_by", sa.String(length=128), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_pending_dj_profiles_email_status", "pending_dj_profiles", ["email", "status"])
    op.create_index("ix_pending_dj_profiles_normalized", "pending_dj_profiles", ["chat_username_normalized"])

    op.create_table(
        "pending_dj_roles",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="dj"),
        sa.Column("source", sa.String(length=64), nullable=False),
        sa.Column("pending_profile_id", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_pending_dj_roles_email", "pending_dj_roles", ["email"])
    op.create_index("ix_pending_dj_roles_pending_profile_id", "pending_dj_roles", ["pending_profile_id"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=True),
        sa.Column("chat_username", sa.String(length=128), nullable=True),
        sa.Column("chat_username_normalized", sa.String(length=128), nullable=True),
        sa.Column("dj_profile", sa.JSON(), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"])


def downgrade() -> None:
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.drop_index("ix_pending_dj_roles_pending_profile_id", table_name="pending_dj_roles")
    op.drop_index("ix_pending_dj_roles_email", table_name="pending_dj_roles")
    op.drop_table("pending_dj_roles")
    op.drop_index("ix_pending_dj_profiles_normalized", table_name="pending_dj_profiles")
    op.drop_index("ix_pending_dj_profiles_email_status", table_name="pending_dj_profiles")
    op.drop_table("pending_dj_profiles")
    op.drop_table("usernames")
