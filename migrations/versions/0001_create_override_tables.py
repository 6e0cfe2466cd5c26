"""Create admin override and override audit log tables.

Revision ID: 0001
Revises:
"""

from __future__ import annotations

from typing import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | Sequence[str] | None = None
branch_labels = None
depends_on = None

ACTION_TYPES = (
    "FORCE_LOGOUT",
    "RESET_SESSION",
    "RESTORE_AUTO_LOGIN",
    "ENABLE_DRIVER_ONLINE",
    "DISABLE_DRIVER_ONLINE",
    "CLEAR_CANCELLATION_FLAGS",
    "RESTORE_DRIVER_ACCESS",
    "CLEAR_RIDER_CANCELLATION_WARNING",
    "RESTORE_RIDE_ACCESS",
)
STATUSES = ("active", "expired", "reverted")


def upgrade() -> None:
    """Create the override table, its one-active-per-conflict-group index, and the audit log."""

    op.create_table(
        "admin_overrides",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("target_user_id", sa.String(100), nullable=False),
        sa.Column("admin_actor_id", sa.String(100), nullable=False),
        sa.Column(
            "action_type",
            sa.Enum(*ACTION_TYPES, name="override_action_type_enum", create_constraint=True),
            nullable=False,
        ),
        sa.Column("conflict_key", sa.String(64), nullable=False),
        sa.Column("override_reason", sa.Text(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*STATUSES, name="override_status_enum", create_constraint=True),
            nullable=False,
        ),
        sa.Column("override_expires_at", sa.DateTime(), nullable=True),
        sa.Column("previous_state", sa.JSON(), nullable=True),
        sa.Column("new_state", sa.JSON(), nullable=True),
        sa.Column("reverted_at", sa.DateTime(), nullable=True),
        sa.Column("reverted_by", sa.String(100), nullable=True),
        sa.Column("revert_reason", sa.Text(), nullable=True),
        sa.Column("expired_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_admin_overrides_target_user_id",
        "admin_overrides",
        ["target_user_id"],
    )
    op.create_index(
        "ix_admin_overrides_status_expires",
        "admin_overrides",
        ["status", "override_expires_at"],
    )
    op.create_index(
        "uq_admin_overrides_active_target_conflict",
        "admin_overrides",
        ["target_user_id", "conflict_key"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "override_audit_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("override_id", sa.Uuid(), nullable=True),
        sa.Column("admin_actor_id", sa.String(100), nullable=False),
        sa.Column("affected_user_id", sa.String(100), nullable=False),
        sa.Column("action_type", sa.String(64), nullable=False),
        sa.Column("override_reason", sa.Text(), nullable=False),
        sa.Column("previous_state", sa.JSON(), nullable=True),
        sa.Column("new_state", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["override_id"], ["admin_overrides.id"], ondelete="SET NULL"
        ),
    )
    op.create_index(
        "ix_override_audit_log_override_id", "override_audit_log", ["override_id"]
    )
    op.create_index(
        "ix_override_audit_log_admin_actor_id", "override_audit_log", ["admin_actor_id"]
    )
    op.create_index(
        "ix_override_audit_log_affected_user_id",
        "override_audit_log",
        ["affected_user_id"],
    )
    op.create_index(
        "ix_override_audit_log_created_at", "override_audit_log", ["created_at"]
    )


def downgrade() -> None:
    """Drop the audit log first; it references overrides."""

    op.drop_index("ix_override_audit_log_created_at", table_name="override_audit_log")
    op.drop_index("ix_override_audit_log_affected_user_id", table_name="override_audit_log")
    op.drop_index("ix_override_audit_log_admin_actor_id", table_name="override_audit_log")
    op.drop_index("ix_override_audit_log_override_id", table_name="override_audit_log")
    op.drop_table("override_audit_log")

    op.drop_index("uq_admin_overrides_active_target_conflict", table_name="admin_overrides")
    op.drop_index("ix_admin_overrides_status_expires", table_name="admin_overrides")
    op.drop_index("ix_admin_overrides_target_user_id", table_name="admin_overrides")
    op.drop_table("admin_overrides")
    sa.Enum(name="override_status_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="override_action_type_enum").drop(op.get_bind(), checkfirst=True)
