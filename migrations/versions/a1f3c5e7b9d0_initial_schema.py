"""initial schema: users, rbac, audit, registrations, annual updates, directory sync runs

Revision ID: a1f3c5e7b9d0
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "a1f3c5e7b9d0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)

    if not insp.has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("email", sa.String(length=320), nullable=False, unique=True),
            sa.Column("name", sa.String(length=255), nullable=True),
            sa.Column("username", sa.String(length=64), nullable=True, unique=True),
            sa.Column("university", sa.String(length=255), nullable=True),
            sa.Column("github_username", sa.String(length=64), nullable=True),
            sa.Column("password_hash", sa.String(length=255), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("last_info_update", sa.DateTime(timezone=False), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
        )

    if not insp.has_table("roles"):
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("key", sa.String(length=64), nullable=False, unique=True),
            sa.Column("name", sa.String(length=128), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
        )

    if not insp.has_table("permissions"):
        op.create_table(
            "permissions",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("key", sa.String(length=128), nullable=False, unique=True),
            sa.Column("name", sa.String(length=128), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
        )

    if not insp.has_table("user_roles"):
        op.create_table(
            "user_roles",
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        )

    if not insp.has_table("role_permissions"):
        op.create_table(
            "role_permissions",
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
            sa.Column(
                "permission_id", sa.Integer(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
            ),
        )

    if not insp.has_table("audit_events"):
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("request_id", sa.String(length=64), nullable=True),
            sa.Column("client_ip", sa.String(length=64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("actor_user_email", sa.String(length=320), nullable=True),
            sa.Column("action", sa.String(length=128), nullable=False),
            sa.Column("entity_type", sa.String(length=128), nullable=True),
            sa.Column("entity_id", sa.String(length=128), nullable=True),
            sa.Column("reason", sa.String(length=512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
        )

    if not insp.has_table("pending_registrations"):
        op.create_table(
            "pending_registrations",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("email", sa.String(length=320), nullable=False),
            sa.Column("university", sa.String(length=255), nullable=False),
            sa.Column("preferred_username", sa.String(length=64), nullable=False),
            sa.Column("github_username", sa.String(length=64), nullable=True),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
            sa.Column("comments", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("reviewed_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column(
                "reviewed_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
            ),
            sa.Column("created_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        )
        op.create_index("idx_pending_registrations_status", "pending_registrations", ["status"])
        op.create_index("idx_pending_registrations_email", "pending_registrations", ["email"])

    if not insp.has_table("annual_info_update_requests"):
        op.create_table(
            "annual_info_update_requests",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("year", sa.Integer(), nullable=False, unique=True),
            sa.Column("sent_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("recipients_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("delivered_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column(
                "created_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
            ),
        )

    if not insp.has_table("directory_sync_runs"):
        op.create_table(
            "directory_sync_runs",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("ran_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("directory", sa.String(length=32), nullable=False),
            sa.Column("demo_mode", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("fetch_failed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("added_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("removed_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("failed_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("duration_seconds", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("details_json", sa.Text(), nullable=True),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column(
                "triggered_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
            ),
        )
        op.create_index("idx_directory_sync_runs_directory_ran_at", "directory_sync_runs", ["directory", "ran_at"])


def downgrade() -> None:
    op.drop_index("idx_directory_sync_runs_directory_ran_at", table_name="directory_sync_runs")
    op.drop_table("directory_sync_runs")
    op.drop_table("annual_info_update_requests")
    op.drop_index("idx_pending_registrations_email", table_name="pending_registrations")
    op.drop_index("idx_pending_registrations_status", table_name="pending_registrations")
    op.drop_table("pending_registrations")
    op.drop_table("audit_events")
    op.drop_table("role_permissions")
    op.drop_table("user_roles")
    op.drop_table("permissions")
    op.drop_table("roles")
    op.drop_table("users")
