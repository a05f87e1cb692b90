"""001_initial_tables

Revision ID: 001
Revises:
Create Date: 2024-01-01 00:00:00.000000

Creates the work order tables:
  - users (directory projection)
  - tasks
  - attachments
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None

TASK_STATUSES = ("pending", "assigned", "approved", "completed", "on-hold", "unposted")
DEVELOPER_STATUSES = ("pending", "done", "not-done", "on-hold")
FINAL_STATUSES = ("in-progress", "rejected", "done", "unposted")


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def _flag(name: str) -> sa.Column:
    return sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.false())


def upgrade() -> None:
    # ── Enums ─────────────────────────────────────────────────────────────────
    for values, enum_name in (
        (TASK_STATUSES, "task_status_enum"),
        (DEVELOPER_STATUSES, "developer_status_enum"),
        (FINAL_STATUSES, "final_status_enum"),
    ):
        postgresql.ENUM(*values, name=enum_name, create_type=False).create(
            op.get_bind(), checkfirst=True
        )

    # ── users ─────────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )
    op.create_index("ix_users_username", "users", ["username"])

    # ── tasks ─────────────────────────────────────────────────────────────────
    op.create_table(
        "tasks",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(100), nullable=False),
        sa.Column("company", sa.JSON(), nullable=False),
        sa.Column("contact", sa.JSON(), nullable=False),
        sa.Column("working", sa.Text(), nullable=False),
        sa.Column("date_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("priority", sa.String(50), nullable=True),
        sa.Column("task_remarks", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=False),
        sa.Column(
            "status",
            postgresql.ENUM(*TASK_STATUSES, name="task_status_enum", create_type=False),
            nullable=False,
            server_default="pending",
        ),
        _flag("assigned"),
        sa.Column("assigned_to", sa.JSON(), nullable=True),
        sa.Column("assigned_to_username", sa.String(150), nullable=True),
        sa.Column("assigned_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assignment_remarks", sa.Text(), nullable=True),
        sa.Column("assignment_attachment", sa.JSON(), nullable=False),
        _flag("approved"),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        _flag("completion_approved"),
        sa.Column("completion_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completion_remarks", sa.Text(), nullable=True),
        sa.Column("rejection_remarks", sa.Text(), nullable=True),
        sa.Column("completion_attachment", sa.JSON(), nullable=False),
        sa.Column("rejection_attachment", sa.JSON(), nullable=False),
        sa.Column("time_taken", sa.Integer(), nullable=True),
        sa.Column(
            "developer_status",
            postgresql.ENUM(
                *DEVELOPER_STATUSES, name="developer_status_enum", create_type=False
            ),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("developer_remarks", sa.Text(), nullable=True),
        sa.Column("developer_done_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("developer_attachment", sa.JSON(), nullable=False),
        sa.Column("developer_status_rejection", sa.String(20), nullable=True),
        sa.Column("developer_rejection_remarks", sa.Text(), nullable=True),
        sa.Column("developer_rejection_solve_attachment", sa.JSON(), nullable=False),
        sa.Column(
            "final_status",
            postgresql.ENUM(*FINAL_STATUSES, name="final_status_enum", create_type=False),
            nullable=False,
            server_default="in-progress",
        ),
        _flag("unposted"),
        sa.Column("unposted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("unpost_status", sa.String(20), nullable=True),
        sa.Column("tasks_attachment", sa.JSON(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_tasks"),
    )
    op.create_index("ix_tasks_code", "tasks", ["code"])
    op.create_index("ix_tasks_status", "tasks", ["status"])
    op.create_index("ix_tasks_final_status", "tasks", ["final_status"])
    op.create_index("ix_tasks_unposted", "tasks", ["unposted"])
    op.create_index("ix_tasks_assigned_to_username", "tasks", ["assigned_to_username"])
    op.create_index("ix_tasks_status_approved", "tasks", ["status", "approved"])

    # ── attachments ───────────────────────────────────────────────────────────
    op.create_table(
        "attachments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("filename", sa.String(500), nullable=False),
        sa.Column("storage_key", sa.String(2000), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("mime_type", sa.String(200), nullable=False),
        sa.Column("sha256", sa.String(64), nullable=False),
        sa.Column("task_id", sa.Uuid(), nullable=True),
        sa.Column("role", sa.String(30), nullable=False),
        sa.Column("meta", sa.JSON(), nullable=True),
        _timestamp("uploaded_at"),
        sa.PrimaryKeyConstraint("id", name="pk_attachments"),
        sa.UniqueConstraint("storage_key", name="uq_attachments_storage_key"),
    )
    op.create_index("ix_attachments_task_id", "attachments", ["task_id"])
    op.create_index("ix_attachments_sha256", "attachments", ["sha256"])


def downgrade() -> None:
    op.drop_table("attachments")
    op.drop_table("tasks")
    op.drop_table("users")

    for enum_name in [
        "final_status_enum",
        "developer_status_enum",
        "task_status_enum",
    ]:
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
