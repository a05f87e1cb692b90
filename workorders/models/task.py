"""
Task ORM model.
Central entity: one field-service work order with its status axes,
attachment-ID lists and timestamps. Company, contact and assignee are stored
as denormalized JSON snapshots of the directory records they reference.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Enum, Index, Integer, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from workorders.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from workorders.services.task_state_machine import (
    DEVELOPER_STATUSES,
    FINAL_STATUSES,
    TASK_STATUSES,
)


class Task(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "tasks"

    code: Mapped[str] = mapped_column(String(100), nullable=False)
    company: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    contact: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    working: Mapped[str] = mapped_column(Text, nullable=False)
    date_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    priority: Mapped[str | None] = mapped_column(String(50), nullable=True)
    task_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)

    # ── Primary axis ──────────────────────────────────────────────────────────
    status: Mapped[str] = mapped_column(
        Enum(*TASK_STATUSES, name="task_status_enum"),
        nullable=False,
        default="pending",
        server_default="pending",
    )

    # ── Assignment ────────────────────────────────────────────────────────────
    assigned: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    assigned_to: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    assigned_to_username: Mapped[str | None] = mapped_column(String(150), nullable=True)
    assigned_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    assignment_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    assignment_attachment: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # ── Approval ──────────────────────────────────────────────────────────────
    approved: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completion_approved: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    completion_approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completion_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    completion_attachment: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    rejection_attachment: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    # Minutes reported by the reviewer
    time_taken: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # ── Developer axis ────────────────────────────────────────────────────────
    developer_status: Mapped[str] = mapped_column(
        Enum(*DEVELOPER_STATUSES, name="developer_status_enum"),
        nullable=False,
        default="pending",
        server_default="pending",
    )
    developer_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    developer_done_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    developer_attachment: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # ── Rejection sub-axis ────────────────────────────────────────────────────
    developer_status_rejection: Mapped[str | None] = mapped_column(String(20), nullable=True)
    developer_rejection_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    developer_rejection_solve_attachment: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list
    )

    # ── Final disposition ─────────────────────────────────────────────────────
    final_status: Mapped[str] = mapped_column(
        Enum(*FINAL_STATUSES, name="final_status_enum"),
        nullable=False,
        default="in-progress",
        server_default="in-progress",
    )

    # ── Retraction ────────────────────────────────────────────────────────────
    unposted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    unposted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    unpost_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # ── Creation attachments ──────────────────────────────────────────────────
    tasks_attachment: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index("ix_tasks_code", "code"),
        Index("ix_tasks_status", "status"),
        Index("ix_tasks_final_status", "final_status"),
        Index("ix_tasks_unposted", "unposted"),
        Index("ix_tasks_assigned_to_username", "assigned_to_username"),
        Index("ix_tasks_status_approved", "status", "approved"),
    )

    def __repr__(self) -> str:
        return f"<Task id={self.id} code={self.code!r} status={self.status}>"
