"""
Task Pydantic schemas.
Structured sub-objects parsed from multipart JSON fields, read models, and
request/response bodies for the workflow endpoints.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from workorders.services.task_state_machine import TaskStatus


# ── Directory references ──────────────────────────────────────────────────────

class CompanyRef(BaseModel):
    """Company reference with its denormalized display fields."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    city: str = ""
    address: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v


class ContactRef(BaseModel):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)


class RoleRef(BaseModel):
    name: str = ""


class AssigneeRef(BaseModel):
    id: str = Field(min_length=1)
    username: str = Field(min_length=1)
    name: str = ""
    role: RoleRef = Field(default_factory=RoleRef)


# ── Read ──────────────────────────────────────────────────────────────────────

class TaskRead(BaseModel):
    id: uuid.UUID
    code: str
    company: dict[str, Any]
    contact: dict[str, Any]
    working: str
    date_time: datetime
    priority: str | None
    task_remarks: str | None
    created_by: str
    created_at: datetime
    updated_at: datetime

    status: str

    assigned: bool
    assigned_to: dict[str, Any] | None
    assigned_date: datetime | None
    assignment_remarks: str | None
    assignment_attachment: list[str]

    approved: bool
    approved_at: datetime | None
    completion_approved: bool
    completion_approved_at: datetime | None
    completion_remarks: str | None
    rejection_remarks: str | None
    completion_attachment: list[str]
    rejection_attachment: list[str]
    time_taken: int | None

    developer_status: str
    developer_remarks: str | None
    developer_done_date: datetime | None
    developer_attachment: list[str]

    developer_status_rejection: str | None
    developer_rejection_remarks: str | None
    developer_rejection_solve_attachment: list[str]

    final_status: str

    unposted: bool
    unposted_at: datetime | None
    unpost_status: str | None

    tasks_attachment: list[str]

    model_config = ConfigDict(from_attributes=True)


class TaskDetail(TaskRead):
    created_by_username: str


class SkippedFileRead(BaseModel):
    filename: str
    reason: str

    model_config = ConfigDict(from_attributes=True)


class DeveloperUpdateResponse(BaseModel):
    message: str = "Task status updated successfully"
    task: TaskRead
    skipped_files: list[SkippedFileRead] = Field(default_factory=list)


class AssignResponse(BaseModel):
    task: TaskRead
    skipped_files: list[SkippedFileRead] = Field(default_factory=list)


# ── Unpost ────────────────────────────────────────────────────────────────────

class TaskUnpostRequest(BaseModel):
    """Accepts a list of IDs or a single ID."""

    task_ids: list[str] = Field(default_factory=list)

    @field_validator("task_ids", mode="before")
    @classmethod
    def normalize_ids(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


class UnpostResponse(BaseModel):
    message: str = "Tasks unposted successfully"
    modified_count: int


# ── Transitions ───────────────────────────────────────────────────────────────

class CompletionReviewResponse(BaseModel):
    task: TaskRead
    skipped_files: list[SkippedFileRead] = Field(default_factory=list)


class ResumeRequest(BaseModel):
    status: TaskStatus
