"""
Task workflow service.
Each public method is one logical operation: validate input, load the task,
run the state machine, store attachments, and persist the mutation payload.
Routes only translate HTTP into these calls.
"""
from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from workorders.core.config import settings
from workorders.core.exceptions import NotFoundException, ValidationException
from workorders.core.security import Actor
from workorders.crud.task import crud_task
from workorders.crud.user import crud_user
from workorders.models.task import Task
from workorders.schemas.task import AssigneeRef, CompanyRef, ContactRef
from workorders.services import task_state_machine as sm
from workorders.services.attachment_store import (
    AttachmentRole,
    AttachmentStore,
    IncomingFile,
    SkippedFile,
    StoredBlob,
    attachment_store,
)

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


# ── Input helpers ─────────────────────────────────────────────────────────────

def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _require(**fields: Any) -> None:
    missing = [name for name, value in fields.items() if _blank(value)]
    if missing:
        raise ValidationException(
            "Missing required fields",
            errors=[{"field": name, "message": "Field required"} for name in missing],
        )


def _parse_json_field(schema: type[SchemaT], raw: str, field: str) -> SchemaT:
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        raise ValidationException.for_field(field, f"Invalid JSON for {field}")
    try:
        return schema.model_validate(parsed)
    except PydanticValidationError as exc:
        errors = [
            {
                "field": " -> ".join([field, *(str(loc) for loc in err["loc"])]),
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        raise ValidationException(f"Invalid {field} structure", errors=errors)


def _parse_datetime(raw: str | None, field: str) -> datetime | None:
    if _blank(raw):
        return None
    try:
        return datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))  # type: ignore[union-attr]
    except ValueError:
        raise ValidationException.for_field(field, f"Invalid datetime for {field}")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TaskService:

    def __init__(self, store: AttachmentStore = attachment_store) -> None:
        self.store = store

    # ── Create ────────────────────────────────────────────────────────────────

    async def create_task(
        self,
        db: AsyncSession,
        *,
        code: str | None,
        company: str | None,
        contact: str | None,
        working: str | None,
        date_time: str | None,
        created_by: str | None,
        priority: str | None = None,
        task_remarks: str | None = None,
        files: Sequence[IncomingFile] = (),
    ) -> Task:
        """
        Create a task in the pending state.
        Attachments are validated as a whole before anything is stored.
        """
        _require(
            code=code,
            company=company,
            contact=contact,
            working=working,
            date_time=date_time,
            created_by=created_by,
        )
        company_ref = _parse_json_field(CompanyRef, company, "company")  # type: ignore[arg-type]
        contact_ref = _parse_json_field(ContactRef, contact, "contact")  # type: ignore[arg-type]
        scheduled_at = _parse_datetime(date_time, "date_time")

        task_id = uuid.uuid4()
        batch = await self.store.put_batch(
            db,
            files,
            task_id=task_id,
            role=AttachmentRole.CREATION,
            strict=True,
            uploaded_by=created_by,
        )

        values: dict[str, Any] = {
            "code": code.strip(),  # type: ignore[union-attr]
            "company": company_ref.model_dump(),
            "contact": contact_ref.model_dump(),
            "working": working,
            "date_time": scheduled_at,
            "priority": priority or None,
            "task_remarks": task_remarks or "",
            "created_by": created_by,
            "tasks_attachment": batch.ids,
            "assignment_attachment": [],
            "developer_attachment": [],
            "developer_rejection_solve_attachment": [],
            "completion_attachment": [],
            "rejection_attachment": [],
            **sm.initial_values(),
        }
        task = await crud_task.create_task(db, task_id=task_id, values=values)
        logger.info(
            "Task created: id=%s code=%s attachments=%d", task.id, task.code, len(batch.ids)
        )
        return task

    # ── Read ──────────────────────────────────────────────────────────────────

    async def get_task(self, db: AsyncSession, *, task_id: str | uuid.UUID) -> Task:
        task = await crud_task.get(db, task_id)
        if task is None:
            raise NotFoundException("Task", str(task_id))
        return task

    async def get_task_detail(
        self, db: AsyncSession, *, task_id: str | uuid.UUID
    ) -> tuple[Task, str]:
        """Fetch a task together with the display name of its creator."""
        task = await self.get_task(db, task_id=task_id)
        username = await crud_user.get_display_name(db, task.created_by)
        return task, username

    async def get_file(self, db: AsyncSession, *, file_id: str) -> StoredBlob:
        return await self.store.get(db, file_id)

    # ── Developer axis ────────────────────────────────────────────────────────

    async def update_developer_state(
        self,
        db: AsyncSession,
        *,
        task_id: str | uuid.UUID,
        developer_status: str | None,
        developer_remarks: str | None,
        developer_done_date: str | None = None,
        developer_status_rejection: str | None = None,
        developer_rejection_remarks: str | None = None,
        developer_files: Sequence[IncomingFile] = (),
        rejection_fix_files: Sequence[IncomingFile] = (),
    ) -> tuple[Task, list[SkippedFile]]:
        """
        Record a developer report and append any evidence files.
        Bad files are skipped; the update itself still goes through.
        """
        _require(developer_status=developer_status, developer_remarks=developer_remarks)
        task = await self.get_task(db, task_id=task_id)

        changes = sm.developer_update(
            sm.TaskAxes.from_record(task),
            developer_status=developer_status,
            remarks=developer_remarks,
            done_date=_parse_datetime(developer_done_date, "developer_done_date"),
            rejection_status=developer_status_rejection,
            rejection_remarks=developer_rejection_remarks,
        )

        developer_batch = await self.store.put_batch(
            db,
            developer_files,
            task_id=task.id,
            role=AttachmentRole.DEVELOPER,
            strict=False,
        )
        fix_batch = await self.store.put_batch(
            db,
            rejection_fix_files,
            task_id=task.id,
            role=AttachmentRole.REJECTION_FIX,
            strict=False,
        )
        if developer_batch.ids:
            changes["developer_attachment"] = [
                *(task.developer_attachment or []),
                *developer_batch.ids,
            ]
        if fix_batch.ids:
            changes["developer_rejection_solve_attachment"] = [
                *(task.developer_rejection_solve_attachment or []),
                *fix_batch.ids,
            ]

        updated = await crud_task.update(db, db_obj=task, obj_in=changes)
        skipped = [*developer_batch.skipped, *fix_batch.skipped]
        logger.info(
            "Developer update: task_id=%s developer_status=%s final_status=%s "
            "stored=%d skipped=%d",
            updated.id,
            updated.developer_status,
            updated.final_status,
            len(developer_batch.ids) + len(fix_batch.ids),
            len(skipped),
        )
        return updated, skipped

    # ── Primary axis ──────────────────────────────────────────────────────────

    async def assign_task(
        self,
        db: AsyncSession,
        *,
        task_id: str | uuid.UUID,
        user_id: str | None,
        username: str | None,
        name: str | None = None,
        role_name: str | None = None,
        remarks: str | None = None,
        assigned_date: str | None = None,
        files: Sequence[IncomingFile] = (),
    ) -> tuple[Task, list[SkippedFile]]:
        _require(user_id=user_id, username=username)
        task = await self.get_task(db, task_id=task_id)
        assignee = AssigneeRef(
            id=user_id,  # type: ignore[arg-type]
            username=username,  # type: ignore[arg-type]
            name=name or "",
            role={"name": role_name or ""},  # type: ignore[arg-type]
        )
        changes = sm.assign(
            sm.TaskAxes.from_record(task),
            assignee=assignee.model_dump(),
            remarks=remarks or "",
            assigned_date=_parse_datetime(assigned_date, "assigned_date"),
        )

        batch = await self.store.put_batch(
            db,
            files,
            task_id=task.id,
            role=AttachmentRole.ASSIGNMENT,
            strict=False,
            uploaded_by=user_id,
        )
        if batch.ids:
            changes["assignment_attachment"] = [*(task.assignment_attachment or []), *batch.ids]

        updated = await crud_task.update(db, db_obj=task, obj_in=changes)
        logger.info("Task assigned: id=%s assignee=%s", updated.id, username)
        return updated, batch.skipped

    async def approve_task(self, db: AsyncSession, *, task_id: str | uuid.UUID) -> Task:
        task = await self.get_task(db, task_id=task_id)
        changes = sm.approve(sm.TaskAxes.from_record(task))
        return await crud_task.update(db, db_obj=task, obj_in=changes)

    async def hold_task(self, db: AsyncSession, *, task_id: str | uuid.UUID) -> Task:
        task = await self.get_task(db, task_id=task_id)
        changes = sm.hold(sm.TaskAxes.from_record(task))
        return await crud_task.update(db, db_obj=task, obj_in=changes)

    async def resume_task(
        self,
        db: AsyncSession,
        *,
        task_id: str | uuid.UUID,
        target: sm.TaskStatus,
    ) -> Task:
        task = await self.get_task(db, task_id=task_id)
        changes = sm.resume(sm.TaskAxes.from_record(task), target)
        return await crud_task.update(db, db_obj=task, obj_in=changes)

    async def review_completion(
        self,
        db: AsyncSession,
        *,
        task_id: str | uuid.UUID,
        accepted: bool,
        remarks: str = "",
        time_taken: int | None = None,
        completion_files: Sequence[IncomingFile] = (),
        rejection_files: Sequence[IncomingFile] = (),
    ) -> tuple[Task, list[SkippedFile]]:
        """
        Accept or reject completed work, appending any review evidence.
        Bad files are skipped; the review itself still goes through.
        """
        task = await self.get_task(db, task_id=task_id)
        changes = sm.review_completion(
            sm.TaskAxes.from_record(task),
            accepted=accepted,
            remarks=remarks,
            time_taken=time_taken,
        )

        completion_batch = await self.store.put_batch(
            db,
            completion_files,
            task_id=task.id,
            role=AttachmentRole.COMPLETION,
            strict=False,
        )
        rejection_batch = await self.store.put_batch(
            db,
            rejection_files,
            task_id=task.id,
            role=AttachmentRole.REJECTION,
            strict=False,
        )
        if completion_batch.ids:
            changes["completion_attachment"] = [
                *(task.completion_attachment or []),
                *completion_batch.ids,
            ]
        if rejection_batch.ids:
            changes["rejection_attachment"] = [
                *(task.rejection_attachment or []),
                *rejection_batch.ids,
            ]

        updated = await crud_task.update(db, db_obj=task, obj_in=changes)
        skipped = [*completion_batch.skipped, *rejection_batch.skipped]
        logger.info(
            "Completion reviewed: id=%s accepted=%s status=%s final_status=%s skipped=%d",
            updated.id,
            accepted,
            updated.status,
            updated.final_status,
            len(skipped),
        )
        return updated, skipped

    # ── Retraction ────────────────────────────────────────────────────────────

    async def unpost_tasks(
        self,
        db: AsyncSession,
        *,
        task_ids: Sequence[str],
        actor: Actor,
    ) -> int:
        """
        Bulk unpost. Unknown IDs and tasks that are already unposted are left
        out of the count, so repeating a request reports 0.
        """
        ids = [i for i in task_ids if not _blank(i)]
        if not ids:
            raise ValidationException.for_field("task_ids", "Invalid or empty task_ids")

        now = _now()
        values = sm.unpost_values(force_status=settings.UNPOST_FORCES_STATUS, now=now)
        values["updated_at"] = now
        modified = await crud_task.bulk_unpost(db, task_ids=ids, values=values)
        logger.info(
            "Unposted %d of %d requested task(s): subject=%s role=%s",
            modified,
            len(ids),
            actor.subject,
            actor.role_name,
        )
        return modified


task_service = TaskService()
