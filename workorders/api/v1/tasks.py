"""
Task routes.
Multipart create, developer, assignment and completion-review updates,
workflow transitions, paginated list views, and the gated bulk unpost.
"""
from typing import Annotated

from fastapi import APIRouter, File, Form, Query, Request, UploadFile, status

from workorders.core.config import settings
from workorders.core.dependencies import DBSession, UnpostActor
from workorders.core.rate_limit import limiter
from workorders.crud.task import crud_task
from workorders.schemas.pagination import Page, PageParams, PaginatedResponse
from workorders.schemas.task import (
    AssignResponse,
    CompletionReviewResponse,
    DeveloperUpdateResponse,
    ResumeRequest,
    SkippedFileRead,
    TaskDetail,
    TaskRead,
    TaskUnpostRequest,
    UnpostResponse,
)
from workorders.services.attachment_store import IncomingFile
from workorders.services.task_service import task_service

router = APIRouter(prefix="/tasks", tags=["Tasks"])

OptionalForm = Annotated[str | None, Form()]
Uploads = Annotated[list[UploadFile] | None, File()]


async def _read_uploads(uploads: list[UploadFile] | None) -> list[IncomingFile]:
    return [await IncomingFile.from_upload(u) for u in uploads or []]


def _page(tasks: list, total: int, paging: PageParams) -> PaginatedResponse[TaskRead]:
    return PaginatedResponse[TaskRead].from_page(
        [TaskRead.model_validate(t) for t in tasks], total, paging
    )


# ── Collection ────────────────────────────────────────────────────────────────

@router.get(
    "/",
    response_model=PaginatedResponse[TaskRead],
    summary="List all tasks, newest first",
)
async def list_tasks(
    db: DBSession,
    paging: Page,
) -> PaginatedResponse[TaskRead]:
    tasks, total = await crud_task.list_paginated(db, skip=paging.skip, limit=paging.size)
    return _page(tasks, total, paging)


@router.post(
    "/",
    response_model=TaskRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a task with optional attachments",
)
async def create_task(
    db: DBSession,
    code: OptionalForm = None,
    company: OptionalForm = None,
    contact: OptionalForm = None,
    working: OptionalForm = None,
    date_time: OptionalForm = None,
    created_by: OptionalForm = None,
    priority: OptionalForm = None,
    task_remarks: OptionalForm = None,
    tasks_attachment: Uploads = None,
) -> TaskRead:
    task = await task_service.create_task(
        db,
        code=code,
        company=company,
        contact=contact,
        working=working,
        date_time=date_time,
        created_by=created_by,
        priority=priority,
        task_remarks=task_remarks,
        files=await _read_uploads(tasks_attachment),
    )
    return TaskRead.model_validate(task)


@router.put(
    "/unpost",
    response_model=UnpostResponse,
    summary="Unpost tasks in bulk",
)
@limiter.limit(settings.RATE_LIMIT_UNPOST)
async def unpost_tasks(
    request: Request,
    body: TaskUnpostRequest,
    actor: UnpostActor,
    db: DBSession,
) -> UnpostResponse:
    modified = await task_service.unpost_tasks(db, task_ids=body.task_ids, actor=actor)
    return UnpostResponse(modified_count=modified)


# ── List views ────────────────────────────────────────────────────────────────

@router.get(
    "/pending",
    response_model=PaginatedResponse[TaskRead],
    summary="Tasks awaiting assignment",
)
async def list_pending(
    db: DBSession,
    paging: Page,
) -> PaginatedResponse[TaskRead]:
    tasks, total = await crud_task.list_pending(db, skip=paging.skip, limit=paging.size)
    return _page(tasks, total, paging)


@router.get(
    "/approved",
    response_model=PaginatedResponse[TaskRead],
    summary="Approved tasks",
)
async def list_approved(
    db: DBSession,
    paging: Page,
) -> PaginatedResponse[TaskRead]:
    tasks, total = await crud_task.list_approved(db, skip=paging.skip, limit=paging.size)
    return _page(tasks, total, paging)


@router.get(
    "/completed",
    response_model=PaginatedResponse[TaskRead],
    summary="Reportable completed work",
)
async def list_completed(
    db: DBSession,
    paging: Page,
) -> PaginatedResponse[TaskRead]:
    tasks, total = await crud_task.list_completed(db, skip=paging.skip, limit=paging.size)
    return _page(tasks, total, paging)


@router.get(
    "/unposted",
    response_model=PaginatedResponse[TaskRead],
    summary="Unposted tasks",
)
async def list_unposted(
    db: DBSession,
    paging: Page,
) -> PaginatedResponse[TaskRead]:
    tasks, total = await crud_task.list_unposted(db, skip=paging.skip, limit=paging.size)
    return _page(tasks, total, paging)


@router.get(
    "/developer-working",
    response_model=PaginatedResponse[TaskRead],
    summary="Open work for one developer",
)
async def list_developer_working(
    db: DBSession,
    paging: Page,
    username: str = Query(min_length=1),
) -> PaginatedResponse[TaskRead]:
    tasks, total = await crud_task.list_developer_working(
        db, username=username, skip=paging.skip, limit=paging.size
    )
    return _page(tasks, total, paging)


# ── Single task ───────────────────────────────────────────────────────────────

@router.get(
    "/{task_id}",
    response_model=TaskDetail,
    summary="Get a task by ID",
)
async def get_task(task_id: str, db: DBSession) -> TaskDetail:
    task, username = await task_service.get_task_detail(db, task_id=task_id)
    return TaskDetail.model_validate(
        {**TaskRead.model_validate(task).model_dump(), "created_by_username": username}
    )


@router.put(
    "/{task_id}/developer",
    response_model=DeveloperUpdateResponse,
    summary="Record developer progress and evidence",
)
async def update_developer_state(
    task_id: str,
    db: DBSession,
    developer_status: OptionalForm = None,
    developer_remarks: OptionalForm = None,
    developer_done_date: OptionalForm = None,
    developer_status_rejection: OptionalForm = None,
    developer_rejection_remarks: OptionalForm = None,
    developer_attachments: Uploads = None,
    developer_rejection_solve_attachments: Uploads = None,
) -> DeveloperUpdateResponse:
    task, skipped = await task_service.update_developer_state(
        db,
        task_id=task_id,
        developer_status=developer_status,
        developer_remarks=developer_remarks,
        developer_done_date=developer_done_date,
        developer_status_rejection=developer_status_rejection,
        developer_rejection_remarks=developer_rejection_remarks,
        developer_files=await _read_uploads(developer_attachments),
        rejection_fix_files=await _read_uploads(developer_rejection_solve_attachments),
    )
    return DeveloperUpdateResponse(
        task=TaskRead.model_validate(task),
        skipped_files=[SkippedFileRead.model_validate(s) for s in skipped],
    )


@router.put(
    "/{task_id}/assign",
    response_model=AssignResponse,
    summary="Assign a task to a developer",
)
async def assign_task(
    task_id: str,
    db: DBSession,
    user_id: OptionalForm = None,
    username: OptionalForm = None,
    name: OptionalForm = None,
    role_name: OptionalForm = None,
    remarks: OptionalForm = None,
    assigned_date: OptionalForm = None,
    files: Uploads = None,
) -> AssignResponse:
    task, skipped = await task_service.assign_task(
        db,
        task_id=task_id,
        user_id=user_id,
        username=username,
        name=name,
        role_name=role_name,
        remarks=remarks,
        assigned_date=assigned_date,
        files=await _read_uploads(files),
    )
    return AssignResponse(
        task=TaskRead.model_validate(task),
        skipped_files=[SkippedFileRead.model_validate(s) for s in skipped],
    )


@router.post(
    "/{task_id}/approve",
    response_model=TaskRead,
    summary="Approve an assigned task",
)
async def approve_task(task_id: str, db: DBSession) -> TaskRead:
    task = await task_service.approve_task(db, task_id=task_id)
    return TaskRead.model_validate(task)


@router.post(
    "/{task_id}/hold",
    response_model=TaskRead,
    summary="Put a task on hold",
)
async def hold_task(task_id: str, db: DBSession) -> TaskRead:
    task = await task_service.hold_task(db, task_id=task_id)
    return TaskRead.model_validate(task)


@router.post(
    "/{task_id}/resume",
    response_model=TaskRead,
    summary="Resume a task that is on hold",
)
async def resume_task(task_id: str, body: ResumeRequest, db: DBSession) -> TaskRead:
    task = await task_service.resume_task(db, task_id=task_id, target=body.status)
    return TaskRead.model_validate(task)


@router.put(
    "/{task_id}/completion",
    response_model=CompletionReviewResponse,
    summary="Accept or reject the developer's completed work",
)
async def review_completion(
    task_id: str,
    db: DBSession,
    accepted: Annotated[bool, Form()],
    remarks: Annotated[str, Form(max_length=10000)] = "",
    time_taken: Annotated[int | None, Form(ge=0)] = None,
    completion_attachment: Uploads = None,
    rejection_attachment: Uploads = None,
) -> CompletionReviewResponse:
    task, skipped = await task_service.review_completion(
        db,
        task_id=task_id,
        accepted=accepted,
        remarks=remarks,
        time_taken=time_taken,
        completion_files=await _read_uploads(completion_attachment),
        rejection_files=await _read_uploads(rejection_attachment),
    )
    return CompletionReviewResponse(
        task=TaskRead.model_validate(task),
        skipped_files=[SkippedFileRead.model_validate(s) for s in skipped],
    )
