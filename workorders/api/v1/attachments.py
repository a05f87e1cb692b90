"""
Attachment routes.
/api/v1/tasks/files/{file_id} streams a stored blob back as a download.
/api/v1/tasks/{task_id}/attachments lists the metadata stored for a task.
"""
from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import FileResponse

from workorders.core.dependencies import DBSession
from workorders.crud.attachment import crud_attachment
from workorders.schemas.attachment import AttachmentRead
from workorders.services.task_service import task_service

router = APIRouter(tags=["Attachments"])


@router.get(
    "/tasks/files/{file_id}",
    response_class=FileResponse,
    summary="Download an attachment",
)
async def download_file(file_id: str, db: DBSession) -> FileResponse:
    blob = await task_service.get_file(db, file_id=file_id)
    return FileResponse(
        blob.path,
        media_type=blob.attachment.mime_type,
        filename=blob.attachment.filename,
    )


@router.get(
    "/tasks/{task_id}/attachments",
    response_model=list[AttachmentRead],
    summary="List attachments stored for a task",
)
async def list_attachments(task_id: str, db: DBSession) -> list[AttachmentRead]:
    task = await task_service.get_task(db, task_id=task_id)
    attachments = await crud_attachment.list_by_task(db, task_id=task.id)
    return [AttachmentRead.model_validate(a) for a in attachments]
