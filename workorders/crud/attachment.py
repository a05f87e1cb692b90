"""
Attachment CRUD operations.
"""
from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from workorders.crud.base import CRUDBase
from workorders.models.attachment import Attachment


class CRUDAttachment(CRUDBase[Attachment]):

    async def create_attachment(
        self,
        db: AsyncSession,
        *,
        attachment_id: uuid.UUID,
        filename: str,
        storage_key: str,
        file_size: int,
        mime_type: str,
        sha256: str,
        task_id: uuid.UUID | None,
        role: str,
        meta: dict[str, Any] | None = None,
    ) -> Attachment:
        attachment = Attachment(
            id=attachment_id,
            filename=filename,
            storage_key=storage_key,
            file_size=file_size,
            mime_type=mime_type,
            sha256=sha256,
            task_id=task_id,
            role=role,
            meta=meta,
        )
        db.add(attachment)
        await db.flush()
        await db.refresh(attachment)
        return attachment

    async def list_by_task(
        self, db: AsyncSession, *, task_id: uuid.UUID
    ) -> list[Attachment]:
        result = await db.execute(
            select(Attachment)
            .where(Attachment.task_id == task_id)
            .order_by(Attachment.uploaded_at)
        )
        return list(result.scalars().all())


crud_attachment = CRUDAttachment(Attachment)
