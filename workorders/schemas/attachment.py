"""
Attachment Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class AttachmentRead(BaseModel):
    id: uuid.UUID
    filename: str
    file_size: int
    mime_type: str
    sha256: str
    task_id: uuid.UUID | None
    role: str
    uploaded_at: datetime

    model_config = {"from_attributes": True}
