"""
Attachment ORM model.
Metadata for an immutable uploaded blob. The bytes live in the upload
directory under `storage_key`; tasks reference attachments by ID only.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, DateTime, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from workorders.db.base import Base, UUIDPrimaryKeyMixin


class Attachment(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "attachments"

    filename: Mapped[str] = mapped_column(String(500), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(2000), nullable=False, unique=True)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(200), nullable=False)
    sha256: Mapped[str] = mapped_column(String(64), nullable=False)
    # No foreign key: blobs are written before the owning task row exists.
    task_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    role: Mapped[str] = mapped_column(String(30), nullable=False)
    meta: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_attachments_task_id", "task_id"),
        Index("ix_attachments_sha256", "sha256"),
    )

    def __repr__(self) -> str:
        return f"<Attachment id={self.id} filename={self.filename!r}>"
