"""
Attachment store.

Blobs are written once to the upload directory and described by an
`attachments` row; both are addressed by an opaque UUID that is never
reused. Policy: an upload is accepted when either its content type or its
filename extension is on the allow-list, and it is at most
MAX_FILE_SIZE_MB in size.

Batches come in two flavours:
    strict       every file is validated before anything is written and the
                 first violation aborts the whole request (task creation)
    best-effort  invalid files are skipped with a warning and the rest are
                 stored (developer and assignment updates)
Zero-byte files are skipped silently in both.
"""
from __future__ import annotations

import hashlib
import logging
import mimetypes
import os
import uuid
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from workorders.core.config import settings
from workorders.core.exceptions import (
    FileTooLargeException,
    NotFoundException,
    StorageException,
    UnsupportedMediaTypeException,
)
from workorders.crud.attachment import crud_attachment
from workorders.crud.base import parse_id
from workorders.models.attachment import Attachment

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES: frozenset[str] = frozenset(
    {
        "application/pdf",
        "image/jpeg",
        "image/png",
        "image/gif",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain",
        "text/csv",
        "application/json",
    }
)

ALLOWED_EXTENSIONS: tuple[str, ...] = (
    "pdf", "jpg", "jpeg", "png", "gif", "xls", "xlsx", "doc", "docx", "txt", "csv", "json",
)

GENERIC_MIME_TYPES: frozenset[str] = frozenset(
    {"", "application/octet-stream", "binary/octet-stream"}
)

DEFAULT_MIME_TYPE = "application/octet-stream"
_CHUNK_SIZE = 64 * 1024


class AttachmentRole(str, Enum):
    CREATION = "creation"
    ASSIGNMENT = "assignment"
    DEVELOPER = "developer"
    REJECTION_FIX = "rejection-fix"
    COMPLETION = "completion"
    REJECTION = "rejection"


@dataclass(frozen=True)
class IncomingFile:
    """One file of a multipart batch, fully read into memory."""

    filename: str
    content_type: str | None
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    async def from_upload(cls, upload: UploadFile) -> "IncomingFile":
        data = await upload.read()
        return cls(
            filename=upload.filename or "",
            content_type=upload.content_type,
            data=data,
        )


@dataclass(frozen=True)
class SkippedFile:
    filename: str
    reason: str


@dataclass
class BatchResult:
    ids: list[str] = field(default_factory=list)
    skipped: list[SkippedFile] = field(default_factory=list)


@dataclass(frozen=True)
class StoredBlob:
    """A resolved attachment: its metadata row and the path of its bytes."""

    attachment: Attachment
    path: Path

    def iter_bytes(self, chunk_size: int = _CHUNK_SIZE) -> Iterator[bytes]:
        with open(self.path, "rb") as f:
            while chunk := f.read(chunk_size):
                yield chunk


def _declared_type(content_type: str | None) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


def _extension(filename: str) -> str:
    return Path(filename).suffix.lower().lstrip(".")


class AttachmentStore:
    """Durable blob storage with per-upload metadata and policy enforcement."""

    def __init__(
        self,
        upload_dir: str | None = None,
        max_file_size_bytes: int | None = None,
    ) -> None:
        self._upload_dir = upload_dir
        self._max_bytes = max_file_size_bytes

    @property
    def upload_dir(self) -> Path:
        return Path(self._upload_dir or settings.UPLOAD_DIR)

    @property
    def max_file_size_bytes(self) -> int:
        return self._max_bytes or settings.max_file_size_bytes

    # ── Policy ────────────────────────────────────────────────────────────────

    def check_policy(self, filename: str, content_type: str | None, size: int) -> None:
        """Raise when the file's type and extension are both unlisted, or it is too large."""
        type_ok = _declared_type(content_type) in ALLOWED_MIME_TYPES
        ext_ok = _extension(filename) in ALLOWED_EXTENSIONS
        if not type_ok and not ext_ok:
            raise UnsupportedMediaTypeException(filename, list(ALLOWED_EXTENSIONS))
        if size > self.max_file_size_bytes:
            raise FileTooLargeException(self.max_file_size_bytes // (1024 * 1024), filename)

    def resolve_mime_type(self, filename: str, content_type: str | None) -> str:
        declared = _declared_type(content_type)
        if declared not in GENERIC_MIME_TYPES:
            return declared
        guessed, _ = mimetypes.guess_type(filename)
        return guessed or DEFAULT_MIME_TYPE

    # ── Single blob ───────────────────────────────────────────────────────────

    async def put(
        self,
        db: AsyncSession,
        *,
        name: str,
        content_type: str | None,
        data: bytes,
        metadata: Mapping[str, Any] | None = None,
    ) -> uuid.UUID:
        """Validate and store one blob. Returns its new attachment ID."""
        self.check_policy(name, content_type, len(data))

        meta = dict(metadata or {})
        task_id = parse_id(meta.pop("task_id", None))
        role = str(meta.pop("role", AttachmentRole.CREATION.value))
        attachment_id = uuid.uuid4()
        ext = _extension(name)
        storage_key = f"{attachment_id.hex}.{ext}" if ext else attachment_id.hex
        path = self.upload_dir / storage_key

        self._write_blob(path, data, name=name, task_id=task_id)

        try:
            await crud_attachment.create_attachment(
                db,
                attachment_id=attachment_id,
                filename=name,
                storage_key=storage_key,
                file_size=len(data),
                mime_type=self.resolve_mime_type(name, content_type),
                sha256=hashlib.sha256(data).hexdigest(),
                task_id=task_id,
                role=role,
                meta=meta or None,
            )
        except Exception:
            path.unlink(missing_ok=True)
            raise

        logger.info(
            "Stored attachment id=%s filename=%s size=%d task_id=%s role=%s",
            attachment_id,
            name,
            len(data),
            task_id,
            role,
        )
        return attachment_id

    def _write_blob(
        self, path: Path, data: bytes, *, name: str, task_id: uuid.UUID | None
    ) -> None:
        partial = path.with_name(path.name + ".part")
        try:
            os.makedirs(path.parent, exist_ok=True)
            with open(partial, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(partial, path)
        except OSError:
            logger.exception(
                "Blob write failed: filename=%s path=%s task_id=%s", name, path, task_id
            )
            if partial.exists():
                partial.unlink()
            raise StorageException()

    async def get(self, db: AsyncSession, attachment_id: str | uuid.UUID) -> StoredBlob:
        """Resolve an attachment ID to its metadata and bytes."""
        attachment = await crud_attachment.get(db, attachment_id)
        if attachment is None:
            raise NotFoundException("File", str(attachment_id))

        path = self.upload_dir / attachment.storage_key
        if not path.is_file():
            logger.error(
                "Attachment %s has metadata but no blob at %s", attachment.id, path
            )
            raise StorageException()
        return StoredBlob(attachment=attachment, path=path)

    # ── Batches ───────────────────────────────────────────────────────────────

    async def put_batch(
        self,
        db: AsyncSession,
        files: Sequence[IncomingFile],
        *,
        task_id: uuid.UUID,
        role: AttachmentRole,
        strict: bool,
        uploaded_by: str | None = None,
    ) -> BatchResult:
        """
        Store a multipart batch, returning the new IDs in upload order.

        In strict mode the first policy violation is raised before any blob
        is written. Otherwise violations and write failures are skipped and
        reported in `BatchResult.skipped`.
        """
        result = BatchResult()
        candidates = [f for f in files if f.size > 0]
        if len(candidates) < len(files):
            logger.debug(
                "Ignoring %d empty file(s) for task_id=%s",
                len(files) - len(candidates),
                task_id,
            )

        if strict:
            for incoming in candidates:
                self.check_policy(incoming.filename, incoming.content_type, incoming.size)

        metadata: dict[str, Any] = {"task_id": task_id, "role": role.value}
        if uploaded_by:
            metadata["uploaded_by"] = uploaded_by

        for index, incoming in enumerate(candidates):
            name = incoming.filename or f"file_{index}"
            try:
                attachment_id = await self.put(
                    db,
                    name=name,
                    content_type=incoming.content_type,
                    data=incoming.data,
                    metadata=metadata,
                )
            except (FileTooLargeException, UnsupportedMediaTypeException, StorageException) as exc:
                if strict:
                    raise
                logger.warning(
                    "Skipped attachment for task_id=%s role=%s filename=%s: %s",
                    task_id,
                    role.value,
                    name,
                    exc.detail,
                )
                result.skipped.append(SkippedFile(filename=name, reason=exc.detail))
                continue
            result.ids.append(str(attachment_id))
        return result


attachment_store = AttachmentStore()
