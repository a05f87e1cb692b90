"""
Custom HTTP exceptions and global exception handlers for the work order service.
All application-level errors are defined here for consistency.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ── Custom exception classes ──────────────────────────────────────────────────

class WorkOrderException(Exception):
    """Base exception for all work order domain errors."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.error_code = error_code or "WORKORDER_ERROR"
        super().__init__(detail)


class NotFoundException(WorkOrderException):
    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        detail = f"{resource} not found"
        if resource_id:
            detail = f"{resource} with id '{resource_id}' not found"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code="NOT_FOUND",
        )


class UnauthorizedException(WorkOrderException):
    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
        )


class InvalidTokenException(WorkOrderException):
    def __init__(self, detail: str = "Invalid or expired token") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="INVALID_TOKEN",
        )


class ForbiddenException(WorkOrderException):
    def __init__(self, detail: str = "You do not have permission to perform this action") -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="FORBIDDEN",
        )


class InvalidTransitionException(WorkOrderException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="INVALID_TRANSITION",
        )


class ValidationException(WorkOrderException):
    """Client-fixable input error carrying field-level detail."""

    def __init__(
        self,
        detail: str,
        errors: list[dict[str, str]] | None = None,
    ) -> None:
        self.errors = errors or []
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code="VALIDATION_ERROR",
        )

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationException":
        return cls(message, errors=[{"field": field, "message": message}])


class FileTooLargeException(WorkOrderException):
    def __init__(self, max_mb: int, filename: str | None = None) -> None:
        detail = f"File exceeds maximum allowed size of {max_mb} MB"
        if filename:
            detail = f"File '{filename}' exceeds maximum allowed size of {max_mb} MB"
        super().__init__(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=detail,
            error_code="FILE_TOO_LARGE",
        )


class UnsupportedMediaTypeException(WorkOrderException):
    def __init__(self, filename: str, allowed_extensions: list[str]) -> None:
        super().__init__(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=(
                f"File type not allowed for '{filename}'. "
                f"Allowed types: {', '.join(allowed_extensions)}"
            ),
            error_code="UNSUPPORTED_MEDIA_TYPE",
        )


class StorageException(WorkOrderException):
    """Blob storage failure. The detail is deliberately opaque."""

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Attachment storage is unavailable",
            error_code="STORAGE_ERROR",
        )


# ── Exception handlers ────────────────────────────────────────────────────────

def _error_response(
    status_code: int,
    detail: str,
    error_code: str,
    errors: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {
        "error": error_code,
        "detail": detail,
    }
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content)


async def workorder_exception_handler(
    request: Request, exc: WorkOrderException
) -> JSONResponse:
    errors = exc.errors if isinstance(exc, ValidationException) else None
    return _error_response(exc.status_code, exc.detail, exc.error_code, errors)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({"field": field, "message": error["msg"]})
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Request validation failed",
        "VALIDATION_ERROR",
        errors,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected internal server error occurred",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI application."""
    app.add_exception_handler(WorkOrderException, workorder_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
