"""
FastAPI dependency injection functions.
Provides get_db and the permission gate used by mutating routes.
"""
from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from workorders.core.config import settings
from workorders.core.security import Actor, authorize
from workorders.db.session import get_db

# Re-export get_db so routes can import from one place
__all__ = ["get_db", "require_permission", "DBSession", "UnpostActor"]

bearer_scheme = HTTPBearer(auto_error=False)


def require_permission(permission: str) -> Callable[..., Awaitable[Actor]]:
    """
    Build a dependency that verifies the bearer token and requires `permission`.
    A missing header or a non-Bearer scheme is treated as unauthenticated.
    """

    async def _dependency(
        credentials: Annotated[
            HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
        ] = None,
    ) -> Actor:
        token = credentials.credentials if credentials is not None else None
        return authorize(token, permission)

    return _dependency


# Convenience type aliases for route signatures
DBSession = Annotated[AsyncSession, Depends(get_db)]
UnpostActor = Annotated[Actor, Depends(require_permission(settings.UNPOST_PERMISSION))]
