"""
Security utilities: JWT verification and permission checks.
Tokens are issued elsewhere; this service only verifies them with python-jose.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from jose import JWTError, jwt

from workorders.core.config import settings
from workorders.core.exceptions import (
    ForbiddenException,
    InvalidTokenException,
    UnauthorizedException,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Identity decoded from a verified bearer token."""

    subject: str | None
    role_name: str | None
    permissions: frozenset[str] = field(default_factory=frozenset)

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate a bearer token against the shared secret.
    Signature and expiry are checked. Raises JWTError on failure.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def _actor_from_payload(payload: dict[str, Any]) -> Actor:
    role = payload.get("role")
    role_name: str | None = None
    permissions: frozenset[str] = frozenset()
    if isinstance(role, dict):
        role_name = role.get("name")
        raw = role.get("permissions")
        if isinstance(raw, (list, tuple)):
            permissions = frozenset(str(p) for p in raw)

    subject = payload.get("sub") or payload.get("id") or payload.get("username")
    return Actor(
        subject=str(subject) if subject is not None else None,
        role_name=role_name,
        permissions=permissions,
    )


def authorize(token: str | None, required_permission: str) -> Actor:
    """
    Verify a bearer token and require a permission from its embedded role.

    Raises:
        UnauthorizedException: token absent.
        InvalidTokenException: signature or expiry verification failed.
        ForbiddenException: the role does not grant required_permission.
    """
    if not token:
        raise UnauthorizedException("Missing or invalid Authorization header")

    try:
        payload = decode_access_token(token)
    except JWTError:
        raise InvalidTokenException("Invalid or expired access token")

    actor = _actor_from_payload(payload)
    if not actor.has_permission(required_permission):
        logger.info(
            "Permission denied: subject=%s role=%s required=%s",
            actor.subject,
            actor.role_name,
            required_permission,
        )
        raise ForbiddenException("Missing or insufficient permissions")
    return actor
