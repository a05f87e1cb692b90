"""
User directory lookups.
"""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from workorders.crud.base import CRUDBase
from workorders.models.user import User

UNKNOWN_USER = "N/A"


class CRUDUser(CRUDBase[User]):

    async def get_display_name(self, db: AsyncSession, user_ref: str | None) -> str:
        """Resolve a user reference to its username, or the N/A sentinel."""
        if not user_ref:
            return UNKNOWN_USER
        user = await self.get(db, user_ref)
        if user is None:
            return UNKNOWN_USER
        return user.username


crud_user = CRUDUser(User)
