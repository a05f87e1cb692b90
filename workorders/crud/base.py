"""
Generic async CRUD base class.
All domain-specific CRUD classes extend CRUDBase and inherit these methods.
"""
from __future__ import annotations

import uuid
from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from workorders.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


def parse_id(value: Any) -> uuid.UUID | None:
    """Return `value` as a UUID, or None when it is not a well-formed ID."""
    if isinstance(value, uuid.UUID):
        return value
    if not isinstance(value, str):
        return None
    try:
        return uuid.UUID(value.strip())
    except ValueError:
        return None


class CRUDBase(Generic[ModelType]):
    """
    Generic CRUD operations for SQLAlchemy async ORM models.

    Type parameters:
        ModelType: The SQLAlchemy ORM model class.
    """

    def __init__(self, model: type[ModelType]) -> None:
        self.model = model

    async def get(self, db: AsyncSession, id: uuid.UUID | str) -> ModelType | None:
        """Fetch a single record by primary key. Malformed IDs resolve to None."""
        pk = parse_id(id)
        if pk is None:
            return None
        result = await db.execute(select(self.model).where(self.model.id == pk))  # type: ignore[attr-defined]
        return result.scalar_one_or_none()

    async def get_count(self, db: AsyncSession) -> int:
        """Return total count of records in the table."""
        result = await db.execute(select(func.count()).select_from(self.model))
        return result.scalar_one()

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: dict[str, Any],
    ) -> ModelType:
        """Apply a full mutation payload to an existing record in one flush."""
        for field, value in obj_in.items():
            setattr(db_obj, field, value)

        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)
        return db_obj
