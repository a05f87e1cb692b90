"""
Task CRUD operations.
Extends CRUDBase with the workflow list views and the bulk unpost update.
"""
from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import Any

from sqlalchemy import ColumnElement, and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from workorders.crud.base import CRUDBase, parse_id
from workorders.models.task import Task
from workorders.services.task_state_machine import (
    REJECTION_FIXED,
    DeveloperStatus,
    FinalStatus,
    TaskStatus,
)


class CRUDTask(CRUDBase[Task]):

    async def create_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        values: dict[str, Any],
    ) -> Task:
        task = Task(id=task_id, **values)
        db.add(task)
        await db.flush()
        await db.refresh(task)
        return task

    async def list_all(self, db: AsyncSession) -> list[Task]:
        """Every task, newest first. Used for live snapshots."""
        result = await db.execute(select(Task).order_by(Task.created_at.desc()))
        return list(result.scalars().all())

    async def _list_where(
        self,
        db: AsyncSession,
        *conditions: ColumnElement[bool],
        skip: int = 0,
        limit: int = 100,
        order_by: Any = None,
    ) -> tuple[list[Task], int]:
        query = select(Task)
        count_query = select(func.count()).select_from(Task)
        if conditions:
            query = query.where(*conditions)
            count_query = count_query.where(*conditions)

        total_result = await db.execute(count_query)
        total = total_result.scalar_one()

        order = order_by if order_by is not None else Task.created_at.desc()
        result = await db.execute(query.order_by(order).offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def list_paginated(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100
    ) -> tuple[list[Task], int]:
        return await self._list_where(db, skip=skip, limit=limit)

    async def list_pending(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100
    ) -> tuple[list[Task], int]:
        return await self._list_where(
            db,
            Task.status == TaskStatus.PENDING.value,
            Task.approved.is_(False),
            Task.unposted.is_(False),
            skip=skip,
            limit=limit,
        )

    async def list_approved(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100
    ) -> tuple[list[Task], int]:
        return await self._list_where(
            db,
            Task.approved.is_(True),
            Task.status != TaskStatus.UNPOSTED.value,
            Task.unposted.is_(False),
            skip=skip,
            limit=limit,
            order_by=Task.approved_at.desc(),
        )

    async def list_completed(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100
    ) -> tuple[list[Task], int]:
        """
        Reportable completed work: approved completion, done, not unposted.
        SQL form of `task_state_machine.is_reportable_completed`; keep the two in step.
        """
        return await self._list_where(
            db,
            Task.completion_approved.is_(True),
            Task.final_status == FinalStatus.DONE.value,
            Task.unposted.is_not(True),
            skip=skip,
            limit=limit,
            order_by=Task.completion_approved_at.desc(),
        )

    async def list_developer_working(
        self,
        db: AsyncSession,
        *,
        username: str,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Task], int]:
        """
        Tasks a developer still has to act on: assigned and not yet done,
        or rejected and not yet reported fixed.
        """
        in_progress = and_(
            Task.status == TaskStatus.ASSIGNED.value,
            Task.developer_status != DeveloperStatus.DONE.value,
            Task.final_status != FinalStatus.DONE.value,
        )
        awaiting_fix = and_(
            Task.final_status == FinalStatus.REJECTED.value,
            or_(
                Task.developer_status_rejection.is_(None),
                Task.developer_status_rejection != REJECTION_FIXED,
            ),
        )
        return await self._list_where(
            db,
            Task.assigned_to_username == username,
            Task.unposted.is_(False),
            or_(in_progress, awaiting_fix),
            skip=skip,
            limit=limit,
        )

    async def list_unposted(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100
    ) -> tuple[list[Task], int]:
        return await self._list_where(
            db,
            Task.unposted.is_(True),
            skip=skip,
            limit=limit,
            order_by=Task.unposted_at.desc(),
        )

    async def bulk_unpost(
        self,
        db: AsyncSession,
        *,
        task_ids: Iterable[Any],
        values: dict[str, Any],
    ) -> int:
        """
        Apply `values` to every existing, not-yet-unposted task in one UPDATE.
        Malformed and unknown IDs are ignored. Returns the number of rows changed.
        """
        ids = {pk for pk in (parse_id(raw) for raw in task_ids) if pk is not None}
        if not ids:
            return 0
        result = await db.execute(
            update(Task)
            .where(Task.id.in_(sorted(ids)), Task.unposted.is_(False))
            .values(**values)
            .execution_options(synchronize_session="evaluate")
        )
        await db.flush()
        return result.rowcount or 0


crud_task = CRUDTask(Task)
