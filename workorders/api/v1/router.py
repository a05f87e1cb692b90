"""
Aggregates all v1 API routers into a single APIRouter.
"""
from __future__ import annotations

from fastapi import APIRouter

from workorders.api.v1 import attachments, tasks

api_router = APIRouter()

# Attachments first so /tasks/files/{file_id} is matched before /tasks/{task_id}/...
api_router.include_router(attachments.router)
api_router.include_router(tasks.router)
