"""
WebSocket endpoint for live task snapshots.
The server sends:
    - {"type": "snapshot", "data": [...]} on connect and every poll interval.
    - {"type": "ping"} every heartbeat interval.
"""
from __future__ import annotations

from fastapi import APIRouter, WebSocket

from workorders.services.websocket_service import ws_manager

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws/tasks")
async def task_snapshots(websocket: WebSocket) -> None:
    subscription = await ws_manager.connect(websocket)
    await subscription.run()
