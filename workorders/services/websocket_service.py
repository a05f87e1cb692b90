"""
Live task snapshots over WebSocket.
Each observer gets its own subscription: a full snapshot on connect, another
every poll interval, and a heartbeat ping in between. Subscriptions share
nothing, so one observer failing never affects another.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from workorders.core.config import settings
from workorders.crud.task import crud_task
from workorders.db.session import AsyncSessionLocal
from workorders.schemas.task import TaskRead

logger = logging.getLogger(__name__)

SnapshotLoader = Callable[[], Awaitable[list[dict[str, Any]]]]


async def load_task_snapshot(
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
) -> list[dict[str, Any]]:
    """Read every task in its own short-lived session."""
    async with session_factory() as session:
        tasks = await crud_task.list_all(session)
        return [TaskRead.model_validate(t).model_dump(mode="json") for t in tasks]


class TaskSubscription:
    """
    One observer's snapshot stream.

    `run()` drives the stream until the client disconnects or a send fails.
    `close()` cancels the timers and closes the socket exactly once.
    """

    def __init__(
        self,
        websocket: WebSocket,
        loader: SnapshotLoader = load_task_snapshot,
        *,
        poll_interval: float | None = None,
        heartbeat_interval: float | None = None,
        on_close: Callable[[TaskSubscription], None] | None = None,
    ) -> None:
        self.websocket = websocket
        self._loader = loader
        self.poll_interval = poll_interval or settings.SNAPSHOT_POLL_INTERVAL_SECONDS
        self.heartbeat_interval = (
            heartbeat_interval or settings.SNAPSHOT_HEARTBEAT_INTERVAL_SECONDS
        )
        self._on_close = on_close
        self._closed = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def run(self) -> None:
        try:
            data = await self._loader()
        except Exception:
            logger.exception("Initial snapshot read failed; closing observer")
            await self.close(code=1011)
            return

        if not await self._send({"type": "snapshot", "data": data}):
            return

        self._tasks = [
            asyncio.create_task(self._poll()),
            asyncio.create_task(self._heartbeat()),
            asyncio.create_task(self._receive()),
        ]
        try:
            await self._closed.wait()
        finally:
            await self.close()
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def close(self, code: int = 1000) -> None:
        if self._closed.is_set():
            return
        self._closed.set()

        current = asyncio.current_task()
        for task in self._tasks:
            if task is not current:
                task.cancel()

        try:
            await self.websocket.close(code=code)
        except Exception as exc:
            # The peer may already be gone.
            logger.debug("WebSocket close raised: %s", exc)

        if self._on_close is not None:
            self._on_close(self)
        logger.info("Task observer closed (code=%s)", code)

    async def _send(self, message: dict[str, Any]) -> bool:
        if self._closed.is_set():
            return False
        try:
            await self.websocket.send_json(message)
        except Exception as exc:
            logger.info("Send to task observer failed, closing: %s", exc)
            await self.close()
            return False
        return True

    async def _poll(self) -> None:
        while not self._closed.is_set():
            await asyncio.sleep(self.poll_interval)
            try:
                data = await self._loader()
            except Exception:
                logger.exception("Snapshot read failed; retrying on next tick")
                continue
            if not await self._send({"type": "snapshot", "data": data}):
                return

    async def _heartbeat(self) -> None:
        while not self._closed.is_set():
            await asyncio.sleep(self.heartbeat_interval)
            if not await self._send({"type": "ping"}):
                return

    async def _receive(self) -> None:
        """Drain client frames (pongs) until the client goes away."""
        try:
            while True:
                text = await self.websocket.receive_text()
                logger.debug("Task observer sent: %s", text)
        except WebSocketDisconnect:
            logger.info("Task observer disconnected")
        finally:
            await self.close()


class ConnectionManager:
    """Tracks live subscriptions so they can be counted and shut down together."""

    def __init__(self) -> None:
        self._subscriptions: set[TaskSubscription] = set()

    async def connect(
        self,
        websocket: WebSocket,
        loader: SnapshotLoader = load_task_snapshot,
        **kwargs: Any,
    ) -> TaskSubscription:
        await websocket.accept()
        subscription = TaskSubscription(
            websocket, loader, on_close=self.disconnect, **kwargs
        )
        self._subscriptions.add(subscription)
        logger.info("Task observer connected (%d active)", len(self._subscriptions))
        return subscription

    def disconnect(self, subscription: TaskSubscription) -> None:
        self._subscriptions.discard(subscription)

    @property
    def active_count(self) -> int:
        return len(self._subscriptions)

    async def close_all(self) -> None:
        for subscription in list(self._subscriptions):
            await subscription.close(code=1001)


# Singleton instance shared across the application
ws_manager = ConnectionManager()
