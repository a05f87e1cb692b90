"""
Test configuration and shared fixtures.
Each test gets a fresh in-memory SQLite database and its own upload directory.
"""
from __future__ import annotations

import json
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

import workorders.models  # noqa: F401  register mappers
from workorders.core.config import settings
from workorders.core.rate_limit import limiter
from workorders.db.base import Base
from workorders.db.session import get_db
from workorders.main import app

# ── Test database ─────────────────────────────────────────────────────────────
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(autouse=True)
def isolated_uploads(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point blob storage at a per-test directory and reset rate limits."""
    upload_dir = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(upload_dir))
    limiter.reset()
    return upload_dir


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a test database session that rolls back after each test."""
    async with session_factory() as session:
        try:
            yield session
            await session.rollback()
        finally:
            await session.close()


@pytest_asyncio.fixture
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP test client with the test DB injected."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Helper fixtures ───────────────────────────────────────────────────────────

@pytest.fixture
def make_token() -> Callable[..., str]:
    """Build a signed bearer token carrying a role with the given permissions."""

    def _make(
        permissions: list[str] | None = None,
        *,
        role_name: str = "admin",
        subject: str = "user-1",
        expires_in: timedelta = timedelta(minutes=15),
        secret: str | None = None,
    ) -> str:
        payload: dict[str, Any] = {
            "sub": subject,
            "role": {"name": role_name, "permissions": permissions or []},
            "exp": datetime.now(timezone.utc) + expires_in,
        }
        return jwt.encode(
            payload, secret or settings.SECRET_KEY, algorithm=settings.ALGORITHM
        )

    return _make


@pytest.fixture
def unpost_headers(make_token: Callable[..., str]) -> dict[str, str]:
    token = make_token([settings.UNPOST_PERMISSION])
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def task_form() -> dict[str, str]:
    """A complete multipart form for task creation."""
    return {
        "code": "T-1",
        "company": json.dumps(
            {"id": "c-1", "name": "Acme Ltd", "city": "Lahore", "address": "1 Mall Rd"}
        ),
        "contact": json.dumps({"name": "Sara", "phone": "0300-1234567"}),
        "working": "Replace the wiring in the main panel",
        "date_time": "2024-05-01T09:30:00+00:00",
        "created_by": "user-1",
    }
