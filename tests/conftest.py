"""Shared test fixtures.

Every test gets its own SQLite database file (via aiosqlite) with the ORM
schema created from the models. Redis is not initialized, so the rate
limiter lets requests through unless a test installs a client.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import jwt
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from devhabits.config import get_settings
from devhabits.database import close_db, get_engine, get_session, init_db
from devhabits.db.base import Base
from devhabits.db.models import EventKind, GitHubConnection, Habit, HabitCategory, User
from devhabits.main import create_app


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEVHABITS_JWT_SECRET", "test-secret-with-enough-bytes-for-hs256")
    monkeypatch.setenv("DEVHABITS_LOG_FORMAT", "console")
    monkeypatch.setenv("DEVHABITS_ENVIRONMENT", "development")
    monkeypatch.setenv("DEVHABITS_GITHUB_WEBHOOK_SECRET", "")
    monkeypatch.setenv("DEVHABITS_GITHUB_WEBHOOK_ALLOW_UNSIGNED", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def issue_access_token(user_id: uuid.UUID, username: str) -> str:
    """Sign a token with the claims the auth service puts in its access tokens."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "username": username,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


@pytest.fixture
def access_token():
    return issue_access_token


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[None, None]:
    """Fresh schema in a throwaway SQLite file."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'devhabits.db'}")
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for setup and assertions.

    Commit after writing: the API runs on its own connections.
    """
    async for session in get_session():
        yield session
        break


@pytest.fixture
def app(database: None) -> FastAPI:
    return create_app()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def create_user(db: AsyncSession, username: str = "octocat") -> User:
    user = User(email=f"{username}@example.com", username=username)
    db.add(user)
    await db.commit()
    return user


async def create_habit(
    db: AsyncSession,
    user: User,
    name: str = "Write code",
    event_type: EventKind | None = None,
    **fields: object,
) -> Habit:
    habit = Habit(
        user_id=user.id,
        name=name,
        category=HabitCategory.CODE,
        github_auto_track=event_type is not None,
        github_event_type=event_type,
        **fields,
    )
    db.add(habit)
    await db.commit()
    return habit


async def connect_github(db: AsyncSession, user: User, github_user_id: int = 583231) -> GitHubConnection:
    connection = GitHubConnection(
        user_id=user.id,
        github_user_id=github_user_id,
        github_username=user.username,
        access_token=f"gho_{uuid.uuid4().hex}",
    )
    db.add(connection)
    await db.commit()
    return connection


@pytest_asyncio.fixture
async def user(db_session: AsyncSession) -> User:
    return await create_user(db_session)


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, user: User) -> AsyncClient:
    """Client carrying a bearer token for ``user``."""
    token = issue_access_token(user.id, user.username)
    client.headers["Authorization"] = f"Bearer {token}"
    return client


@pytest.fixture
def make_user(db_session: AsyncSession):
    async def _make(username: str) -> User:
        return await create_user(db_session, username)

    return _make


@pytest.fixture
def make_habit(db_session: AsyncSession):
    async def _make(
        owner: User, name: str = "Write code", event_type: EventKind | None = None, **fields: object
    ) -> Habit:
        return await create_habit(db_session, owner, name, event_type, **fields)

    return _make


@pytest.fixture
def make_connection(db_session: AsyncSession):
    async def _make(owner: User, github_user_id: int = 583231) -> GitHubConnection:
        return await connect_github(db_session, owner, github_user_id)

    return _make
