"""GitHub account linking, repositories and recent events for a user."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from devhabits.db.models import GitHubConnection, GitHubEvent, GitHubRepository
from devhabits.errors import ConflictError, NotFoundError
from devhabits.github.client import OAUTH_SCOPE, GitHubClient
from devhabits.github.sync import SyncResult, sync_repositories

logger = structlog.get_logger()


async def get_connection(db: AsyncSession, user_id: uuid.UUID) -> GitHubConnection | None:
    """The user's active connection, if any."""
    result = await db.execute(
        select(GitHubConnection).where(
            GitHubConnection.user_id == user_id,
            GitHubConnection.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def _any_connection(db: AsyncSession, user_id: uuid.UUID) -> GitHubConnection | None:
    result = await db.execute(select(GitHubConnection).where(GitHubConnection.user_id == user_id))
    return result.scalar_one_or_none()


async def connect(db: AsyncSession, client: GitHubClient, user_id: uuid.UUID, code: str) -> GitHubConnection:
    """Link the user's GitHub account from an OAuth code, then sync repositories.

    A GitHub account can only be actively linked to one user. Reconnecting
    reuses the user's previous connection row.
    """
    access_token = await client.exchange_code(code)
    github_user = await client.fetch_current_user(access_token)

    holder = await db.execute(
        select(GitHubConnection).where(
            GitHubConnection.github_user_id == github_user.id,
            GitHubConnection.is_active.is_(True),
            GitHubConnection.user_id != user_id,
        )
    )
    if holder.scalar_one_or_none() is not None:
        msg = "This GitHub account is already connected to another user"
        raise ConflictError(msg)

    connection = await _any_connection(db, user_id)
    if connection is None:
        connection = GitHubConnection(user_id=user_id)
        db.add(connection)
    connection.github_user_id = github_user.id
    connection.github_username = github_user.login
    connection.github_email = github_user.email
    connection.github_avatar_url = github_user.avatar_url
    connection.access_token = access_token
    connection.token_type = "Bearer"
    connection.scope = OAUTH_SCOPE
    connection.connected_at = datetime.now(timezone.utc)
    connection.reconnect()
    try:
        await db.commit()
    except IntegrityError:
        # Another user linked the same account concurrently.
        await db.rollback()
        msg = "This GitHub account is already connected to another user"
        raise ConflictError(msg) from None

    logger.info("github_connected", user_id=str(user_id), github_login=github_user.login)

    result = await sync_repositories(db, client, user_id, access_token)
    if not result.ok:
        logger.warning("github_initial_sync_failed", user_id=str(user_id), error=result.error)
        await db.refresh(connection)
    return connection


async def disconnect(db: AsyncSession, user_id: uuid.UUID) -> None:
    connection = await _any_connection(db, user_id)
    if connection is None:
        raise NotFoundError("GitHub connection", user_id)
    connection.disconnect()
    await db.commit()
    logger.info("github_disconnected", user_id=str(user_id))


async def list_repositories(db: AsyncSession, user_id: uuid.UUID) -> list[GitHubRepository]:
    result = await db.execute(
        select(GitHubRepository)
        .where(GitHubRepository.user_id == user_id)
        .order_by(GitHubRepository.repository_full_name.asc())
    )
    return list(result.scalars().all())


async def toggle_tracking(db: AsyncSession, user_id: uuid.UUID, repo_id: uuid.UUID) -> GitHubRepository:
    result = await db.execute(
        select(GitHubRepository).where(GitHubRepository.id == repo_id, GitHubRepository.user_id == user_id)
    )
    repo = result.scalar_one_or_none()
    if repo is None:
        raise NotFoundError("Repository", repo_id)
    repo.toggle_tracking()
    await db.commit()
    return repo


async def sync(db: AsyncSession, client: GitHubClient, user_id: uuid.UUID) -> SyncResult:
    """User-initiated sync. Failures are logged and returned, not raised."""
    connection = await get_connection(db, user_id)
    if connection is None:
        raise NotFoundError("GitHub connection", user_id)
    result = await sync_repositories(db, client, user_id, connection.access_token)
    if not result.ok:
        logger.warning("github_sync_failed", user_id=str(user_id), error=result.error)
    return result


async def recent_events(db: AsyncSession, user_id: uuid.UUID, days: int = 7) -> list[GitHubEvent]:
    since = datetime.now(timezone.utc) - timedelta(days=days)
    result = await db.execute(
        select(GitHubEvent)
        .where(GitHubEvent.user_id == user_id, GitHubEvent.created_at >= since)
        .order_by(GitHubEvent.created_at.desc())
    )
    return list(result.scalars().all())
