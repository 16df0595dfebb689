"""Mirror a user's GitHub repositories into ``github_repositories``."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from devhabits.db.models import GitHubRepository
from devhabits.errors import ExternalServiceError
from devhabits.github.client import GitHubClient

logger = structlog.get_logger()


@dataclass(frozen=True)
class SyncResult:
    ok: bool
    created: int = 0
    updated: int = 0
    error: str | None = None


async def sync_repositories(
    db: AsyncSession,
    client: GitHubClient,
    user_id: uuid.UUID,
    access_token: str,
) -> SyncResult:
    """Upsert the first page of remote repositories for the user and commit.

    Remote fields are overwritten; ``is_tracked`` is left alone on existing
    rows and defaults to tracked on new ones. Failures are returned, never
    raised, and leave the session rolled back.
    """
    created = updated = 0
    try:
        remotes = await client.list_repositories(access_token)
        existing = {
            repo.github_repo_id: repo
            for repo in (
                await db.execute(select(GitHubRepository).where(GitHubRepository.user_id == user_id))
            ).scalars()
        }
        for remote in remotes:
            repo_id = int(remote["id"])
            repo = existing.get(repo_id)
            if repo is None:
                repo = GitHubRepository(user_id=user_id, github_repo_id=repo_id, is_tracked=True)
                db.add(repo)
                existing[repo_id] = repo
                created += 1
            else:
                updated += 1
            repo.apply_remote(remote)
        await db.commit()
    except (ExternalServiceError, SQLAlchemyError, KeyError, TypeError, ValueError) as exc:
        await db.rollback()
        logger.warning("repository_sync_failed", user_id=str(user_id), error=str(exc))
        return SyncResult(ok=False, error=str(exc))

    logger.info("repository_sync_completed", user_id=str(user_id), created=created, updated=updated)
    return SyncResult(ok=True, created=created, updated=updated)
