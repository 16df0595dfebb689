"""GitHub integration endpoints: account linking, repositories, events, webhook."""

from __future__ import annotations

import uuid

import pydantic
import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from devhabits.auth.dependencies import get_current_user
from devhabits.config import get_settings
from devhabits.database import get_session
from devhabits.db.models import User
from devhabits.github import service
from devhabits.github.client import GitHubClient
from devhabits.github.ingest import WebhookIngestor
from devhabits.github.schemas import (
    ConnectionResponse,
    EventResponse,
    RepositoryResponse,
    SyncResponse,
    WebhookAck,
    WebhookPayload,
)
from devhabits.github.signature import verify_signature

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/github", tags=["GitHub"])


def get_github_client() -> GitHubClient:
    return GitHubClient.from_settings(get_settings())


@router.post("/connect", response_model=ConnectionResponse)
async def connect(
    code: str = Query(..., min_length=1),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    client: GitHubClient = Depends(get_github_client),
):
    """Exchange an OAuth code and link the GitHub account."""
    connection = await service.connect(db, client, user.id, code)
    return ConnectionResponse.model_validate(connection)


@router.delete("/disconnect", status_code=204)
async def disconnect(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> Response:
    await service.disconnect(db, user.id)
    return Response(status_code=204)


@router.get("/connection", response_model=ConnectionResponse | None)
async def get_connection(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Active connection, or null when the account is not linked."""
    connection = await service.get_connection(db, user.id)
    if connection is None:
        return None
    return ConnectionResponse.model_validate(connection)


@router.get("/repositories", response_model=list[RepositoryResponse])
async def list_repositories(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    repos = await service.list_repositories(db, user.id)
    return [RepositoryResponse.model_validate(r) for r in repos]


@router.patch("/repositories/{repo_id}/toggle-tracking", response_model=RepositoryResponse)
async def toggle_tracking(
    repo_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    repo = await service.toggle_tracking(db, user.id, repo_id)
    return RepositoryResponse.model_validate(repo)


@router.post("/sync-repositories", response_model=SyncResponse)
async def sync_repositories(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    client: GitHubClient = Depends(get_github_client),
):
    """Refresh repositories from GitHub. Acknowledged even when GitHub fails."""
    await service.sync(db, client, user.id)
    return SyncResponse(message="Repository sync completed")


@router.get("/events", response_model=list[EventResponse])
async def recent_events(
    days: int = Query(7, ge=1, le=365),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    events = await service.recent_events(db, user.id, days)
    return [EventResponse.model_validate(e) for e in events]


@router.post("/webhook", response_model=WebhookAck)
async def webhook(
    request: Request,
    x_github_event: str | None = Header(None),
    x_hub_signature_256: str | None = Header(None),
    db: AsyncSession = Depends(get_session),
):
    """Receive a GitHub delivery.

    Answers 200 with the ingestion status for every well-formed delivery,
    including ignored and duplicate ones.
    """
    body = await request.body()

    settings = get_settings()
    secret = settings.github_webhook_secret
    if secret:
        if not verify_signature(secret, body, x_hub_signature_256):
            logger.warning("webhook_signature_invalid", github_event=x_github_event)
            raise HTTPException(status_code=401, detail="Invalid webhook signature")
    elif settings.environment == "development" or settings.github_webhook_allow_unsigned:
        logger.warning("webhook_signature_unverified", github_event=x_github_event)
    else:
        # Nothing may claim an event key before its signature is checked.
        logger.error("webhook_secret_missing", environment=settings.environment)
        raise HTTPException(status_code=503, detail="Webhook secret is not configured")

    if not x_github_event:
        raise HTTPException(status_code=400, detail="Missing X-GitHub-Event header")
    try:
        payload = WebhookPayload.model_validate_json(body)
    except pydantic.ValidationError as exc:
        raise HTTPException(status_code=400, detail="Malformed webhook payload") from exc

    outcome = await WebhookIngestor(db).process(x_github_event, payload)
    return WebhookAck(
        status=outcome.status,
        event_id=outcome.event_id,
        completed_habit_ids=outcome.completed,
        failed_habit_ids=outcome.failed,
    )
