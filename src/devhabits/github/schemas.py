"""Pydantic models for GitHub webhook payloads and GitHub endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from devhabits.db.models import EventKind

# --- Webhook payload (only the fields ingestion reads) ---


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class WebhookRepository(_Lenient):
    name: str | None = None
    full_name: str | None = None


class WebhookSender(_Lenient):
    id: int
    login: str | None = None


class WebhookCommit(_Lenient):
    id: str | None = None
    sha: str | None = None
    message: str | None = None

    @property
    def ref(self) -> str | None:
        """Commit SHA; push payloads call it ``id``, some relays ``sha``."""
        return self.id or self.sha


class WebhookPullRequest(_Lenient):
    number: int | None = None
    title: str | None = None


class WebhookIssue(_Lenient):
    number: int | None = None
    title: str | None = None


class WebhookPayload(_Lenient):
    action: str | None = None
    repository: WebhookRepository | None = None
    sender: WebhookSender | None = None
    head_commit: WebhookCommit | None = None
    pull_request: WebhookPullRequest | None = None
    issue: WebhookIssue | None = None

    @property
    def repository_full_name(self) -> str | None:
        return self.repository.full_name if self.repository else None


class WebhookAck(BaseModel):
    status: str
    event_id: uuid.UUID | None = None
    completed_habit_ids: list[uuid.UUID] = Field(default_factory=list)
    failed_habit_ids: list[uuid.UUID] = Field(default_factory=list)


# --- Connection / repositories / events ---


class ConnectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    github_user_id: int
    github_username: str
    github_email: str | None = None
    github_avatar_url: str | None = None
    scope: str | None = None
    connected_at: datetime
    last_synced_at: datetime | None = None
    is_active: bool


class RepositoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    github_repo_id: int
    repository_name: str
    repository_full_name: str
    description: str | None = None
    is_private: bool
    is_tracked: bool
    language: str | None = None
    stargazers_count: int
    updated_at: datetime | None = None


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    event_type: EventKind
    repository_name: str | None = None
    repository_full_name: str | None = None
    commit_sha: str | None = None
    commit_message: str | None = None
    pull_request_number: int | None = None
    pull_request_title: str | None = None
    issue_number: int | None = None
    issue_title: str | None = None
    processed_at: datetime | None = None
    created_at: datetime


class SyncResponse(BaseModel):
    status: str = "completed"
    message: str
