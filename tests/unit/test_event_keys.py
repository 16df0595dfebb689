"""Unit tests for webhook delivery key derivation."""

import uuid

from devhabits.github.idempotency import derive_event_key
from devhabits.github.schemas import WebhookPayload

REPO = {"name": "devhabits", "full_name": "octo/devhabits"}


def test_head_commit_sha_wins():
    payload = WebhookPayload.model_validate(
        {"repository": REPO, "head_commit": {"id": "a" * 40}, "pull_request": {"number": 1}}
    )
    assert derive_event_key(payload) == "a" * 40


def test_head_commit_sha_field_alias():
    payload = WebhookPayload.model_validate({"head_commit": {"sha": "b" * 40}})
    assert derive_event_key(payload) == "b" * 40


def test_pull_request_key():
    payload = WebhookPayload.model_validate({"repository": REPO, "pull_request": {"number": 12, "title": "x"}})
    assert derive_event_key(payload) == "pr-octo/devhabits-12"


def test_issue_key():
    payload = WebhookPayload.model_validate({"repository": REPO, "issue": {"number": 4}})
    assert derive_event_key(payload) == "issue-octo/devhabits-4"


def test_same_pull_request_same_key():
    raw = {"repository": REPO, "pull_request": {"number": 12}}
    assert derive_event_key(WebhookPayload.model_validate(raw)) == derive_event_key(
        WebhookPayload.model_validate(raw)
    )


def test_unidentifiable_payload_gets_random_key():
    first = derive_event_key(WebhookPayload.model_validate({"repository": REPO}))
    second = derive_event_key(WebhookPayload.model_validate({"repository": REPO}))
    assert first != second
    uuid.UUID(first)
