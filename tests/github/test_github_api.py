"""GitHub endpoint tests: account linking, repositories, events, webhook."""

import json
import uuid

import httpx
import pytest
from fastapi import FastAPI
from httpx import AsyncClient
from sqlalchemy import select

from devhabits.config import get_settings
from devhabits.db.models import CompletionLog, EventKind, GitHubConnection, GitHubEvent
from devhabits.github.client import GitHubClient
from devhabits.github.router import get_github_client
from devhabits.github.signature import compute_signature

GITHUB_USER = {"id": 583231, "login": "octocat", "email": "octocat@github.test", "avatar_url": "https://a/583231"}
REPOS = [
    {"id": 101, "name": "devhabits", "full_name": "octocat/devhabits", "private": False, "language": "Python"},
    {"id": 102, "name": "dotfiles", "full_name": "octocat/dotfiles", "private": True},
]


def fake_github(repos_status: int = 200, github_user: dict = GITHUB_USER):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/access_token"):
            return httpx.Response(200, json={"access_token": "gho_test", "scope": "repo"})
        if request.url.path == "/user":
            return httpx.Response(200, json=github_user)
        if request.url.path == "/user/repos":
            return httpx.Response(repos_status, json=REPOS if repos_status == 200 else {"message": "down"})
        return httpx.Response(404)

    return handler


@pytest.fixture
def use_github(app: FastAPI):
    """Point the router's GitHub client at a mock transport."""

    def _install(handler) -> None:
        client = GitHubClient("cid", "secret", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        app.dependency_overrides[get_github_client] = lambda: client

    yield _install
    app.dependency_overrides.clear()


async def test_connect_links_account_and_syncs(authed_client: AsyncClient, use_github) -> None:
    use_github(fake_github())

    response = await authed_client.post("/api/v1/github/connect", params={"code": "oauth-code"})

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["github_username"] == "octocat"
    assert data["github_user_id"] == 583231
    assert data["scope"] == "user:email,read:user,repo"
    assert data["is_active"] is True

    repos = (await authed_client.get("/api/v1/github/repositories")).json()
    assert [r["repository_full_name"] for r in repos] == ["octocat/devhabits", "octocat/dotfiles"]
    assert all(r["is_tracked"] for r in repos)

    connection = (await authed_client.get("/api/v1/github/connection")).json()
    assert connection["github_username"] == "octocat"


async def test_connect_survives_repository_sync_failure(authed_client: AsyncClient, use_github) -> None:
    use_github(fake_github(repos_status=500))

    response = await authed_client.post("/api/v1/github/connect", params={"code": "oauth-code"})

    assert response.status_code == 200
    assert (await authed_client.get("/api/v1/github/repositories")).json() == []


async def test_connect_token_exchange_failure_is_502(authed_client: AsyncClient, use_github) -> None:
    use_github(lambda request: httpx.Response(200, json={"error": "bad_verification_code"}))

    response = await authed_client.post("/api/v1/github/connect", params={"code": "stale"})

    assert response.status_code == 502


async def test_connect_account_owned_by_another_user(
    authed_client: AsyncClient, use_github, make_user, make_connection
) -> None:
    other = await make_user("hubot")
    await make_connection(other, GITHUB_USER["id"])
    use_github(fake_github())

    response = await authed_client.post("/api/v1/github/connect", params={"code": "oauth-code"})

    assert response.status_code == 409


async def test_disconnect_and_reconnect(authed_client: AsyncClient, use_github, db_session, user) -> None:
    use_github(fake_github())
    first = (await authed_client.post("/api/v1/github/connect", params={"code": "one"})).json()

    assert (await authed_client.delete("/api/v1/github/disconnect")).status_code == 204
    assert (await authed_client.get("/api/v1/github/connection")).json() is None

    second = (await authed_client.post("/api/v1/github/connect", params={"code": "two"})).json()
    assert second["id"] == first["id"]
    assert second["is_active"] is True


async def test_disconnect_without_connection_is_404(authed_client: AsyncClient) -> None:
    response = await authed_client.delete("/api/v1/github/disconnect")
    assert response.status_code == 404


async def test_toggle_tracking(authed_client: AsyncClient, use_github) -> None:
    use_github(fake_github())
    await authed_client.post("/api/v1/github/connect", params={"code": "oauth-code"})
    repo = (await authed_client.get("/api/v1/github/repositories")).json()[0]

    toggled = await authed_client.patch(f"/api/v1/github/repositories/{repo['id']}/toggle-tracking")

    assert toggled.status_code == 200
    assert toggled.json()["is_tracked"] is False

    # A later sync must not undo the user's choice.
    await authed_client.post("/api/v1/github/sync-repositories")
    repos = {r["id"]: r for r in (await authed_client.get("/api/v1/github/repositories")).json()}
    assert repos[repo["id"]]["is_tracked"] is False


async def test_toggle_unknown_repository(authed_client: AsyncClient) -> None:
    response = await authed_client.patch(f"/api/v1/github/repositories/{uuid.uuid4()}/toggle-tracking")
    assert response.status_code == 404


async def test_sync_acknowledges_even_when_github_fails(
    authed_client: AsyncClient, use_github, user, make_connection
) -> None:
    await make_connection(user)
    use_github(fake_github(repos_status=503))

    response = await authed_client.post("/api/v1/github/sync-repositories")

    assert response.status_code == 200
    assert response.json()["status"] == "completed"


async def test_sync_without_connection_is_404(authed_client: AsyncClient) -> None:
    response = await authed_client.post("/api/v1/github/sync-repositories")
    assert response.status_code == 404


# --- Webhook ---


def push_body(sha: str = "d" * 40, sender_id: int = GITHUB_USER["id"]) -> bytes:
    return json.dumps(
        {
            "ref": "refs/heads/main",
            "repository": {"id": 101, "name": "devhabits", "full_name": "octocat/devhabits"},
            "sender": {"id": sender_id, "login": "octocat"},
            "head_commit": {"id": sha, "message": "Tidy up", "author": {"name": "Mona"}},
            "commits": [],
        }
    ).encode()


async def test_webhook_completes_habit_and_lists_event(
    authed_client: AsyncClient, db_session, user, make_habit, make_connection
) -> None:
    habit = await make_habit(user, event_type=EventKind.COMMIT)
    await make_connection(user, GITHUB_USER["id"])

    response = await authed_client.post(
        "/api/v1/github/webhook", content=push_body(), headers={"X-GitHub-Event": "push"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "processed"
    assert data["completed_habit_ids"] == [str(habit.id)]

    logs = (await db_session.execute(select(CompletionLog).where(CompletionLog.habit_id == habit.id))).scalars().all()
    assert len(logs) == 1

    events = (await authed_client.get("/api/v1/github/events", params={"days": 7})).json()
    assert len(events) == 1
    assert events[0]["event_type"] == "COMMIT"
    assert events[0]["commit_message"] == "Tidy up"

    habit_view = (await authed_client.get(f"/api/v1/habits/{habit.id}")).json()
    assert habit_view["completed_today"] is True


async def test_webhook_redelivery_acknowledged_as_duplicate(authed_client: AsyncClient, user, make_connection) -> None:
    await make_connection(user, GITHUB_USER["id"])
    headers = {"X-GitHub-Event": "push"}

    await authed_client.post("/api/v1/github/webhook", content=push_body(), headers=headers)
    response = await authed_client.post("/api/v1/github/webhook", content=push_body(), headers=headers)

    assert response.status_code == 200
    assert response.json()["status"] == "duplicate"


async def test_webhook_ignored_event(client: AsyncClient) -> None:
    response = await client.post("/api/v1/github/webhook", content=b'{"zen": "Keep it simple"}', headers={"X-GitHub-Event": "ping"})
    assert response.status_code == 200
    assert response.json()["status"] == "ignored"


async def test_webhook_requires_event_header(client: AsyncClient) -> None:
    response = await client.post("/api/v1/github/webhook", content=push_body())
    assert response.status_code == 400


async def test_webhook_rejects_malformed_json(client: AsyncClient) -> None:
    response = await client.post("/api/v1/github/webhook", content=b"{not json", headers={"X-GitHub-Event": "push"})
    assert response.status_code == 400


class TestWebhookSignature:
    SECRET = "webhook-test-secret"

    @pytest.fixture(autouse=True)
    def _secret(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEVHABITS_GITHUB_WEBHOOK_SECRET", self.SECRET)
        get_settings.cache_clear()

    async def test_missing_signature_rejected(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/github/webhook", content=push_body(), headers={"X-GitHub-Event": "push"})
        assert response.status_code == 401

    async def test_wrong_signature_rejected(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/github/webhook",
            content=push_body(),
            headers={"X-GitHub-Event": "push", "X-Hub-Signature-256": compute_signature("nope", push_body())},
        )
        assert response.status_code == 401

    async def test_valid_signature_accepted(self, client: AsyncClient, db_session) -> None:
        body = push_body(sender_id=1)
        response = await client.post(
            "/api/v1/github/webhook",
            content=body,
            headers={"X-GitHub-Event": "push", "X-Hub-Signature-256": compute_signature(self.SECRET, body)},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "no_connection"
        assert (await db_session.execute(select(GitHubConnection))).first() is None


class TestUnsignedWebhookOutsideDevelopment:
    @pytest.fixture(autouse=True)
    def _production(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEVHABITS_ENVIRONMENT", "production")
        get_settings.cache_clear()

    @staticmethod
    def pull_request_body() -> bytes:
        return json.dumps(
            {
                "action": "opened",
                "repository": {"name": "b", "full_name": "a/b"},
                "sender": {"id": 1, "login": "mallory"},
                "pull_request": {"number": 1, "title": "Forged"},
            }
        ).encode()

    async def test_rejected_without_secret(self, client: AsyncClient, db_session) -> None:
        response = await client.post(
            "/api/v1/github/webhook", content=self.pull_request_body(), headers={"X-GitHub-Event": "pull_request"}
        )

        assert response.status_code == 503
        # The delivery must not claim the event key.
        assert (await db_session.execute(select(GitHubEvent))).first() is None

    async def test_explicit_opt_in_accepts_unsigned(
        self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DEVHABITS_GITHUB_WEBHOOK_ALLOW_UNSIGNED", "true")
        get_settings.cache_clear()

        response = await client.post(
            "/api/v1/github/webhook", content=self.pull_request_body(), headers={"X-GitHub-Event": "pull_request"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "no_connection"
