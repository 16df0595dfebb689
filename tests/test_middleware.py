"""Middleware tests: request id, rate limiting, CORS, error rendering."""

from typing import Any

import pytest
import structlog
from httpx import AsyncClient

from devhabits.middleware import rate_limit


class _Pipeline:
    def __init__(self, store: dict[str, int]) -> None:
        self._store = store
        self._key = ""

    def incr(self, key: str) -> None:
        self._key = key

    def expire(self, key: str, seconds: int) -> None:
        pass

    async def execute(self) -> list[Any]:
        self._store[self._key] = self._store.get(self._key, 0) + 1
        return [self._store[self._key], True]


class _CountingRedis:
    def __init__(self) -> None:
        self.store: dict[str, int] = {}

    def pipeline(self) -> _Pipeline:
        return _Pipeline(self.store)


@pytest.fixture
def counting_redis(monkeypatch: pytest.MonkeyPatch) -> _CountingRedis:
    redis = _CountingRedis()
    monkeypatch.setattr(rate_limit, "get_redis", lambda: redis)
    return redis


async def test_request_id_generated(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 36


async def test_request_id_preserved(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


async def test_no_rate_limit_headers_without_redis(client: AsyncClient) -> None:
    response = await client.get("/api/v1/habits")
    assert "x-ratelimit-limit" not in response.headers


async def test_rate_limit_blocks_excess(client: AsyncClient, counting_redis: _CountingRedis) -> None:
    for _ in range(100):
        await client.get("/api/v1/users/me")
    response = await client.get("/api/v1/users/me")

    assert response.status_code == 429
    assert response.headers["retry-after"] == "60"
    assert response.json() == {"detail": "Rate limit exceeded. Try again later."}


async def test_rate_limit_headers(client: AsyncClient, counting_redis: _CountingRedis) -> None:
    response = await client.get("/api/v1/users/me")
    assert response.headers["x-ratelimit-limit"] == "100"
    assert response.headers["x-ratelimit-remaining"] == "99"


async def test_webhook_and_health_checks_exempt(client: AsyncClient, counting_redis: _CountingRedis) -> None:
    await client.get("/health")
    await client.post("/api/v1/github/webhook", content=b"{}", headers={"X-GitHub-Event": "ping"})
    assert counting_redis.store == {}


async def test_cors_preflight(client: AsyncClient) -> None:
    response = await client.options(
        "/api/v1/habits",
        headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "POST"},
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


async def test_unknown_route_renders_detail(client: AsyncClient) -> None:
    response = await client.get("/api/v1/nope")
    assert response.status_code == 404
    assert "detail" in response.json()


async def test_request_starts_with_empty_log_context(client: AsyncClient) -> None:
    structlog.contextvars.bind_contextvars(github_event="push")
    try:
        await client.get("/health", headers={"X-Request-Id": "ctx-1"})
        context = structlog.contextvars.get_contextvars()
    finally:
        structlog.contextvars.clear_contextvars()

    assert "github_event" not in context
    assert context["request_id"] == "ctx-1"
    assert context["path"] == "/health"


async def test_empty_request_id_is_replaced(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": ""})
    assert len(response.headers["x-request-id"]) == 36


async def test_rate_limited_response_carries_cors(client: AsyncClient, counting_redis: _CountingRedis) -> None:
    origin = {"Origin": "http://localhost:5173"}
    for _ in range(100):
        await client.get("/api/v1/users/me", headers=origin)
    response = await client.get("/api/v1/users/me", headers=origin)

    assert response.status_code == 429
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


async def test_cors_preflight_allows_patch(client: AsyncClient) -> None:
    response = await client.options(
        "/api/v1/github/repositories/1/toggle-tracking",
        headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "PATCH"},
    )
    assert response.status_code == 200


async def test_cors_preflight_rejects_unlisted_header(client: AsyncClient) -> None:
    response = await client.options(
        "/api/v1/habits",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "X-Api-Key",
        },
    )
    assert response.status_code == 400
