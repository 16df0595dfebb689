"""Thin async client for the GitHub OAuth and REST endpoints we use."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from devhabits.config import Settings
from devhabits.errors import ExternalServiceError

logger = structlog.get_logger()

OAUTH_SCOPE = "user:email,read:user,repo"


@dataclass(frozen=True)
class GitHubUser:
    id: int
    login: str
    email: str | None = None
    avatar_url: str | None = None


class GitHubClient:
    """GitHub API access over ``httpx.AsyncClient``.

    Credentials and endpoints are injected at construction. Every transport
    failure, non-2xx response or malformed body surfaces as
    ``ExternalServiceError``. Pass ``http_client`` to reuse a pooled client
    (or a mock transport in tests); otherwise one is opened per call.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        api_url: str = "https://api.github.com",
        oauth_token_url: str = "https://github.com/login/oauth/access_token",
        timeout: float = 10.0,
        repo_page_size: int = 100,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_url = api_url.rstrip("/")
        self.oauth_token_url = oauth_token_url
        self.timeout = timeout
        self.repo_page_size = repo_page_size
        self._http = http_client

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient | None = None) -> GitHubClient:
        return cls(
            client_id=settings.github_client_id,
            client_secret=settings.github_client_secret,
            api_url=settings.github_api_url,
            oauth_token_url=settings.github_oauth_token_url,
            timeout=settings.github_http_timeout_seconds,
            repo_page_size=settings.github_repo_page_size,
            http_client=http_client,
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:  # noqa: ANN401
        kwargs.setdefault("timeout", self.timeout)
        try:
            if self._http is not None:
                response = await self._http.request(method, url, **kwargs)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("github_http_error", url=url, status=exc.response.status_code)
            msg = f"GitHub returned {exc.response.status_code} for {url}"
            raise ExternalServiceError(msg) from exc
        except httpx.HTTPError as exc:
            logger.warning("github_transport_error", url=url, error=str(exc))
            msg = f"GitHub request failed: {exc}"
            raise ExternalServiceError(msg) from exc
        except ValueError as exc:
            msg = f"GitHub returned a malformed body for {url}"
            raise ExternalServiceError(msg) from exc

    def _auth_headers(self, access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github+json",
        }

    async def exchange_code(self, code: str) -> str:
        """Trade an OAuth authorization code for an access token."""
        body = await self._request(
            "POST",
            self.oauth_token_url,
            data={"client_id": self.client_id, "client_secret": self.client_secret, "code": code},
            headers={"Accept": "application/json"},
        )
        # GitHub reports bad codes with a 200 and an ``error`` field.
        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            error = body.get("error_description") or body.get("error") if isinstance(body, dict) else None
            msg = f"Failed to obtain GitHub access token: {error or 'no token in response'}"
            raise ExternalServiceError(msg)
        return str(token)

    async def fetch_current_user(self, access_token: str) -> GitHubUser:
        body = await self._request("GET", f"{self.api_url}/user", headers=self._auth_headers(access_token))
        try:
            return GitHubUser(
                id=int(body["id"]),
                login=str(body["login"]),
                email=body.get("email"),
                avatar_url=body.get("avatar_url"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            msg = "GitHub user payload is missing id or login"
            raise ExternalServiceError(msg) from exc

    async def list_repositories(self, access_token: str) -> list[dict[str, Any]]:
        """First page of the user's repositories, most recently updated first."""
        body = await self._request(
            "GET",
            f"{self.api_url}/user/repos",
            params={"per_page": self.repo_page_size, "sort": "updated"},
            headers=self._auth_headers(access_token),
        )
        if not isinstance(body, list):
            msg = "GitHub repository listing is not a list"
            raise ExternalServiceError(msg)
        return body
