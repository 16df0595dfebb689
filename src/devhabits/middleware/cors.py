"""CORS for the habit dashboard."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from devhabits.config import Settings


def setup_cors(app: FastAPI, settings: Settings) -> None:
    # The verbs the habit and GitHub routers expose. The dashboard sends
    # bearer tokens, so no other request header is allowed.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
        expose_headers=["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit"],
    )
