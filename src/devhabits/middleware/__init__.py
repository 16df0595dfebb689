"""Middleware registration."""

from fastapi import FastAPI

from devhabits.config import Settings
from devhabits.middleware.cors import setup_cors
from devhabits.middleware.error_handler import setup_error_handlers
from devhabits.middleware.logging import setup_logging
from devhabits.middleware.rate_limit import RateLimitMiddleware
from devhabits.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and the middleware stack.

    Outermost first: CORS, request id, rate limit. Starlette runs middleware
    in reverse-add order, so the 429s the limiter returns still carry CORS
    headers, and the request id is bound before the limiter logs.
    """
    setup_logging(settings)
    # DevHabitsError subclasses render as {"detail": ...} with their own status.
    setup_error_handlers(app)
    # Fails open without Redis; health checks and the GitHub webhook are exempt.
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
