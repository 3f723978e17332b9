"""Middleware registration."""

from fastapi import FastAPI

from meetup.config import Settings
from meetup.middleware.cors import setup_cors
from meetup.middleware.error_handler import setup_error_handlers
from meetup.middleware.logging import setup_logging
from meetup.middleware.rate_limit import RateLimitMiddleware
from meetup.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Install logging, error handlers and the middleware chain.

    Starlette runs middleware in reverse-add order, so the chain seen by a
    request is CORS -> request id -> rate limit -> router. CORS stays
    outermost so 429 responses still carry CORS headers.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
