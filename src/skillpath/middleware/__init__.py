"""Middleware registration."""

from fastapi import FastAPI

from skillpath.config import Settings
from skillpath.middleware.cors import setup_cors
from skillpath.middleware.error_handler import setup_error_handlers
from skillpath.middleware.logging import setup_logging
from skillpath.middleware.rate_limit import RateLimitMiddleware
from skillpath.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and middleware.

    Middleware runs in reverse-add order. The request id is bound before the
    rate limiter so 429 responses are logged with it, and CORS is outermost so
    it decorates every response, 429 included.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)
    setup_cors(app, settings)
