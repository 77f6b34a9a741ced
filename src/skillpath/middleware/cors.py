"""CORS for the learner and admin front ends."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from skillpath.config import Settings
from skillpath.middleware.rate_limit import LIMIT_HEADER, REMAINING_HEADER


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow configured origins; a wildcard origin never sends credentials."""
    origins = list(settings.cors_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=settings.cors_allow_credentials and "*" not in origins,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", settings.request_id_header],
        expose_headers=[settings.request_id_header, LIMIT_HEADER, REMAINING_HEADER, "Retry-After"],
    )
