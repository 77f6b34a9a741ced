"""structlog setup for the HTTP layer and the stdlib-logging service modules.

Service modules (points, badges, streaks, rewards) log through
``logging.getLogger(__name__)``; their records are rendered by the same
structlog pipeline so every line carries the service fields and the
request id bound by ``RequestIdMiddleware``.
"""

import logging
import sys
from typing import Any

import structlog

from skillpath.config import Settings


def _service_fields(settings: Settings) -> structlog.types.Processor:
    fields = {
        "service": settings.service_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }

    def add_service_fields(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:  # noqa: ANN401
        for key, value in fields.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_service_fields


def setup_logging(settings: Settings) -> None:
    """Configure structlog and route stdlib records through it."""
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )
    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _service_fields(settings),
    ]

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    quiet_level = logging.INFO if settings.debug else logging.WARNING
    for name in settings.log_quiet_loggers:
        logging.getLogger(name).setLevel(quiet_level)
