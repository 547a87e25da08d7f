"""
Structured logging for the curator schedulers.

Every event carries the service name and deployment environment, plus
whatever the schedulers bind for the current cycle (content_type, cycle).
Production renders one JSON object per line on stderr; development gets
colored console output.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from curator.config.settings import get_settings

SERVICE_NAME = "curator"

# Third-party loggers that are only interesting when something is wrong
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "urllib3")


def add_service_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag an event with the service and environment unless already set."""
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("environment", get_settings().environment)
    return event_dict


def setup_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Overrides LOG_LEVEL (the CLI passes DEBUG for --debug)
        json_logs: Force JSON (True) or console (False) rendering;
            defaults to JSON in production only
    """
    settings = get_settings()
    level = (level or settings.log_level).upper()
    if json_logs is None:
        json_logs = settings.is_production

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_logs:
        renderer: list[Processor] = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]

    structlog.configure(
        processors=shared_processors + renderer,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level),
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs: Any) -> None:
    """Bind fields to every event logged from the current task until cleared."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
