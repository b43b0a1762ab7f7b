"""
Structured logging setup using structlog.
Console output in development, JSON lines otherwise; job and stage IDs travel
through contextvars so every event of a stage run carries them.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import Processor

from legacylens.core.config import settings

# Module source and raw model responses end up in error details; keep log lines bounded
MAX_LOG_VALUE_LENGTH = 500


def add_app_context(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add application context to all log entries."""
    event_dict["app"] = settings.app_name
    event_dict["env"] = settings.app_env
    return event_dict


def truncate_long_values(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Clip string values (other than the event itself) to MAX_LOG_VALUE_LENGTH."""
    for key, value in event_dict.items():
        if key != "event" and isinstance(value, str) and len(value) > MAX_LOG_VALUE_LENGTH:
            clipped = len(value) - MAX_LOG_VALUE_LENGTH
            event_dict[key] = f"{value[:MAX_LOG_VALUE_LENGTH]}... [{clipped} chars clipped]"
    return event_dict


def setup_logging(log_level: Optional[str] = None) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Level name overriding ``settings.log_level``
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
        add_app_context,
        truncate_long_values,
    ]

    if settings.is_development:
        renderer: Processor = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Request-level chatter from the server and the HTTP/Redis clients
    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access", "httpx", "httpcore", "redis"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("legacylens").setLevel(level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Example:
        logger = get_logger(__name__)
        logger.info("Stage started", job_id="a1b2c3", stage="analyze")
    """
    return structlog.get_logger(name)


class LogContext:
    """
    Bind context variables for the duration of a block.

    Values bound by an enclosing block are restored on exit, so a refactor
    running inside a request context keeps the request's bindings.

    Example:
        with LogContext(job_id="a1b2c3", stage="roadmap"):
            logger.info("Ranking modules")  # Will include job_id and stage
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs
        self._previous: dict[str, Any] = {}

    def __enter__(self) -> "LogContext":
        bound = structlog.contextvars.get_contextvars()
        self._previous = {key: bound[key] for key in self.context if key in bound}
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())
        if self._previous:
            structlog.contextvars.bind_contextvars(**self._previous)
