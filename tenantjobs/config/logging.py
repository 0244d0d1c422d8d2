import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from .settings import Settings, settings as default_settings

# Libraries whose INFO output drowns job logs unless explicitly asked for
NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "asyncio")


def setup_logging(settings: Settings = default_settings) -> None:
    """Configure structlog for the API and worker processes."""
    level = getattr(logging, settings.log_level)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors: list[Any] = [
        # request_id, job_id, job_type and attempt arrive through contextvars
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
    ]
    if settings.debug:
        processors += [
            structlog.processors.CallsiteParameterAdder(
                parameters=[structlog.processors.CallsiteParameter.FUNC_NAME]
            ),
            structlog.dev.ConsoleRenderer(),
        ]
    else:
        processors += [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def add_request_context(request_id: str, **context: Any) -> None:
    """Replace the log context with that of a new HTTP request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **context)


@contextmanager
def job_log_context(job_id: str, job_type: str, attempt: int) -> Iterator[None]:
    """
    Tag every log line of one execution attempt.

    Bindings are restored on exit, so concurrent attempts in other tasks
    and the worker loop's own context are left untouched.
    """
    with structlog.contextvars.bound_contextvars(
        job_id=job_id, job_type=job_type, attempt=attempt
    ):
        yield
