import logging
import sys

import structlog
from structlog.types import Processor


def _renderer(log_format: str) -> Processor:
    if log_format.lower() == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def configure_logging(log_level: str = "INFO", *, log_format: str = "json") -> None:
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            _renderer(log_format),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def bind_request_context(*, method: str, path: str) -> None:
    """Reset per-request log context; every event logged while serving carries it."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(method=method, path=path)
