"""structlog setup for the untis-watch service.

Refresh cycles, publishes and HTTP requests all log through get_logger()
with snake_case event names (refresh_succeeded, state_published, ...) and
key/value context. uvicorn and APScheduler log through stdlib logging; their
records go to the same stdout stream.
"""

import logging
import sys

import structlog

# stdlib loggers of the server and the job scheduler, with their level floor
_BRIDGED_LOGGERS = {
    "uvicorn": logging.DEBUG,
    "uvicorn.error": logging.DEBUG,
    "uvicorn.access": logging.DEBUG,
    # logs every job run at INFO
    "apscheduler": logging.WARNING,
}


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure logging once at process start (scripts/serve.py).

    Args:
        json_output: One JSON object per line with flattened tracebacks, for
            container log collectors. Otherwise the colored console renderer.
        log_level: Level name; unknown names fall back to INFO.
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers = [logging.StreamHandler(sys.stdout)]
    root.setLevel(numeric_level)
    for name, floor in _BRIDGED_LOGGERS.items():
        logging.getLogger(name).setLevel(max(numeric_level, floor))


def get_logger(name: str) -> structlog.BoundLogger:
    """Logger for one module of the service; pass __name__."""
    return structlog.get_logger(name)
