# src/moveobject/core/logging.py
"""Structured logging for moveobject runs.

One stderr handler serves the whole process. structlog events and plain
stdlib records (minio, urllib3) pass through the same ProcessorFormatter,
so a run log is uniformly JSON (--json-logs) or uniformly console text.

Per-object progress is logged at DEBUG. Failed objects are logged at WARNING
with their structured reason.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

# Transport loggers that emit a line per HTTP request at DEBUG level.
# With a hundred workers this drowns the per-object progress messages,
# so they are clamped to WARNING even when moveobject runs in DEBUG mode.
_NOISY_LOGGERS: tuple[str, ...] = (
    "minio",
    "urllib3",
    "urllib3.connectionpool",
)


def _remove_internal_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Remove internal structlog fields from output.

    ProcessorFormatter always adds _record and _from_structlog when
    processing log records. They are bookkeeping and must not appear in
    output.
    """
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
) -> None:
    """Configure structlog and stdlib logging for moveobject.

    Args:
        json_output: One JSON object per line instead of console text
        level: Root level name; "DEBUG" enables per-object lines
    """
    log_level = getattr(logging, level.upper())

    # Run for structlog events and foreign stdlib records alike
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        final_processors: list[Any] = [
            _remove_internal_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final_processors = [
            _remove_internal_fields,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Caching off so tests can reconfigure logging
        cache_logger_on_first_use=False,
    )

    # Logs go to stderr; stdout carries the command's own result lines
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        ProcessorFormatter(
            processors=final_processors,
            foreign_pre_chain=shared_processors,
        )
    )

    root = logging.getLogger()
    root.handlers = []
    root.addHandler(handler)
    root.setLevel(log_level)

    # Never make noisy loggers less restrictive than the root level
    noisy_level = max(log_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(noisy_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound logger for a module.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Bound structlog logger.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


@contextmanager
def thread_log_context(**fields: Any) -> Iterator[None]:
    """Bind fields to every log line emitted by the current thread.

    Worker and router threads start with an empty context, so a run's
    operation name and the worker name are bound once per thread here
    instead of being passed to each log call.
    """
    with structlog.contextvars.bound_contextvars(**fields):
        yield
