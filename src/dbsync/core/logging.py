# src/dbsync/core/logging.py
"""Structured logging configuration for dbsync.

Uses structlog for structured logging. Both structlog and stdlib logging
are routed through ProcessorFormatter so SQLAlchemy and other libraries
using logging.getLogger(__name__) emit the same format (JSON or console).
"""

import logging
import sys
import time
from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from structlog.stdlib import ProcessorFormatter

T = TypeVar("T")

# Silenced to WARNING even when dbsync runs at DEBUG.
_NOISY_LOGGERS: tuple[str, ...] = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
)


def _remove_internal_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Remove the _record and _from_structlog bookkeeping added by ProcessorFormatter."""
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
) -> None:
    """Configure structlog and stdlib logging for dbsync.

    Args:
        json_output: If True, output JSON. If False, human-readable.
        level: Log level (DEBUG, INFO, WARNING, ERROR).
    """
    log_level = getattr(logging, level.upper())

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
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Caching would keep stale loggers across reconfiguration in tests
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stdout)
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

    noisy_level = max(log_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(noisy_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound logger for a module."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


class SyncLogger:
    """Logger handed to load actions and the manager.

    Thin wrapper over a structlog logger adding timing of named operations.

    Example:
        logger = SyncLogger()
        rows = logger.measure("extract", lambda: fetch_rows())
        # logs: timing label=extract duration_ms=12.3
    """

    def __init__(self, logger: Any = None) -> None:
        self._log = logger if logger is not None else structlog.get_logger("dbsync")

    def bind(self, **context: Any) -> "SyncLogger":
        return SyncLogger(self._log.bind(**context))

    def measure(self, label: str, operation: Callable[[], T]) -> T:
        """Run operation and log its wall-clock duration.

        The duration is logged whether the operation returns or raises;
        exceptions propagate unchanged.
        """
        start = time.perf_counter()
        try:
            return operation()
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            self._log.info("timing", label=label, duration_ms=round(duration_ms, 3))

    def debug(self, event: str, **kw: Any) -> None:
        self._log.debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._log.info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._log.warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._log.error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        self._log.exception(event, **kw)
