# src/dbsync/engine/error_handler.py
"""Error reporting around the manager's entry points.

The handler only observes: wrap() reports and re-raises, notify_error()
reports a single table failure. Neither changes control flow.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol

import structlog

from dbsync.contracts.enums import ErrorKind
from dbsync.contracts.errors import classify


class Notifier(Protocol):
    def send(self, message: str) -> bool: ...


class ErrorHandler:
    """Reports errors through structured logs and an optional alert notifier."""

    def __init__(self, notifier: Notifier | None = None) -> None:
        self._notifier = notifier
        self._log = structlog.get_logger(__name__)

    @contextmanager
    def wrap(self) -> Iterator[None]:
        """Report any exception escaping the block, then re-raise it unchanged."""
        try:
            yield
        except Exception as e:
            self._report(None, e)
            raise

    def notify_error(self, tag: str, error: BaseException) -> None:
        """Report a failure scoped to one table."""
        self._report(tag, error)

    @staticmethod
    def is_transient(error: BaseException) -> bool:
        return classify(error) is ErrorKind.TRANSIENT

    def _report(self, tag: str | None, error: BaseException) -> None:
        kind = classify(error)
        self._log.error(
            "sync_error",
            table=tag,
            kind=kind.value,
            error_type=type(error).__name__,
            error=str(error),
            exc_info=error,
        )
        if self._notifier is not None:
            scope = f"`{tag}`" if tag else "sync"
            self._notifier.send(f"dbsync {kind.value} error in {scope}: {type(error).__name__}: {error}")
