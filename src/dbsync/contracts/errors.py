"""Error taxonomy for sync runs.

Every error raised by dbsync carries an ErrorKind tag. Failure policies
switch on the tag (see classify()) rather than matching exception classes,
so a new error type only has to declare its kind to be handled correctly.
"""

from __future__ import annotations

from collections.abc import Iterable

from dbsync.contracts.enums import ErrorKind


class SyncError(Exception):
    """Base class for errors raised by dbsync."""

    kind: ErrorKind = ErrorKind.FATAL


class ConfigurationError(SyncError):
    """Raised when configuration refers to something that does not exist.

    Examples: a plan naming an unconfigured source, or an explicit table
    list containing a table no plan knows about. Never retried.
    """


class UnknownTableError(ConfigurationError):
    """Raised when an explicit table selection names unknown tables.

    Attributes:
        tables: Every requested name missing from the resolved plan, sorted
    """

    def __init__(self, tables: Iterable[str]) -> None:
        self.tables = sorted(tables)
        super().__init__(f"Unknown tables: {self.tables}")


class ExtractError(SyncError):
    """Raised when reading rows from a source database fails."""

    kind = ErrorKind.TRANSIENT


class TransientError(SyncError):
    """Raised on recoverable infrastructure failures such as a dropped connection."""

    kind = ErrorKind.TRANSIENT


class LoadFailedError(SyncError):
    """Raised once after a collect-and-report run in which any table failed.

    Carries no sub-errors: each table failure has already been reported
    individually through the error handler.
    """

    kind = ErrorKind.AGGREGATE

    def __init__(self, failed_tables: Iterable[str] = ()) -> None:
        self.failed_tables = list(failed_tables)
        super().__init__("One or more loads failed, see other exceptions for details.")


def classify(error: BaseException) -> ErrorKind:
    """Return the ErrorKind for an exception.

    Exceptions that do not declare a kind are FATAL.
    """
    kind = getattr(error, "kind", None)
    if isinstance(kind, ErrorKind):
        return kind
    return ErrorKind.FATAL
