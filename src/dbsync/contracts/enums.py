"""All status codes, modes, and kinds used across subsystem boundaries."""

from enum import StrEnum


class ErrorKind(StrEnum):
    """Classification of a failure, consulted by the failure policies.

    Values:
        FATAL: Never retried; propagates immediately
        TRANSIENT: Recoverable infrastructure condition, eligible for bounded retry
        AGGREGATE: One or more tables failed in a collect-and-report run
    """

    FATAL = "fatal"
    TRANSIENT = "transient"
    AGGREGATE = "aggregate"


class ConnectionRole(StrEnum):
    """Which side of the sync a database connection serves."""

    SOURCE = "source"
    TARGET = "target"


class RefreshMode(StrEnum):
    """How a table participates in recent-window refreshes.

    Values:
        OFF: Table is not refreshed
        ON: Refresh using the table's watermark column
        ON_WITH_COLUMN: Refresh bounded by an explicitly named column
    """

    OFF = "off"
    ON = "on"
    ON_WITH_COLUMN = "on_with_column"
