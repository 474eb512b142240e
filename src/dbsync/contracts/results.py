"""Pipeline results.

These types answer: "What happened to one load item?"

Exactly one Result is produced per submitted item. Under threaded execution
the order of results is not the submission order, so callers correlate by
task identity, never by position.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from dbsync.contracts.enums import ErrorKind
from dbsync.contracts.errors import classify


@dataclass(frozen=True, slots=True)
class Success:
    """Every stage of the item completed."""

    task: Any


@dataclass(frozen=True, slots=True)
class Failure:
    """A stage of the item raised.

    Attributes:
        task: The originating load item, used for reporting and tagging
        wrapped_exception: The original error, unmodified
    """

    task: Any
    wrapped_exception: Exception

    @property
    def kind(self) -> ErrorKind:
        return classify(self.wrapped_exception)


Result = Success | Failure
