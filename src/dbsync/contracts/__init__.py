"""Shared contracts: types crossing subsystem boundaries.

Leaf package. Nothing here imports from dbsync.core or dbsync.engine at
runtime.
"""

from dbsync.contracts.enums import ConnectionRole, ErrorKind, RefreshMode
from dbsync.contracts.errors import (
    ConfigurationError,
    ExtractError,
    LoadFailedError,
    SyncError,
    TransientError,
    UnknownTableError,
    classify,
)
from dbsync.contracts.plan import RefreshRecent, TableLoadSpec
from dbsync.contracts.results import Failure, Result, Success

__all__ = [
    "ConfigurationError",
    "ConnectionRole",
    "ErrorKind",
    "ExtractError",
    "Failure",
    "LoadFailedError",
    "RefreshMode",
    "RefreshRecent",
    "Result",
    "Success",
    "SyncError",
    "TableLoadSpec",
    "TransientError",
    "UnknownTableError",
    "classify",
]
