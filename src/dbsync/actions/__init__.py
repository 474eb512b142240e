"""Load actions: the per-table units of work driven by the Pipeline.

The set is closed. The manager picks the class by entry point:
batch runs use BatchLoadAction, refresh runs RefreshRecentLoadAction,
and the incremental loop IncrementalLoadAction (overridable).
"""

from dbsync.actions.base import LoadAction
from dbsync.actions.batch import BatchLoadAction
from dbsync.actions.incremental import IncrementalLoadAction
from dbsync.actions.refresh_recent import RefreshRecentLoadAction

STAGES = LoadAction.STAGES

__all__ = [
    "STAGES",
    "BatchLoadAction",
    "IncrementalLoadAction",
    "LoadAction",
    "RefreshRecentLoadAction",
]
