"""Engine: orchestration of sync runs.

- pipeline.py: Pipeline and its execution contexts
- planner.py: Table plan resolution and selection
- retry.py: Incremental loop with bounded consecutive-failure retry
- error_handler.py: Error reporting and transient classification
- manager.py: Manager, the top-level API (import from dbsync.engine.manager)
"""

from dbsync.engine.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from dbsync.engine.error_handler import ErrorHandler
from dbsync.engine.pipeline import ExecutionContext, Pipeline, SequentialContext, ThreadedContext
from dbsync.engine.planner import ALL_TABLES, TablePlanResolver, select_tables
from dbsync.engine.retry import MAX_CONSECUTIVE_FAILURES, CancellationToken, IncrementalLoop

__all__ = [
    "ALL_TABLES",
    "DEFAULT_CLOCK",
    "MAX_CONSECUTIVE_FAILURES",
    "CancellationToken",
    "Clock",
    "ErrorHandler",
    "ExecutionContext",
    "IncrementalLoop",
    "MockClock",
    "Pipeline",
    "SequentialContext",
    "SystemClock",
    "TablePlanResolver",
    "ThreadedContext",
    "select_tables",
]
