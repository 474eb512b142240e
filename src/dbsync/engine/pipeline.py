# src/dbsync/engine/pipeline.py
"""Pipeline: drives load items through an ordered list of stages.

Every item runs every stage in order by calling the item's method of that
name. The first stage to raise aborts that item only; the exception is
wrapped into a Failure and never escapes the pipeline. Other items carry on.

The execution context decides inter-item concurrency only. Stages of one
item are always sequential.

    results = Pipeline(actions, LoadAction.STAGES).run(ThreadedContext())
    failures = [r for r in results if isinstance(r, Failure)]
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from typing import Any, Protocol

import structlog

from dbsync.contracts.results import Failure, Result, Success

slog = structlog.get_logger(__name__)


class ExecutionContext(Protocol):
    """Strategy for running a set of independent units of work."""

    def run(self, items: Sequence[Any], process: Callable[[Any], Result]) -> list[Result]:
        """Run process over every item, returning one Result per item."""
        ...


class SequentialContext:
    """All items one at a time, in submission order, on the calling thread.

    Used by the long-running incremental loop, where spawning workers every
    cycle would churn threads for the lifetime of the process.
    """

    def run(self, items: Sequence[Any], process: Callable[[Any], Result]) -> list[Result]:
        return [process(item) for item in items]


class ThreadedContext:
    """One worker thread per item, all joined before returning.

    Only suitable for bounded, one-shot runs (batch and refresh-recent):
    a thread is created per table. Results come back in completion order.
    """

    def __init__(self, thread_name_prefix: str = "dbsync-load") -> None:
        self._thread_name_prefix = thread_name_prefix

    def run(self, items: Sequence[Any], process: Callable[[Any], Result]) -> list[Result]:
        results: list[Result] = []
        lock = threading.Lock()

        def worker(item: Any) -> None:
            # process() never raises; the pipeline wraps stage errors
            result = process(item)
            with lock:
                results.append(result)

        threads = [
            threading.Thread(target=worker, args=(item,), name=f"{self._thread_name_prefix}-{index}", daemon=True)
            for index, item in enumerate(items)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results


class Pipeline:
    """Runs items through a fixed sequence of named stages."""

    def __init__(self, items: Sequence[Any], stages: Sequence[str]) -> None:
        self.items = list(items)
        self.stages = tuple(stages)

    def run(self, context: ExecutionContext) -> list[Result]:
        """Run every item under context.

        Returns:
            Exactly one Success or Failure per item
        """
        if not self.items:
            return []
        return context.run(self.items, self._process)

    def _process(self, item: Any) -> Result:
        for stage in self.stages:
            try:
                getattr(item, stage)()
            except Exception as e:
                slog.debug("pipeline_stage_failed", task=_describe(item), stage=stage, error=str(e))
                return Failure(task=item, wrapped_exception=e)
        return Success(task=item)


def _describe(item: Any) -> str:
    tag = getattr(item, "tag", None)
    return str(tag) if tag is not None else repr(item)
