# src/dbsync/engine/manager.py
"""Manager: the top-level sync API.

Orchestrates batch loads, recent-window refreshes and the never-ending
incremental loop. Each entry point resolves the table plan, builds one
load action per table and runs them through the Pipeline.

Failure policies:
- batch / refresh_recent: collect-and-report. Every table is attempted,
  each failure is reported individually, then one LoadFailedError is
  raised.
- increment: fail-fast per cycle (the first failed table aborts the
  cycle), retried on transient errors up to a consecutive-failure ceiling.

Example:
    with Manager(settings, plans_from_settings(settings)) as manager:
        manager.batch(["orders"])
        manager.increment()  # until manager.stop() from another thread
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Sequence
from typing import Any

import structlog

from dbsync.actions import STAGES, BatchLoadAction, IncrementalLoadAction, RefreshRecentLoadAction
from dbsync.contracts.enums import ConnectionRole
from dbsync.contracts.errors import LoadFailedError
from dbsync.contracts.plan import TableLoadSpec
from dbsync.contracts.protocols import Connection, ConnectionFactory, LoadActionFactory, Registry, SyncPlan
from dbsync.contracts.results import Failure, Result
from dbsync.core.alerts import WebhookNotifier
from dbsync.core.config import SyncSettings
from dbsync.core.database import SqlAlchemyConnectionFactory
from dbsync.core.logging import SyncLogger
from dbsync.core.registry import TableRegistry
from dbsync.engine.clock import DEFAULT_CLOCK, Clock
from dbsync.engine.error_handler import ErrorHandler
from dbsync.engine.pipeline import ExecutionContext, Pipeline, SequentialContext, ThreadedContext
from dbsync.engine.planner import ALL_TABLES, TablePlanResolver, TableSelection, select_tables
from dbsync.engine.retry import CancellationToken, IncrementalLoop

slog = structlog.get_logger(__name__)


class Manager:
    """Coordinates every sync run against one target database.

    State lives for the life of the instance: the source and target
    connections (created on first use), the resolved table plan, the
    cancellation token and the incremental cycle counter. close()
    disconnects every connection.
    """

    def __init__(
        self,
        settings: SyncSettings,
        plans: Sequence[tuple[SyncPlan, str]],
        *,
        incremental_action: LoadActionFactory | None = None,
        batch_action: LoadActionFactory | None = None,
        refresh_recent_action: LoadActionFactory | None = None,
        connection_factory: ConnectionFactory | None = None,
        registry_factory: Callable[[Connection], Registry] | None = None,
        error_handler: ErrorHandler | None = None,
        logger: SyncLogger | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings
        self.plans = list(plans)
        self.incremental_action: Any = incremental_action or IncrementalLoadAction
        self.batch_action: Any = batch_action or BatchLoadAction
        self.refresh_recent_action: Any = refresh_recent_action or functools.partial(
            RefreshRecentLoadAction, window_days=settings.refresh_recent_window_days
        )
        self.error_handler = error_handler or ErrorHandler(WebhookNotifier.from_settings(settings.alerts))
        self.logger = logger or SyncLogger()
        self.clock = clock or DEFAULT_CLOCK

        self._connection_factory = connection_factory or SqlAlchemyConnectionFactory()
        self._registry_factory = registry_factory or TableRegistry
        self._token = CancellationToken()
        self._cycle_count = 0
        self._target: Connection | None = None
        self._sources: dict[str, Connection] | None = None
        self._tables: list[TableLoadSpec] | None = None

    def __enter__(self) -> Manager:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # === Public API ===

    def batch(self, tables: TableSelection = ALL_TABLES) -> None:
        """Full load of the selected tables, then a recent-window refresh of them.

        Raises:
            UnknownTableError: If the selection names unknown tables
            LoadFailedError: If any table failed (after all were attempted)
        """
        with self.error_handler.wrap():
            self._batch_load(tables)
            self._refresh_recent(tables)

    def batch_load(self, tables: TableSelection = ALL_TABLES) -> None:
        """Full load of the selected tables without the refresh pass."""
        with self.error_handler.wrap():
            self._batch_load(tables)

    def refresh_recent(self, tables: TableSelection = ALL_TABLES) -> None:
        """Reload the recent window of the selected tables."""
        with self.error_handler.wrap():
            self._refresh_recent(tables)

    def increment(self) -> None:
        """Run incremental cycles until stop() is called.

        Raises:
            Exception: A fatal error from any cycle, or a transient error
                once it has failed max_consecutive_failures cycles in a row.
        """
        retry = self.settings.retry
        self._token.reset()
        loop = IncrementalLoop(
            self._incremental_cycle,
            token=self._token,
            is_retryable=ErrorHandler.is_transient,
            max_consecutive_failures=retry.max_consecutive_failures,
            delay_seconds=retry.delay_seconds,
        )
        with self.error_handler.wrap():
            slog.info("incremental_started")
            loop.run()
            slog.info("incremental_stopped", cycles=self._cycle_count)

    def increment_once(self) -> None:
        """Run a single incremental cycle, raising the first table failure."""
        # Pick up endpoint changes such as a virtual-IP flip
        for source in self.sources.values():
            source.disconnect()

        # Threads per cycle would churn for the lifetime of the process
        raise_if_pipeline_failure(self._run_load(self.incremental_action, SequentialContext()))

    def stop(self) -> None:
        """Ask the incremental loop to exit at the next cycle boundary."""
        self._token.cancel()

    def close(self) -> None:
        """Disconnect every cached connection."""
        if self._sources is not None:
            for source in self._sources.values():
                source.disconnect()
        if self._target is not None:
            self._target.disconnect()

    # === State ===

    @property
    def running(self) -> bool:
        return self._token.running

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def target(self) -> Connection:
        if self._target is None:
            self._target = self._connection_factory.create(self.settings.target, ConnectionRole.TARGET)
        return self._target

    @property
    def sources(self) -> dict[str, Connection]:
        if self._sources is None:
            self._sources = {
                name: self._connection_factory.create(options, ConnectionRole.SOURCE)
                for name, options in self.settings.sources.items()
            }
        return self._sources

    @property
    def registry(self) -> Registry:
        return self._registry_factory(self.target)

    def tables_to_load(self) -> list[TableLoadSpec]:
        """Resolved table plan, cached for the life of the manager."""
        if self._tables is None:
            self._tables = TablePlanResolver(self.plans, self.sources).resolve()
        return self._tables

    def expected_table_names(self) -> set[str]:
        return {spec.table_name for spec in self.tables_to_load()} | set(self.settings.extra_tables)

    def purge_registry(self) -> None:
        """Drop registry entries of tables no longer synced, so they stop skewing lag."""
        self.registry.purge_except(self.expected_table_names())

    # === Internals ===

    def _batch_load(self, tables: TableSelection) -> None:
        self.registry.ensure_storage_exists()
        self.logger.measure(
            "batch_total",
            lambda: self._raise_all_if_pipeline_failure(self._run_load(self.batch_action, ThreadedContext(), tables)),
        )

    def _refresh_recent(self, tables: TableSelection) -> None:
        self.registry.ensure_storage_exists()
        self.logger.measure(
            "refresh_recent_total",
            lambda: self._raise_all_if_pipeline_failure(self._run_load(self.refresh_recent_action, ThreadedContext(), tables)),
        )

    def _incremental_cycle(self) -> None:
        self.increment_once()
        self._cycle_count += 1
        slog.debug("incremental_cycle_completed", cycle=self._cycle_count, tables=len(self.tables_to_load()))
        if (self._cycle_count - 1) % self.settings.retry.purge_interval == 0:
            self.purge_registry()

    def _run_load(
        self,
        action: Callable[..., Any],
        context: ExecutionContext,
        tables: TableSelection = ALL_TABLES,
    ) -> list[Result]:
        # Selection errors surface before any action is constructed
        specs = select_tables(self.tables_to_load(), tables)
        registry = self.registry
        items = [action(self.target, spec, registry, self.logger, self.clock) for spec in specs]
        return Pipeline(items, STAGES).run(context)

    def _raise_all_if_pipeline_failure(self, results: list[Result]) -> None:
        failed = [result for result in results if isinstance(result, Failure)]
        for failure in failed:
            self.error_handler.notify_error(failure.task.tag, failure.wrapped_exception)
        if failed:
            raise LoadFailedError(failure.task.tag for failure in failed)


def raise_if_pipeline_failure(results: list[Result]) -> None:
    """Re-raise the original exception of the first failed item."""
    for result in results:
        if isinstance(result, Failure):
            raise result.wrapped_exception
