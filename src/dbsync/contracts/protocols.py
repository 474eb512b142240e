"""Collaborator contracts consumed by the orchestration engine.

The engine only depends on these shapes. dbsync ships SQLAlchemy-backed
implementations (dbsync.core.database, dbsync.core.registry,
dbsync.actions), but tests and embedders may supply their own.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from dbsync.contracts.enums import ConnectionRole

if TYPE_CHECKING:
    from dbsync.contracts.plan import TableLoadSpec
    from dbsync.core.config import DatabaseSettings
    from dbsync.engine.clock import Clock

T = TypeVar("T")


@runtime_checkable
class Connection(Protocol):
    """A database handle. Must tolerate concurrent use from worker threads."""

    def disconnect(self) -> None:
        """Release underlying connections; the handle reconnects on next use."""
        ...


class ConnectionFactory(Protocol):
    def create(self, options: DatabaseSettings, role: ConnectionRole) -> Connection: ...


class Registry(Protocol):
    """Durable store of per-table sync state."""

    def ensure_storage_exists(self) -> None: ...

    def purge_except(self, table_names: Iterable[str]) -> Any: ...


class SyncLogger(Protocol):
    def measure(self, label: str, operation: Callable[[], T]) -> T:
        """Run operation, recording its duration under label."""
        ...


class SyncPlan(Protocol):
    """Enumerates the tables a source contributes to the sync."""

    def tables(self, source: Connection) -> list[TableLoadSpec]: ...


class LoadAction(Protocol):
    """Per-table unit of work.

    Implementations expose one method per stage name in the stage list
    handed to the Pipeline, and are constructed as
    ``cls(target, spec, registry, logger, clock)``.
    """

    @property
    def tag(self) -> str: ...


class LoadActionFactory(Protocol):
    STAGES: tuple[str, ...]

    def __call__(
        self,
        target: Connection,
        spec: TableLoadSpec,
        registry: Registry,
        logger: SyncLogger,
        clock: Clock,
    ) -> LoadAction: ...
