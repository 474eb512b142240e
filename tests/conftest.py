# tests/conftest.py
"""Shared test fixtures and helpers.

Fakes for the collaborators the Manager depends on, so orchestration can be
tested without a database:

- FakeConnection / FakeConnectionFactory: Connection handles counting disconnects
- FakeRegistry: Records ensure_storage_exists() and purge_except() calls
- FakeAction / make_action(): Load actions failing on demand at a given stage
- FakePlan: A SyncPlan returning fixed specs
- RecordingErrorHandler: ErrorHandler capturing per-table reports

Tests that exercise real loads use the sqlite_db fixture instead.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)
"""

from __future__ import annotations

import os
import threading
from collections import deque
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime
from pathlib import Path
from typing import Any, ClassVar

import pytest
from hypothesis import Phase, Verbosity, settings

from dbsync.contracts.enums import ConnectionRole
from dbsync.contracts.plan import TableLoadSpec
from dbsync.core.config import DatabaseSettings, RetrySettings, SyncSettings
from dbsync.core.database import Database
from dbsync.engine.error_handler import ErrorHandler

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Connection and registry fakes
# =============================================================================


class FakeConnection:
    """Connection handle that only counts disconnects."""

    def __init__(self, name: str, tables: Iterable[str] = ()) -> None:
        self.name = name
        self.tables = list(tables)
        self.disconnect_count = 0

    def __repr__(self) -> str:
        return f"FakeConnection({self.name!r})"

    def disconnect(self) -> None:
        self.disconnect_count += 1

    def table_names(self) -> list[str]:
        return list(self.tables)


class FakeConnectionFactory:
    """Creates FakeConnections named after the database URL."""

    def __init__(self) -> None:
        self.created: list[tuple[FakeConnection, ConnectionRole]] = []

    def create(self, options: DatabaseSettings, role: ConnectionRole) -> FakeConnection:
        conn = FakeConnection(options.url)
        self.created.append((conn, role))
        return conn


class FakeRegistry:
    """Registry recording the calls made against it."""

    def __init__(self, on_purge: Callable[[], None] | None = None) -> None:
        self.ensure_calls = 0
        self.purge_calls: list[set[str]] = []
        self._on_purge = on_purge

    def ensure_storage_exists(self) -> None:
        self.ensure_calls += 1

    def purge_except(self, table_names: Iterable[str]) -> list[str]:
        self.purge_calls.append(set(table_names))
        if self._on_purge is not None:
            self._on_purge()
        return []


class FakePlan:
    """SyncPlan returning a fixed list of specs."""

    def __init__(self, specs: Iterable[TableLoadSpec]) -> None:
        self.specs = list(specs)
        self.calls: list[Any] = []

    def tables(self, source: Any) -> list[TableLoadSpec]:
        self.calls.append(source)
        return list(self.specs)


def specs(*names: str, **overrides: Any) -> list[TableLoadSpec]:
    return [TableLoadSpec(table_name=name, **overrides) for name in names]


# =============================================================================
# Load action fakes
# =============================================================================


class FakeAction:
    """Load action whose stages are no-ops unless told to fail.

    Per-class state (use make_action() for a fresh class per test):
        failures: table name -> (stage, exception) raised at that stage
        script: outcomes consumed one per constructed action at the extract
            stage (None succeeds, an exception is raised); when empty,
            on_exhausted is called and the action succeeds
        constructed: every instance created, in construction order
        stage_calls: (table name, stage) for every stage run
    """

    STAGES: ClassVar[tuple[str, ...]] = ("prepare", "extract", "transform", "load")

    failures: ClassVar[dict[str, tuple[str, Exception]]] = {}
    script: ClassVar[deque[Exception | None] | None] = None
    on_exhausted: ClassVar[Callable[[], None] | None] = None
    constructed: ClassVar[list[FakeAction]] = []
    stage_calls: ClassVar[list[tuple[str, str]]] = []
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, target: Any, spec: TableLoadSpec, registry: Any, logger: Any, clock: Any) -> None:
        self.target = target
        self.spec = spec
        self.registry = registry
        self.clock = clock
        with self._lock:
            self.constructed.append(self)

    @property
    def tag(self) -> str:
        return self.spec.table_name

    def prepare(self) -> None:
        self._stage("prepare")

    def extract(self) -> None:
        self._stage("extract")
        if self.script is None:
            return
        if not self.script:
            if self.on_exhausted is not None:
                type(self).on_exhausted()
            return
        outcome = self.script.popleft()
        if outcome is not None:
            raise outcome

    def transform(self) -> None:
        self._stage("transform")

    def load(self) -> None:
        self._stage("load")

    def _stage(self, name: str) -> None:
        with self._lock:
            self.stage_calls.append((self.tag, name))
        failure = self.failures.get(self.tag)
        if failure is not None and failure[0] == name:
            raise failure[1]


def make_action(
    failures: dict[str, tuple[str, Exception]] | None = None,
    *,
    script: Iterable[Exception | None] | None = None,
    on_exhausted: Callable[[], None] | None = None,
) -> type[FakeAction]:
    """Fresh FakeAction subclass with its own recording state."""
    return type(
        "ScriptedAction",
        (FakeAction,),
        {
            "failures": dict(failures or {}),
            "script": deque(script) if script is not None else None,
            "on_exhausted": staticmethod(on_exhausted) if on_exhausted is not None else None,
            "constructed": [],
            "stage_calls": [],
        },
    )


class RecordingErrorHandler(ErrorHandler):
    """ErrorHandler keeping every per-table report."""

    def __init__(self) -> None:
        super().__init__()
        self.notified: list[tuple[str, BaseException]] = []

    def notify_error(self, tag: str, error: BaseException) -> None:
        self.notified.append((tag, error))
        super().notify_error(tag, error)


# =============================================================================
# Settings and databases
# =============================================================================


def make_settings(**overrides: Any) -> SyncSettings:
    values: dict[str, Any] = {
        "target": DatabaseSettings(url="sqlite://"),
        "sources": {"main": DatabaseSettings(url="sqlite:///main.db")},
        "retry": RetrySettings(max_consecutive_failures=10, delay_seconds=0.0, purge_interval=100),
    }
    values.update(overrides)
    return SyncSettings(**values)


@pytest.fixture
def sqlite_db(tmp_path: Path) -> Iterator[Callable[..., Database]]:
    """Factory for file-backed SQLite databases disposed after the test."""
    created: list[Database] = []

    def _make(name: str, role: ConnectionRole = ConnectionRole.SOURCE) -> Database:
        db = Database(DatabaseSettings(url=f"sqlite:///{tmp_path / name}"), role)
        created.append(db)
        return db

    yield _make

    for db in created:
        db.disconnect()


def day(value: str) -> datetime:
    """Naive datetime from YYYY-MM-DD; SQLite stores datetimes without zone."""
    return datetime.fromisoformat(value)
