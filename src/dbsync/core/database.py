"""Database connection management.

A Database wraps a lazily created SQLAlchemy Engine. The Engine's pool is
thread-safe, so one Database is shared by every load action of a run,
including workers under ThreadedContext.

disconnect() disposes the pool; the next use opens fresh connections. The
incremental loop relies on this to pick up endpoint changes such as a
virtual-IP failover.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from sqlalchemy import Connection, MetaData, Table, create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError

from dbsync.contracts.enums import ConnectionRole
from dbsync.contracts.errors import ExtractError, TransientError
from dbsync.core.config import DatabaseSettings

slog = structlog.get_logger(__name__)


class Database:
    """A source or target database handle."""

    def __init__(self, settings: DatabaseSettings, role: ConnectionRole) -> None:
        self.settings = settings
        self.role = role
        self._engine: Engine | None = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Database({self.role.value}, {self.settings.sanitized_url})"

    @property
    def is_sqlite(self) -> bool:
        return self.settings.url.startswith("sqlite")

    @property
    def engine(self) -> Engine:
        """The SQLAlchemy engine, created on first access."""
        with self._lock:
            if self._engine is None:
                self._engine = self._create_engine()
            return self._engine

    def _create_engine(self) -> Engine:
        kwargs: dict[str, Any] = {"echo": self.settings.echo, "pool_pre_ping": True}
        if self.is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
        else:
            kwargs["pool_size"] = self.settings.pool_size
        engine = create_engine(self.settings.url, **kwargs)
        if self.is_sqlite:
            Database._configure_sqlite(engine)
        slog.debug("database_engine_created", role=self.role.value, url=self.settings.sanitized_url)
        return engine

    @staticmethod
    def _configure_sqlite(engine: Engine) -> None:
        """Set WAL mode and a busy timeout so concurrent table loads wait instead of failing."""

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=30000")
            cursor.close()

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        with self.engine.connect() as conn:
            yield conn

    @contextmanager
    def begin(self) -> Iterator[Connection]:
        """Connection inside a transaction, committed on exit, rolled back on error."""
        with self.engine.begin() as conn:
            yield conn

    def has_table(self, table_name: str) -> bool:
        return inspect(self.engine).has_table(table_name)

    def table_names(self) -> list[str]:
        return inspect(self.engine).get_table_names()

    def reflect(self, table_name: str) -> Table:
        """Load a table definition from the live schema."""
        return Table(table_name, MetaData(), autoload_with=self.engine)

    def disconnect(self) -> None:
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()


class SqlAlchemyConnectionFactory:
    """Creates Database handles from settings."""

    def create(self, options: DatabaseSettings, role: ConnectionRole) -> Database:
        return Database(options, role)


@contextmanager
def reading_source(table_name: str) -> Iterator[None]:
    """Translate driver errors raised while reading a source table.

    Dropped connections become TransientError; any other driver error is an
    ExtractError. Both are retried by the incremental loop.
    """
    try:
        yield
    except DBAPIError as e:
        if e.connection_invalidated:
            raise TransientError(f"Connection lost while extracting {table_name}: {e.orig}") from e
        raise ExtractError(f"Failed to extract {table_name}: {e.orig}") from e


@contextmanager
def writing_target(table_name: str) -> Iterator[None]:
    """Translate dropped connections on the target into TransientError.

    Other driver errors propagate unchanged and are fatal.
    """
    try:
        yield
    except DBAPIError as e:
        if e.connection_invalidated:
            raise TransientError(f"Connection lost while loading {table_name}: {e.orig}") from e
        raise
