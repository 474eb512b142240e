# src/dbsync/actions/base.py
"""LoadAction base class: one table, four stages.

Stages run in order under the Pipeline:

    prepare    decide whether the table is loaded at all, reflect schemas
    extract    read rows from the source
    transform  project rows onto the target's columns
    load       write rows to the target in one transaction, update registry

A skipped action (e.g. batch_load off) turns every later stage into a
no-op. Source read errors become ExtractError/TransientError so the
incremental loop can retry them.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any, ClassVar

from sqlalchemy import Column, Connection, MetaData, Table, delete, insert, select, tuple_
from sqlalchemy.sql.elements import ColumnElement

from dbsync.contracts.errors import ConfigurationError
from dbsync.contracts.plan import TableLoadSpec
from dbsync.core.database import Database, reading_source, writing_target
from dbsync.core.logging import SyncLogger
from dbsync.core.registry import TableRegistry
from dbsync.engine.clock import Clock

# Rows per INSERT / keys per DELETE statement
CHUNK_SIZE = 500


class LoadAction:
    """Per-table unit of work. Subclasses define what is extracted and replaced."""

    STAGES: ClassVar[tuple[str, ...]] = ("prepare", "extract", "transform", "load")

    # Short name used in log events
    kind: ClassVar[str] = "load"

    def __init__(
        self,
        target: Database,
        spec: TableLoadSpec,
        registry: TableRegistry,
        logger: SyncLogger,
        clock: Clock,
    ) -> None:
        if spec.source_db is None:
            raise ConfigurationError(f"Table {spec.table_name} has no source connection")
        self.target = target
        self.spec = spec
        self.source: Database = spec.source_db  # type: ignore[assignment]
        self.registry = registry
        self.clock = clock
        self.logger = logger.bind(table=spec.table_name, action=self.kind)

        self.skipped = False
        self.started_at: datetime | None = None
        self.source_table: Table | None = None
        self.target_table: Table | None = None
        self.rows: list[dict[str, Any]] = []
        self.high_watermark: datetime | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.spec.table_name!r})"

    @property
    def tag(self) -> str:
        return self.spec.table_name

    @property
    def table_name(self) -> str:
        return self.spec.table_name

    # === Stages ===

    def prepare(self) -> None:
        if not self.should_run():
            self.skipped = True
            self.logger.info("load_skipped")
            return
        self.started_at = self.clock.now()
        with reading_source(self.table_name):
            self.source_table = self.source.reflect(self.table_name)
        self.target_table = self._ensure_target_table()

    def extract(self) -> None:
        if self.skipped:
            return
        query = select(*self._source_columns())
        condition = self.extract_condition()
        if condition is not None:
            query = query.where(condition)
        with reading_source(self.table_name):
            self.rows = self.logger.measure(
                f"{self.kind}_extract",
                lambda: self._fetch(query),
            )
        self.high_watermark = self.max_row_timestamp()

    def transform(self) -> None:
        if self.skipped:
            return
        assert self.target_table is not None
        target_columns = set(self.target_table.c.keys())
        self.rows = [{k: v for k, v in row.items() if k in target_columns} for row in self.rows]

    def load(self) -> None:
        if self.skipped:
            return
        with writing_target(self.table_name):
            self.logger.measure(f"{self.kind}_load", self._load_in_transaction)
        self.update_registry()
        self.logger.info("table_loaded", rows=len(self.rows))

    # === Subclass hooks ===

    def should_run(self) -> bool:
        return True

    def extract_condition(self) -> ColumnElement[bool] | None:
        """WHERE clause limiting extracted rows; None extracts everything."""
        return None

    def replace_rows(self, conn: Connection, table: Table) -> None:
        """Remove the target rows about to be replaced by self.rows."""
        raise NotImplementedError

    def update_registry(self) -> None:
        raise NotImplementedError

    # === Helpers ===

    def _fetch(self, query: Any) -> list[dict[str, Any]]:
        """Read the query result in CHUNK_SIZE pages through a server-side cursor."""
        rows: list[dict[str, Any]] = []
        with self.source.connect() as conn:
            result = conn.execution_options(yield_per=CHUNK_SIZE).execute(query)
            for page in result.mappings().partitions():
                rows.extend(dict(row) for row in page)
        return rows

    def _source_columns(self) -> list[Column[Any]]:
        assert self.source_table is not None
        if not self.spec.columns:
            return list(self.source_table.c)
        missing = [name for name in self.spec.columns if name not in self.source_table.c]
        if missing:
            raise ConfigurationError(f"Columns {missing} not found in source table {self.table_name}")
        return [self.source_table.c[name] for name in self.spec.columns]

    def _ensure_target_table(self) -> Table:
        """Reflect the target table, creating it from the source schema if missing."""
        if self.target.has_table(self.table_name):
            return self.target.reflect(self.table_name)

        metadata = MetaData()
        columns = [
            Column(col.name, col.type, primary_key=col.primary_key, nullable=col.nullable)
            for col in self._source_columns()
        ]
        table = Table(self.table_name, metadata, *columns)
        with writing_target(self.table_name):
            metadata.create_all(self.target.engine, tables=[table], checkfirst=True)
        self.logger.info("target_table_created", columns=[c.name for c in columns])
        return table

    def primary_key(self) -> tuple[str, ...]:
        if self.spec.primary_key:
            return self.spec.primary_key
        assert self.source_table is not None
        key = tuple(col.name for col in self.source_table.primary_key.columns)
        if not key:
            raise ConfigurationError(f"Table {self.table_name} has no primary key; configure primary_key")
        return key

    def max_row_timestamp(self) -> datetime | None:
        """Highest watermark value among the extracted rows."""
        name = self.spec.timestamp_column
        values = [row[name] for row in self.rows if row.get(name) is not None]
        return max(values) if values else None

    def _load_in_transaction(self) -> None:
        assert self.target_table is not None
        with self.target.begin() as conn:
            self.replace_rows(conn, self.target_table)
            for chunk in _chunks(self.rows, CHUNK_SIZE):
                conn.execute(insert(self.target_table), chunk)

    def delete_keys(self, conn: Connection, table: Table) -> None:
        """Delete target rows whose primary key appears in self.rows."""
        key = self.primary_key()
        keys = [tuple(row[name] for name in key) for row in self.rows]
        for chunk in _chunks(keys, CHUNK_SIZE):
            conn.execute(delete(table).where(_key_in(table, key, chunk)))


def _key_in(table: Table, key: Sequence[str], values: list[tuple[Any, ...]]) -> ColumnElement[bool]:
    if len(key) == 1:
        return table.c[key[0]].in_([v[0] for v in values])
    # Row-value IN: PostgreSQL, MySQL and SQLite >= 3.15
    return tuple_(*(table.c[name] for name in key)).in_(values)


def _chunks(items: Sequence[Any], size: int) -> Iterable[list[Any]]:
    for start in range(0, len(items), size):
        yield list(items[start : start + size])
