"""Incremental load: copy rows changed since the last recorded watermark.

Rows with ``timestamp_column >= last_row_at`` are re-extracted (the
boundary is inclusive so rows sharing the last timestamp are not lost) and
replaced by primary key, which keeps repeated loads idempotent.

Tables never batch loaded have no registry entry and are skipped until a
batch load records one.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Connection, Table
from sqlalchemy.sql.elements import ColumnElement

from dbsync.actions.base import LoadAction
from dbsync.contracts.errors import ConfigurationError


class IncrementalLoadAction(LoadAction):
    kind = "incremental"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.last_row_at: datetime | None = None

    def should_run(self) -> bool:
        entry = self.registry.get(self.table_name)
        if entry is None:
            return False
        self.last_row_at = entry.last_row_at
        return True

    def extract_condition(self) -> ColumnElement[bool] | None:
        if self.last_row_at is None:
            return None
        assert self.source_table is not None
        column = self.spec.timestamp_column
        if column not in self.source_table.c:
            raise ConfigurationError(f"Timestamp column {column} not found in source table {self.table_name}")
        return self.source_table.c[column] >= self.last_row_at

    def replace_rows(self, conn: Connection, table: Table) -> None:
        self.delete_keys(conn, table)

    def update_registry(self) -> None:
        fields = {"last_synced_at": self.started_at}
        # Never move the watermark backwards when nothing new arrived
        if self.high_watermark is not None:
            fields["last_row_at"] = self.high_watermark
        self.registry.set(self.table_name, **fields)
