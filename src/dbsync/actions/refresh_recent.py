"""Recent-window refresh: reload every row newer than a cutoff.

Catches rows the incremental watermark misses, such as updates that did
not touch the timestamp column or hard deletes in the source. The window
is bounded by aux_timestamp_column when configured, else by the table's
timestamp_column, and starts window_days before the clock's current time.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import Connection, Table, delete
from sqlalchemy.sql.elements import ColumnElement

from dbsync.actions.base import LoadAction
from dbsync.contracts.errors import ConfigurationError

DEFAULT_WINDOW_DAYS = 14


class RefreshRecentLoadAction(LoadAction):
    kind = "refresh_recent"

    window_days: int = DEFAULT_WINDOW_DAYS

    def __init__(self, *args: Any, window_days: int | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        if window_days is not None:
            self.window_days = window_days
        self.cutoff: datetime | None = None

    @property
    def window_column(self) -> str:
        return self.spec.aux_timestamp_column or self.spec.timestamp_column

    def should_run(self) -> bool:
        return self.spec.refresh_recent.enabled

    def extract_condition(self) -> ColumnElement[bool] | None:
        assert self.source_table is not None and self.started_at is not None
        column = self.window_column
        if column not in self.source_table.c:
            raise ConfigurationError(f"Refresh column {column} not found in source table {self.table_name}")
        self.cutoff = self.started_at - timedelta(days=self.window_days)
        return self.source_table.c[column] >= self.cutoff

    def replace_rows(self, conn: Connection, table: Table) -> None:
        assert self.cutoff is not None
        if self.window_column in table.c:
            conn.execute(delete(table).where(table.c[self.window_column] >= self.cutoff))
        # Rows that moved into the window from older values are still in the target
        self.delete_keys(conn, table)

    def update_registry(self) -> None:
        self.registry.set(self.table_name, last_synced_at=self.started_at)
