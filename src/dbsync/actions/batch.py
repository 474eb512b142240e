"""Full batch load: replace the whole target table with the source table."""

from __future__ import annotations

from sqlalchemy import Connection, Table, delete

from dbsync.actions.base import LoadAction


class BatchLoadAction(LoadAction):
    kind = "batch"

    def should_run(self) -> bool:
        return self.spec.batch_load

    def replace_rows(self, conn: Connection, table: Table) -> None:
        conn.execute(delete(table))

    def update_registry(self) -> None:
        self.registry.set(
            self.table_name,
            last_synced_at=self.started_at,
            last_batch_synced_at=self.started_at,
            last_row_at=self.high_watermark,
        )
