"""Table registry: per-table sync bookkeeping stored in the target database.

Uses SQLAlchemy Core (not ORM) so the same statements work on every
supported backend.

Columns:
    table_name: Synced table (primary key)
    last_synced_at: When the last load of any kind started
    last_batch_synced_at: When the last full batch load started
    last_row_at: Highest watermark value seen in the source
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import Column, DateTime, MetaData, String, Table, delete, insert, select, update

from dbsync.core.database import Database

slog = structlog.get_logger(__name__)

REGISTRY_TABLE_NAME = "meta_last_sync_times"

metadata = MetaData()

registry_table = Table(
    REGISTRY_TABLE_NAME,
    metadata,
    Column("table_name", String(255), primary_key=True),
    Column("last_synced_at", DateTime(timezone=True)),
    Column("last_batch_synced_at", DateTime(timezone=True)),
    Column("last_row_at", DateTime(timezone=True)),
)

_FIELDS = frozenset({"last_synced_at", "last_batch_synced_at", "last_row_at"})


@dataclass(frozen=True)
class RegistryEntry:
    table_name: str
    last_synced_at: datetime | None = None
    last_batch_synced_at: datetime | None = None
    last_row_at: datetime | None = None


class TableRegistry:
    """Durable store of per-table sync state."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def ensure_storage_exists(self) -> None:
        """Create the registry table if it does not exist."""
        metadata.create_all(self._db.engine, tables=[registry_table], checkfirst=True)

    def get(self, table_name: str) -> RegistryEntry | None:
        query = select(registry_table).where(registry_table.c.table_name == table_name)
        with self._db.connect() as conn:
            row = conn.execute(query).mappings().first()
        if row is None:
            return None
        return RegistryEntry(**row)

    def set(self, table_name: str, **fields: Any) -> None:
        """Insert or update the entry for table_name.

        Only the given fields change on update.

        Raises:
            ValueError: If an unknown field is given
        """
        unknown = set(fields) - _FIELDS
        if unknown:
            raise ValueError(f"Unknown registry fields: {sorted(unknown)}")

        with self._db.begin() as conn:
            exists = conn.execute(
                select(registry_table.c.table_name).where(registry_table.c.table_name == table_name)
            ).first()
            if exists is None:
                conn.execute(insert(registry_table).values(table_name=table_name, **fields))
            elif fields:
                conn.execute(update(registry_table).where(registry_table.c.table_name == table_name).values(**fields))

    def delete(self, table_name: str) -> None:
        with self._db.begin() as conn:
            conn.execute(delete(registry_table).where(registry_table.c.table_name == table_name))

    def table_names(self) -> list[str]:
        with self._db.connect() as conn:
            return list(conn.execute(select(registry_table.c.table_name).order_by(registry_table.c.table_name)).scalars())

    def purge_except(self, table_names: Iterable[str]) -> list[str]:
        """Delete entries for every table not in table_names.

        Keeps stale tables that are no longer synced from skewing lag
        calculations.

        Returns:
            Names of the purged tables, sorted
        """
        keep = set(table_names)
        with self._db.begin() as conn:
            existing = conn.execute(select(registry_table.c.table_name)).scalars().all()
            purged = sorted(name for name in existing if name not in keep)
            if purged:
                conn.execute(delete(registry_table).where(registry_table.c.table_name.in_(purged)))
        if purged:
            slog.info("registry_purged", tables=purged)
        return purged
