"""Per-table load settings.

A TableLoadSpec describes how one table is synchronized: which source owns
it, which load strategies apply to it, and which columns bound its
watermark and recent-refresh window. Specs are rebuilt from configuration
on every Manager instance and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from dbsync.contracts.enums import RefreshMode

if TYPE_CHECKING:
    from dbsync.contracts.protocols import Connection


@dataclass(frozen=True, slots=True)
class RefreshRecent:
    """Tagged refresh-recent setting: Off, On, or OnWithColumn(name)."""

    mode: RefreshMode = RefreshMode.OFF
    column: str | None = None

    def __post_init__(self) -> None:
        if (self.mode is RefreshMode.ON_WITH_COLUMN) != (self.column is not None):
            raise ValueError(f"column must be set exactly when mode is {RefreshMode.ON_WITH_COLUMN}")

    @classmethod
    def off(cls) -> RefreshRecent:
        return cls(RefreshMode.OFF)

    @classmethod
    def on(cls) -> RefreshRecent:
        return cls(RefreshMode.ON)

    @classmethod
    def on_column(cls, column: str) -> RefreshRecent:
        return cls(RefreshMode.ON_WITH_COLUMN, column)

    @classmethod
    def parse(cls, value: bool | str | RefreshRecent | None) -> RefreshRecent:
        """Build from a configuration value: a bool or a column name."""
        if isinstance(value, RefreshRecent):
            return value
        if value is None or value is False:
            return cls.off()
        if value is True:
            return cls.on()
        if isinstance(value, str) and value:
            return cls.on_column(value)
        raise ValueError(f"refresh_recent must be a bool or a column name, got {value!r}")

    @property
    def enabled(self) -> bool:
        return self.mode is not RefreshMode.OFF


@dataclass(frozen=True, slots=True)
class TableLoadSpec:
    """Resolved description of how one table is synchronized.

    Attributes:
        table_name: Unique key across the resolved plan
        source_name: Identifier of the owning source
        source_db: Live source connection (set by the resolver)
        batch_load: Whether batch runs load this table
        refresh_recent: Recent-window refresh setting
        aux_timestamp_column: Column bounding the recent window, derived
            from refresh_recent when it names a column
        timestamp_column: Watermark column for incremental loads
        primary_key: Key columns; empty means reflect from the source
        columns: Columns to copy; empty means all source columns
    """

    table_name: str
    source_name: str | None = None
    source_db: Connection | None = field(default=None, compare=False, repr=False)
    batch_load: bool = True
    refresh_recent: RefreshRecent = field(default_factory=RefreshRecent.off)
    aux_timestamp_column: str | None = None
    timestamp_column: str = "updated_at"
    primary_key: tuple[str, ...] = ()
    columns: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> TableLoadSpec:
        """Build a spec from a plain dict as found in settings."""
        return cls(
            table_name=data["table_name"],
            batch_load=bool(data.get("batch_load", True)),
            refresh_recent=RefreshRecent.parse(data.get("refresh_recent", False)),
            timestamp_column=data.get("timestamp_column", "updated_at"),
            primary_key=tuple(data.get("primary_key", ())),
            columns=tuple(data.get("columns", ())),
        )
