# src/dbsync/engine/planner.py
"""Table plan resolution.

Merges the table lists of every configured plan into one list of
TableLoadSpec, unique by table name, and narrows it to an explicit table
selection when an operator asks for one.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping, Sequence
from typing import Final

from dbsync.contracts.enums import RefreshMode
from dbsync.contracts.errors import ConfigurationError, UnknownTableError
from dbsync.contracts.plan import RefreshRecent, TableLoadSpec
from dbsync.contracts.protocols import Connection, SyncPlan


class _AllTables:
    """Sentinel selecting every table in the plan."""

    _instance: _AllTables | None = None

    def __new__(cls) -> _AllTables:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ALL_TABLES"


ALL_TABLES: Final = _AllTables()

TableSelection = _AllTables | Iterable[str] | None


class TablePlanResolver:
    """Resolves (plan, source name) pairs against live source connections."""

    def __init__(self, plans: Sequence[tuple[SyncPlan, str]], sources: Mapping[str, Connection]) -> None:
        self._plans = list(plans)
        self._sources = sources

    def plans_with_sources(self) -> list[tuple[SyncPlan, str, Connection]]:
        """Pair every plan with its source connection.

        Raises:
            ConfigurationError: If a plan names an unknown source
        """
        paired = []
        for plan, source_name in self._plans:
            if source_name not in self._sources:
                raise ConfigurationError(f"Unknown source '{source_name}'. Available sources: {sorted(self._sources)}")
            paired.append((plan, source_name, self._sources[source_name]))
        return paired

    def resolve(self) -> list[TableLoadSpec]:
        """Enumerate, tag and deduplicate the specs of every plan.

        Duplicates are dropped, not merged: the first plan listing a table
        owns it.
        """
        seen: set[str] = set()
        specs: list[TableLoadSpec] = []
        for plan, source_name, source in self.plans_with_sources():
            for spec in plan.tables(source):
                if spec.table_name in seen:
                    continue
                seen.add(spec.table_name)
                specs.append(dataclasses.replace(spec, source_name=source_name, source_db=source))
        return specs


def select_tables(specs: Sequence[TableLoadSpec], tables: TableSelection = ALL_TABLES) -> list[TableLoadSpec]:
    """Narrow resolved specs to a selection and prepare them for loading.

    An explicit selection forces batch_load and refresh_recent on, so
    operators can load tables that are not part of the regular schedule.
    A forced refresh windows on the timestamp column, never a configured
    window column.

    Raises:
        UnknownTableError: If any selected name is not in specs. Raised
            before anything is loaded and lists every unmatched name.
    """
    if tables is None or tables is ALL_TABLES:
        return [_with_aux_column(spec) for spec in specs]

    requested = [tables] if isinstance(tables, str) else list(tables)
    known = {spec.table_name for spec in specs}
    unknown = set(requested) - known
    if unknown:
        raise UnknownTableError(unknown)

    wanted = set(requested)
    return [
        dataclasses.replace(spec, batch_load=True, refresh_recent=RefreshRecent.on(), aux_timestamp_column=None)
        for spec in specs
        if spec.table_name in wanted
    ]


def _with_aux_column(spec: TableLoadSpec) -> TableLoadSpec:
    if spec.refresh_recent.mode is RefreshMode.ON_WITH_COLUMN:
        return dataclasses.replace(spec, aux_timestamp_column=spec.refresh_recent.column)
    return spec
