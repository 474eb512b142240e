"""Sync plans: which tables each source contributes."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable

from dbsync.contracts.plan import TableLoadSpec
from dbsync.contracts.protocols import Connection, SyncPlan
from dbsync.core.config import PlanSettings, SyncSettings
from dbsync.core.database import reading_source
from dbsync.core.registry import REGISTRY_TABLE_NAME


class StaticTablePlan:
    """A fixed list of tables."""

    def __init__(self, specs: Iterable[TableLoadSpec]) -> None:
        self._specs = list(specs)

    def tables(self, source: Connection) -> list[TableLoadSpec]:
        return list(self._specs)


class AllTablesPlan:
    """Every table present in the source, discovered at resolution time.

    Each discovered table is built from the defaults template. The
    registry's own bookkeeping table is never included. Discovery errors are
    translated like any other source read.
    """

    def __init__(self, defaults: TableLoadSpec | None = None) -> None:
        self._defaults = defaults if defaults is not None else TableLoadSpec(table_name="")

    def tables(self, source: Connection) -> list[TableLoadSpec]:
        with reading_source("the table list"):
            names = source.table_names()  # type: ignore[attr-defined]
        return [
            dataclasses.replace(self._defaults, table_name=name)
            for name in sorted(names)
            if name != REGISTRY_TABLE_NAME
        ]


def plan_from_settings(settings: PlanSettings) -> SyncPlan:
    if settings.all_tables:
        defaults = settings.defaults.to_spec() if settings.defaults is not None else None
        return AllTablesPlan(defaults)
    return StaticTablePlan(table.to_spec() for table in settings.tables)


def plans_from_settings(settings: SyncSettings) -> list[tuple[SyncPlan, str]]:
    """Build (plan, source name) pairs in configuration order."""
    return [(plan_from_settings(plan), plan.source) for plan in settings.plans]
