# src/dbsync/core/config.py
"""
Configuration schema and loading for dbsync.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.

Example YAML:
    target:
      url: postgresql://sync@warehouse/mirror
    sources:
      orders_db:
        url: ${ORDERS_DB_URL}
    plans:
      - source: orders_db
        tables:
          - table_name: orders
            refresh_recent: true
          - table_name: order_items
            refresh_recent: created_at
    extra_tables: [legacy_orders]
"""

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy.engine.url import make_url

from dbsync.contracts.plan import RefreshRecent, TableLoadSpec


class DatabaseSettings(BaseModel):
    """Database connection configuration."""

    model_config = {"frozen": True}

    url: str = Field(description="SQLAlchemy database URL")
    pool_size: int = Field(default=5, gt=0, description="Connection pool size")
    echo: bool = Field(default=False, description="Echo SQL statements")

    @property
    def sanitized_url(self) -> str:
        """URL with any password masked, safe for logs."""
        return make_url(self.url).render_as_string(hide_password=True)


class TableDefaults(BaseModel):
    """Load settings shared by table entries and all_tables templates."""

    model_config = {"frozen": True, "extra": "forbid"}

    batch_load: bool = True
    refresh_recent: bool | str = Field(
        default=False,
        description="false, true, or the column bounding the recent window",
    )
    timestamp_column: str = Field(default="updated_at", description="Watermark column for incremental loads")
    primary_key: list[str] = Field(default_factory=list, description="Key columns (reflected when empty)")
    columns: list[str] = Field(default_factory=list, description="Columns to copy (all when empty)")

    @field_validator("refresh_recent")
    @classmethod
    def validate_refresh_recent(cls, v: bool | str) -> bool | str:
        if isinstance(v, str) and not v.strip():
            raise ValueError("refresh_recent column name cannot be empty")
        return v

    def to_spec(self, table_name: str = "") -> TableLoadSpec:
        return TableLoadSpec(
            table_name=table_name,
            batch_load=self.batch_load,
            refresh_recent=RefreshRecent.parse(self.refresh_recent),
            timestamp_column=self.timestamp_column,
            primary_key=tuple(self.primary_key),
            columns=tuple(self.columns),
        )


class TableSettings(TableDefaults):
    """One table contributed by a plan."""

    table_name: str = Field(min_length=1)

    def to_spec(self, table_name: str = "") -> TableLoadSpec:
        return super().to_spec(table_name or self.table_name)


class PlanSettings(BaseModel):
    """A sync plan bound to one source.

    Either lists its tables explicitly or mirrors every table of the source.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    source: str = Field(description="Name of a configured source")
    tables: list[TableSettings] = Field(default_factory=list)
    all_tables: bool = Field(default=False, description="Sync every table found in the source")
    defaults: TableDefaults | None = Field(
        default=None,
        description="Template for tables discovered with all_tables",
    )

    @model_validator(mode="after")
    def validate_table_selection(self) -> "PlanSettings":
        if self.all_tables == bool(self.tables):
            raise ValueError(f"plan for source '{self.source}' must set exactly one of 'tables' or 'all_tables'")
        return self


class RetrySettings(BaseModel):
    """Incremental loop retry behavior."""

    model_config = {"frozen": True}

    max_consecutive_failures: int = Field(
        default=10,
        gt=0,
        description="Consecutive transient failures tolerated before escalating",
    )
    delay_seconds: float = Field(default=0.0, ge=0, description="Pause before retrying a failed cycle")
    purge_interval: int = Field(default=100, gt=0, description="Purge the registry every N cycles")


class LoggingSettings(BaseModel):
    model_config = {"frozen": True}

    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    json_output: bool = Field(default=False, description="Emit JSON instead of console output")


class AlertSettings(BaseModel):
    """Webhook alerting for errors."""

    model_config = {"frozen": True}

    webhook_url: str | None = Field(default=None, description="Webhook receiving error alerts")
    timeout_seconds: float = Field(default=10.0, gt=0)


class SyncSettings(BaseModel):
    """Top-level dbsync configuration.

    This is the single source of truth for a sync deployment.
    All settings are validated and frozen after construction.
    """

    model_config = {"frozen": True}

    target: DatabaseSettings = Field(description="Database receiving all synced tables")
    sources: dict[str, DatabaseSettings] = Field(description="Named source databases")
    plans: list[PlanSettings] = Field(default_factory=list, description="Sync plans, in priority order")
    extra_tables: list[str] = Field(
        default_factory=list,
        description="Registry entries never purged (tracked for lag, not synced)",
    )
    refresh_recent_window_days: int = Field(default=14, gt=0, description="Width of the recent-refresh window")
    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    alerts: AlertSettings = Field(default_factory=AlertSettings)

    @field_validator("sources")
    @classmethod
    def validate_sources_not_empty(cls, v: dict[str, DatabaseSettings]) -> dict[str, DatabaseSettings]:
        """At least one source is required."""
        if not v:
            raise ValueError("At least one source is required")
        return v

    @model_validator(mode="after")
    def validate_plan_sources_exist(self) -> "SyncSettings":
        """Ensure every plan references a defined source."""
        for plan in self.plans:
            if plan.source not in self.sources:
                raise ValueError(f"plan source '{plan.source}' not found in sources. Available sources: {list(self.sources)}")
        return self


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """
    import os

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            default = match.group(2)
            if default is not None:
                return default
            # Unset and no default - keep original so validation reports it
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def load_settings(config_path: Path) -> SyncSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (DBSYNC_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: DBSYNC_TARGET__URL for nested keys.

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="DBSYNC",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase top-level keys
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    raw_config = _expand_env_vars(raw_config)

    return SyncSettings(**raw_config)
