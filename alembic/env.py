from __future__ import annotations

import os
from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import engine_from_config, inspect, pool

from db.base import Base
from db.config import load_env_files, normalize_postgres_url, resolve_database_url
from db.models import (  # noqa: F401  imports trigger Base.metadata registration
    CSVUpload,
    DashboardMetric,
    DashboardSection,
    DataChange,
)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# Columns that only the flat first-generation metric table carries.
_LEGACY_METRIC_COLUMNS = {"section", "field", "value"}


def _resolve_database_url() -> str:
    """
    Resolve DB URL for migrations.

    Priority:
    1) `-x db_url=...`
    2) ALEMBIC_DATABASE_URL
    3) sqlalchemy.url from alembic.ini
    4) DATABASE_URL / CLOUD_DATABASE_URL / LOCAL_DATABASE_URL
    """

    load_env_files()

    x_args = context.get_x_argument(as_dictionary=True)
    candidates = (
        x_args.get("db_url"),
        os.getenv("ALEMBIC_DATABASE_URL"),
        (config.get_main_option("sqlalchemy.url") or "").strip(),
    )
    url = next((normalize_postgres_url(value) for value in candidates if value), None)
    if url is None:
        url = resolve_database_url()

    if not url.startswith("postgresql"):
        raise RuntimeError("Alembic is configured for PostgreSQL URLs only.")
    return url


def _include_object(
    obj: Any,
    name: str | None,
    type_: str,
    reflected: bool,
    compare_to: Any,
) -> bool:
    # Tables present only in the database (audit exports, ad-hoc copies) are
    # never proposed for dropping by autogenerate.
    if type_ == "table" and reflected and compare_to is None:
        return False
    return True


def _refuse_legacy_metric_table(connection: Any) -> None:
    """
    Stop before migrating a store whose ``dashboard_metrics`` is the flat
    section/category/field/value table; the upgrade would collide with it.
    """

    inspector = inspect(connection)
    if not inspector.has_table(DashboardMetric.__tablename__):
        return
    columns = {column["name"] for column in inspector.get_columns(DashboardMetric.__tablename__)}
    if _LEGACY_METRIC_COLUMNS <= columns and "metric_key" not in columns:
        raise RuntimeError(
            "dashboard_metrics has the legacy flat layout. The service reads it as-is; "
            "migrate its rows to the versioned layout before running Alembic."
        )


def _configure_kwargs() -> dict[str, Any]:
    return {
        "target_metadata": target_metadata,
        "include_object": _include_object,
        "compare_type": True,
        "compare_server_default": True,
    }


def run_migrations_offline() -> None:
    context.configure(
        url=_resolve_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = _resolve_database_url()

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
        future=True,
    )

    with connectable.connect() as connection:
        _refuse_legacy_metric_table(connection)
        context.configure(connection=connection, **_configure_kwargs())

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
