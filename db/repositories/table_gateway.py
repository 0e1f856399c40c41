"""
db/repositories/table_gateway.py

Query/command surface over the durable store.

The metric engine never talks to a session directly: it issues row-level
reads and writes against SQLAlchemy ``Table`` objects through a
``TableGateway``. Missing relations or columns are reported as
``SchemaUnavailableError`` so callers can pick another schema shape.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from sqlalchemy import Table, delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql import Executable

from db.repositories.errors import MetricStoreError, SchemaUnavailableError

logger = logging.getLogger(__name__)

# undefined_table, undefined_column
_SCHEMA_ABSENCE_SQLSTATES = frozenset({"42P01", "42703"})


class TableGateway(Protocol):
    """
    Row-oriented store surface consumed by repositories.

    ``order_by`` entries are column names; a leading ``-`` sorts descending.
    Every write returns the affected rows as plain dicts.
    """

    async def select_rows(
        self,
        table: Table,
        *,
        columns: Sequence[str] | None = None,
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        ...

    async def insert_rows(
        self,
        table: Table,
        rows: Sequence[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        ...

    async def update_rows(
        self,
        table: Table,
        *,
        filters: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        ...

    async def upsert_rows(
        self,
        table: Table,
        rows: Sequence[Mapping[str, Any]],
        *,
        conflict_columns: Sequence[str],
    ) -> list[dict[str, Any]]:
        ...

    async def delete_rows(
        self,
        table: Table,
        *,
        filters: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        ...


class SQLAlchemyTableGateway:
    """
    PostgreSQL implementation of ``TableGateway``.

    Each call runs in its own session and transaction; there is no
    transaction spanning calls.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def select_rows(
        self,
        table: Table,
        *,
        columns: Sequence[str] | None = None,
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        selected = [table.c[name] for name in columns] if columns else list(table.c)
        stmt = (
            select(*selected)
            .where(*_conditions(table, filters))
            .order_by(*_ordering(table, order_by))
        )
        if limit is not None:
            stmt = stmt.limit(max(0, limit))
        return await self._execute(table, stmt, commit=False)

    async def insert_rows(
        self,
        table: Table,
        rows: Sequence[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        if not rows:
            return []
        stmt = insert(table).values([dict(row) for row in rows]).returning(*table.c)
        return await self._execute(table, stmt, commit=True)

    async def update_rows(
        self,
        table: Table,
        *,
        filters: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        if not values:
            return []
        stmt = (
            update(table)
            .where(*_conditions(table, filters))
            .values(dict(values))
            .returning(*table.c)
        )
        return await self._execute(table, stmt, commit=True)

    async def upsert_rows(
        self,
        table: Table,
        rows: Sequence[Mapping[str, Any]],
        *,
        conflict_columns: Sequence[str],
    ) -> list[dict[str, Any]]:
        """
        Insert rows, replacing non-key columns of rows whose conflict key exists.

        All rows must carry the same keys and must be unique on
        ``conflict_columns`` within the call.
        """
        if not rows:
            return []

        payloads = [dict(row) for row in rows]
        stmt = insert(table).values(payloads)
        set_: dict[str, Any] = {
            name: stmt.excluded[name]
            for name in payloads[0]
            if name not in conflict_columns and name != "id"
        }
        if "updated_at" in table.c and "updated_at" not in set_:
            set_["updated_at"] = func.now()

        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c[name] for name in conflict_columns],
            set_=set_,
        ).returning(*table.c)
        return await self._execute(table, stmt, commit=True)

    async def delete_rows(
        self,
        table: Table,
        *,
        filters: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        if not filters:
            raise ValueError("Refusing to delete without filters.")
        stmt = delete(table).where(*_conditions(table, filters)).returning(*table.c)
        return await self._execute(table, stmt, commit=True)

    async def _execute(
        self,
        table: Table,
        stmt: Executable,
        *,
        commit: bool,
    ) -> list[dict[str, Any]]:
        async with self._session_factory() as session:
            try:
                result = await session.execute(stmt)
                rows = [dict(row._mapping) for row in result]
                if commit:
                    await session.commit()
                return rows
            except DBAPIError as exc:
                await session.rollback()
                raise _translate_dbapi_error(table, exc) from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                raise MetricStoreError(f"Store operation on {table.name} failed.") from exc


# ---------------------------------------------------------------------------
# Module-level helpers (no business logic)
# ---------------------------------------------------------------------------


def _conditions(table: Table, filters: Mapping[str, Any] | None) -> list[Any]:
    if not filters:
        return []
    return [table.c[name] == value for name, value in filters.items()]


def _ordering(table: Table, order_by: Sequence[str]) -> list[Any]:
    clauses: list[Any] = []
    for name in order_by:
        if name.startswith("-"):
            clauses.append(table.c[name[1:]].desc())
        else:
            clauses.append(table.c[name].asc())
    return clauses


def _translate_dbapi_error(table: Table, exc: DBAPIError) -> MetricStoreError:
    sqlstate = getattr(exc.orig, "sqlstate", None)
    if sqlstate in _SCHEMA_ABSENCE_SQLSTATES:
        logger.debug(
            "Schema absence reported table=%s sqlstate=%s detail=%s",
            table.name,
            sqlstate,
            exc.orig,
        )
        return SchemaUnavailableError(
            f"Relation or column unavailable on {table.name}.",
            table_name=table.name,
            sqlstate=sqlstate,
        )
    return MetricStoreError(f"Store operation on {table.name} failed: {exc.orig}")
