"""
In-memory test doubles for the store surface.
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import DateTime, Table

from db.models.csv_upload import CSVUpload
from db.models.dashboard_metric import DashboardMetric
from db.models.dashboard_section import DashboardSection
from db.models.data_change import DataChange
from db.models.legacy_dashboard_metric import LegacyDashboardMetric
from db.repositories.errors import MetricStoreError, SchemaUnavailableError

VERSIONED_TABLES: tuple[Table, ...] = (
    DashboardMetric.__table__,
    DashboardSection.__table__,
    DataChange.__table__,
    CSVUpload.__table__,
)
LEGACY_TABLES: tuple[Table, ...] = (
    LegacyDashboardMetric.__table__,
    DataChange.__table__,
    CSVUpload.__table__,
)

_EPOCH = datetime(2026, 1, 1, tzinfo=timezone.utc)


class InMemoryTableGateway:
    """
    ``TableGateway`` over plain lists of dicts.

    Only the tables passed in exist; any other table raises
    ``SchemaUnavailableError`` like a store without that relation. Writes can
    be made to fail with ``fail_upsert_calls`` (1-based call numbers).
    """

    def __init__(
        self,
        tables: Iterable[Table] = VERSIONED_TABLES,
        *,
        fail_upsert_calls: Iterable[int] = (),
    ) -> None:
        self._tables: dict[Table, list[dict[str, Any]]] = {table: [] for table in tables}
        self._clock = 0
        self._fail_upsert_calls = set(fail_upsert_calls)
        self.calls: list[tuple[str, str]] = []
        self.upsert_calls = 0

    @classmethod
    def versioned(cls, **kwargs: Any) -> "InMemoryTableGateway":
        return cls(VERSIONED_TABLES, **kwargs)

    @classmethod
    def legacy(cls, **kwargs: Any) -> "InMemoryTableGateway":
        return cls(LEGACY_TABLES, **kwargs)

    def rows(self, table: Table) -> list[dict[str, Any]]:
        return copy.deepcopy(self._tables.get(table, []))

    def seed_rows(self, table: Table, rows: Sequence[Mapping[str, Any]]) -> None:
        storage = self._storage(table)
        for row in rows:
            storage.append(self._complete(table, row))

    # ------------------------------------------------------------------
    # TableGateway
    # ------------------------------------------------------------------

    async def select_rows(
        self,
        table: Table,
        *,
        columns: Sequence[str] | None = None,
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        self.calls.append(("select", table.name))
        rows = [row for row in self._storage(table) if _matches(row, filters)]
        for name in reversed(order_by):
            descending = name.startswith("-")
            column = name[1:] if descending else name
            rows = sorted(rows, key=lambda row: _sort_value(row.get(column)), reverse=descending)
        if limit is not None:
            rows = rows[: max(0, limit)]
        if columns:
            rows = [{name: row.get(name) for name in columns} for row in rows]
        return copy.deepcopy(rows)

    async def insert_rows(
        self,
        table: Table,
        rows: Sequence[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        self.calls.append(("insert", table.name))
        storage = self._storage(table)
        inserted = [self._complete(table, row) for row in rows]
        storage.extend(inserted)
        return copy.deepcopy(inserted)

    async def update_rows(
        self,
        table: Table,
        *,
        filters: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        self.calls.append(("update", table.name))
        updated: list[dict[str, Any]] = []
        for row in self._storage(table):
            if _matches(row, filters):
                row.update(copy.deepcopy(dict(values)))
                self._touch(table, row)
                updated.append(row)
        return copy.deepcopy(updated)

    async def upsert_rows(
        self,
        table: Table,
        rows: Sequence[Mapping[str, Any]],
        *,
        conflict_columns: Sequence[str],
    ) -> list[dict[str, Any]]:
        self.calls.append(("upsert", table.name))
        self.upsert_calls += 1
        storage = self._storage(table)
        if self.upsert_calls in self._fail_upsert_calls:
            raise MetricStoreError(f"Store operation on {table.name} failed: simulated outage")

        written: list[dict[str, Any]] = []
        for row in rows:
            key = tuple(row[name] for name in conflict_columns)
            existing = next(
                (item for item in storage if tuple(item.get(name) for name in conflict_columns) == key),
                None,
            )
            if existing is None:
                existing = self._complete(table, row)
                storage.append(existing)
            else:
                existing.update(
                    {
                        name: copy.deepcopy(value)
                        for name, value in row.items()
                        if name not in conflict_columns and name != "id"
                    }
                )
                self._touch(table, existing)
            written.append(existing)
        return copy.deepcopy(written)

    async def delete_rows(
        self,
        table: Table,
        *,
        filters: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        self.calls.append(("delete", table.name))
        if not filters:
            raise ValueError("Refusing to delete without filters.")
        storage = self._storage(table)
        deleted = [row for row in storage if _matches(row, filters)]
        storage[:] = [row for row in storage if not _matches(row, filters)]
        return copy.deepcopy(deleted)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _storage(self, table: Table) -> list[dict[str, Any]]:
        try:
            return self._tables[table]
        except KeyError:
            same_name = any(existing.name == table.name for existing in self._tables)
            raise SchemaUnavailableError(
                f"Relation or column unavailable on {table.name}.",
                table_name=table.name,
                sqlstate="42703" if same_name else "42P01",
            ) from None

    def _now(self) -> datetime:
        self._clock += 1
        return _EPOCH + timedelta(seconds=self._clock)

    def _complete(self, table: Table, row: Mapping[str, Any]) -> dict[str, Any]:
        now = self._now()
        completed: dict[str, Any] = {}
        for column in table.c:
            if column.name in row:
                completed[column.name] = copy.deepcopy(row[column.name])
            elif column.name == "id":
                completed[column.name] = uuid.uuid4()
            elif isinstance(column.type, DateTime) and column.server_default is not None:
                completed[column.name] = now
            elif column.default is not None and column.default.is_scalar:
                completed[column.name] = column.default.arg
            else:
                completed[column.name] = None
        return completed

    def _touch(self, table: Table, row: dict[str, Any]) -> None:
        if "updated_at" in table.c:
            row["updated_at"] = self._now()


def _matches(row: Mapping[str, Any], filters: Mapping[str, Any] | None) -> bool:
    if not filters:
        return True
    return all(row.get(name) == value for name, value in filters.items())


def _sort_value(value: Any) -> tuple[int, Any]:
    return (0, value) if value is not None else (1, 0)


async def no_sleep(_: float) -> None:
    return None


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
