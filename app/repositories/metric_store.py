"""
app/repositories/metric_store.py

Metric Store Client: idempotent upserts, deletes and reads of metric records
over whichever metric table generation the store exposes.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from app.domain.metric_change import CHANGE_DELETE, CHANGE_INSERT, CHANGE_UPDATE, MetricChange
from app.domain.metric_record import MetricRecord
from app.normalizers.key_normalizer import KeyNormalizer
from app.reconcilers.metric_shapes import (
    LegacyMetricShape,
    MetricShapeStrategy,
    ShapeSelector,
    VersionedMetricShape,
    plan_diff,
)
from db.repositories.table_gateway import TableGateway

logger = logging.getLogger(__name__)


class ChangePublisher(Protocol):
    async def publish(self, changes: Sequence[MetricChange]) -> None:
        ...


@dataclass(frozen=True)
class UpsertResult:
    """
    Outcome of one upsert call.

    ``records`` are the rows as stored (read back from the write) for every
    record that was inserted or updated; unchanged records are only counted.
    """

    shape: str
    records: list[MetricRecord] = field(default_factory=list)
    changes: list[MetricChange] = field(default_factory=list)
    unchanged: int = 0

    @property
    def written(self) -> int:
        return len(self.records)


class MetricStoreClient:
    """
    Reads and writes metric records through a ``TableGateway``.

    Writes are keyed by ``(section_key, metric_key)`` as reads report it;
    duplicate keys in one call resolve last-wins. Rows whose stored content
    already matches are not written, audited or published.
    """

    def __init__(
        self,
        gateway: TableGateway,
        normalizer: KeyNormalizer,
        notifier: ChangePublisher | None = None,
        *,
        selector: ShapeSelector | None = None,
    ) -> None:
        self._gateway = gateway
        self._normalizer = normalizer
        self._notifier = notifier
        self._selector = selector or ShapeSelector(
            VersionedMetricShape(),
            LegacyMetricShape(normalizer),
        )

    @property
    def active_shape(self) -> str | None:
        active = self._selector.active
        return active.name if active is not None else None

    async def probe(self) -> str:
        """
        Resolve and cache the active shape without touching any data.
        """

        await self._selector.run(lambda shape: self._gateway.select_rows(shape.table, limit=0))
        return self.active_shape or ""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_one(self, record: MetricRecord) -> UpsertResult:
        return await self.upsert_many([record])

    async def upsert_many(self, records: Sequence[MetricRecord]) -> UpsertResult:
        if not records:
            return UpsertResult(shape=self.active_shape or "")

        result = await self._selector.run(lambda shape: self._upsert_with(shape, records))
        logger.info(
            "Metric upsert shape=%s written=%s unchanged=%s",
            result.shape,
            result.written,
            result.unchanged,
        )
        await self._publish(result.changes)
        return result

    async def delete_one(
        self,
        section_key: str,
        metric_key: str,
        *,
        category: str | None = None,
    ) -> list[MetricChange]:
        """
        Delete the record(s) stored under the key. A missing target is a no-op.
        """

        normalized_section = self._normalizer.to_section_key(section_key)
        normalized_metric = self._normalizer.resolve_metric_alias(metric_key)
        changes = await self._selector.run(
            lambda shape: self._delete_with(shape, normalized_section, normalized_metric, category)
        )
        if not changes:
            logger.info(
                "Metric delete found no target section_key=%s metric_key=%s",
                normalized_section,
                normalized_metric,
            )
        await self._publish(changes)
        return changes

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_all(self) -> list[MetricRecord]:
        return await self._selector.run(self._read_all)

    async def get_by_section(self, section_key: str) -> list[MetricRecord]:
        normalized_section = self._normalizer.to_section_key(section_key)
        return await self._selector.run(
            lambda shape: self._read_section(shape, normalized_section)
        )

    # ------------------------------------------------------------------
    # Shape-bound internals
    # ------------------------------------------------------------------

    async def _upsert_with(
        self,
        shape: MetricShapeStrategy,
        records: Sequence[MetricRecord],
    ) -> UpsertResult:
        # Plans and stored rows are matched on the record key as reads see it,
        # so a legacy row filed under "Executive Summary" is the same record
        # as a write to "executive".
        plans: dict[tuple[str, str], dict[str, Any]] = {}
        sections: set[str] = set()
        for record in records:
            plan = shape.write_plan(record)
            plans[shape.to_record(plan).key] = plan
            sections.add(record.section_key)

        prefetches = [shape.prefetch_filters(section_key) for section_key in sorted(sections)]
        if any(filters is None for filters in prefetches):
            prefetches = [None]

        existing: dict[tuple[str, str], dict[str, Any]] = {}
        for filters in prefetches:
            rows = await self._gateway.select_rows(shape.table, filters=filters, order_by=shape.order_by)
            for row in rows:
                existing.setdefault(shape.to_record(row).key, row)

        pending: list[tuple[tuple[Any, ...], dict[str, Any], dict[str, Any] | None]] = []
        unchanged = 0
        for record_key, plan in plans.items():
            previous = existing.get(record_key)
            if previous is not None:
                plan = shape.bind_to_stored(plan, previous)
                if not plan_diff(plan, previous):
                    unchanged += 1
                    continue
            pending.append((shape.conflict_key(plan), plan, previous))

        if not pending:
            return UpsertResult(shape=shape.name, unchanged=unchanged)

        stored_rows = await self._gateway.upsert_rows(
            shape.table,
            [plan for _, plan, _ in pending],
            conflict_columns=shape.conflict_columns,
        )
        stored_by_key = {shape.conflict_key(row): row for row in stored_rows}

        stored_records: list[MetricRecord] = []
        changes: list[MetricChange] = []
        for key, plan, previous in pending:
            stored = stored_by_key.get(key)
            if stored is None:
                logger.warning("Upserted row missing from write result shape=%s key=%s", shape.name, key)
                continue
            record = shape.to_record(stored)
            stored_records.append(record)
            changes.append(_build_write_change(shape, record, stored, plan, previous))

        return UpsertResult(
            shape=shape.name,
            records=stored_records,
            changes=changes,
            unchanged=unchanged,
        )

    async def _delete_with(
        self,
        shape: MetricShapeStrategy,
        section_key: str,
        metric_key: str,
        category: str | None,
    ) -> list[MetricChange]:
        changes: list[MetricChange] = []
        for row, record in await self._section_rows(shape, section_key):
            if record.metric_key != metric_key:
                continue
            if category is not None and record.category != category:
                continue
            deleted_rows = await self._gateway.delete_rows(shape.table, filters={"id": row["id"]})
            for deleted in deleted_rows:
                changes.append(
                    MetricChange(
                        change_type=CHANGE_DELETE,
                        table_name=shape.table.name,
                        record_id=deleted.get("id"),
                        section_key=record.section_key,
                        metric_key=record.metric_key,
                        record=record,
                        old_values=_jsonable(shape.write_plan(record)),
                    )
                )
        return changes

    async def _read_all(self, shape: MetricShapeStrategy) -> list[MetricRecord]:
        rows = await self._gateway.select_rows(shape.table, order_by=shape.order_by)
        return shape.sort_records([shape.to_record(row) for row in rows])

    async def _read_section(self, shape: MetricShapeStrategy, section_key: str) -> list[MetricRecord]:
        return shape.sort_records([record for _, record in await self._section_rows(shape, section_key)])

    async def _section_rows(
        self,
        shape: MetricShapeStrategy,
        section_key: str,
    ) -> list[tuple[dict[str, Any], MetricRecord]]:
        filters = shape.section_filters(section_key)
        rows = await self._gateway.select_rows(shape.table, filters=filters, order_by=shape.order_by)
        pairs = [(row, shape.to_record(row)) for row in rows]
        if filters is None:
            pairs = [(row, record) for row, record in pairs if record.section_key == section_key]
        return pairs

    async def _publish(self, changes: Sequence[MetricChange]) -> None:
        if changes and self._notifier is not None:
            await self._notifier.publish(changes)


# ---------------------------------------------------------------------------
# Module-level helpers (no business logic)
# ---------------------------------------------------------------------------


def _build_write_change(
    shape: MetricShapeStrategy,
    record: MetricRecord,
    stored: Mapping[str, Any],
    plan: Mapping[str, Any],
    previous: Mapping[str, Any] | None,
) -> MetricChange:
    if previous is None:
        return MetricChange(
            change_type=CHANGE_INSERT,
            table_name=shape.table.name,
            record_id=stored.get("id"),
            section_key=record.section_key,
            metric_key=record.metric_key,
            record=record,
            new_values=_jsonable(plan),
        )

    changed = plan_diff(plan, previous)
    return MetricChange(
        change_type=CHANGE_UPDATE,
        table_name=shape.table.name,
        record_id=stored.get("id"),
        section_key=record.section_key,
        metric_key=record.metric_key,
        record=record,
        changed_fields=changed,
        old_values=_jsonable({column: previous.get(column) for column in changed}),
        new_values=_jsonable({column: plan[column] for column in changed}),
    )


def _jsonable(values: Mapping[str, Any]) -> dict[str, Any]:
    return {
        column: value if value is None or isinstance(value, (str, int, float, bool, list)) else str(value)
        for column, value in values.items()
    }
