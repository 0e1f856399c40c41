"""
app/repositories/section_repository.py

Dashboard section catalogue access.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from app.domain.metric_record import SectionRecord
from app.repositories.metric_store import MetricStoreClient
from db.models.dashboard_section import DashboardSection
from db.repositories.errors import SchemaUnavailableError
from db.repositories.table_gateway import TableGateway

logger = logging.getLogger(__name__)


class SectionInUseError(ValueError):
    """
    Raised when deleting a section that metrics still reference.
    """

    def __init__(self, *, section_key: str, metric_count: int) -> None:
        super().__init__(
            f"Section {section_key!r} is referenced by {metric_count} metric(s) and cannot be deleted."
        )
        self.section_key = section_key
        self.metric_count = metric_count


class SectionRepository:
    """
    Reads and seeds ``dashboard_sections``.

    Stores without the section table still get a section list, derived from
    the section keys present in the metric set.
    """

    table = DashboardSection.__table__

    def __init__(self, gateway: TableGateway, store: MetricStoreClient) -> None:
        self._gateway = gateway
        self._store = store

    async def list_active(self) -> list[SectionRecord]:
        try:
            rows = await self._gateway.select_rows(
                self.table,
                filters={"is_active": True},
                order_by=("display_order", "section_key"),
            )
        except SchemaUnavailableError:
            logger.warning("Section table unavailable; deriving sections from stored metrics")
            return await self._derive_from_metrics()
        return [_to_section(row) for row in rows]

    async def seed(self, sections: Sequence[SectionRecord]) -> list[SectionRecord]:
        """
        Insert or refresh sections keyed by ``section_key``.
        """

        if not sections:
            return []
        payloads = {
            section.section_key: {
                "section_key": section.section_key,
                "section_name": section.section_name,
                "display_order": section.display_order,
                "is_active": section.is_active,
            }
            for section in sections
        }
        rows = await self._gateway.upsert_rows(
            self.table,
            list(payloads.values()),
            conflict_columns=("section_key",),
        )
        logger.info("Sections seeded count=%s", len(rows))
        return [_to_section(row) for row in rows]

    async def delete(self, section_key: str) -> bool:
        """
        Delete a section that no metric references.

        The reference check and the delete are separate calls, so a metric
        written in between is not detected.
        """

        metrics = await self._store.get_by_section(section_key)
        if metrics:
            raise SectionInUseError(section_key=section_key, metric_count=len(metrics))
        rows = await self._gateway.delete_rows(self.table, filters={"section_key": section_key})
        return bool(rows)

    async def _derive_from_metrics(self) -> list[SectionRecord]:
        seen: list[str] = []
        for record in await self._store.get_all():
            if record.section_key not in seen:
                seen.append(record.section_key)
        return [
            SectionRecord(
                section_key=section_key,
                section_name=_title_from_key(section_key),
                display_order=position,
            )
            for position, section_key in enumerate(seen, start=1)
        ]


def _title_from_key(section_key: str) -> str:
    return section_key.replace("_", " ").replace("-", " ").title()


def _to_section(row: Mapping[str, Any]) -> SectionRecord:
    return SectionRecord(
        id=row.get("id"),
        section_key=row["section_key"],
        section_name=row["section_name"],
        display_order=row.get("display_order") or 0,
        is_active=bool(row.get("is_active", True)),
        created_at=row.get("created_at"),
    )
