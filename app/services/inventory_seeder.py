"""
app/services/inventory_seeder.py

Seeds the dashboard section catalogue and the hard-coded metric inventory.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from functools import lru_cache

from app.domain.metric_ingestion import IngestionSummary
from app.domain.metric_record import MetricRecord, SectionRecord
from app.repositories.section_repository import SectionRepository
from app.seed.inventory import INVENTORY_METRICS, INVENTORY_SECTIONS
from app.services.metric_ingestion_service import MetricIngestionService, get_metric_ingestion_service
from app.services.runtime import get_section_repository
from db.repositories.errors import SchemaUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeedResult:
    sections_seeded: int
    ingestion: IngestionSummary


class InventorySeeder:
    def __init__(
        self,
        *,
        sections: SectionRepository,
        ingestion: MetricIngestionService,
    ) -> None:
        self._sections = sections
        self._ingestion = ingestion

    async def seed(
        self,
        *,
        sections: Sequence[SectionRecord] = INVENTORY_SECTIONS,
        metrics: Sequence[MetricRecord] = INVENTORY_METRICS,
        uploaded_by: str | None = None,
    ) -> SeedResult:
        """
        Upsert sections, then ingest metrics as one upload job.

        Replaying the seed only writes metrics whose stored values differ.
        """

        try:
            seeded = len(await self._sections.seed(sections))
        except SchemaUnavailableError:
            logger.warning("Section table unavailable; seeding metrics only")
            seeded = 0

        summary = await self._ingestion.ingest_records(
            metrics,
            filename="inventory",
            uploaded_by=uploaded_by,
        )
        logger.info(
            "Inventory seeded sections=%s processed=%s failed=%s status=%s",
            seeded,
            summary.rows_processed,
            summary.rows_failed,
            summary.status,
        )
        return SeedResult(sections_seeded=seeded, ingestion=summary)


@lru_cache(maxsize=1)
def get_inventory_seeder() -> InventorySeeder:
    return InventorySeeder(
        sections=get_section_repository(),
        ingestion=get_metric_ingestion_service(),
    )
