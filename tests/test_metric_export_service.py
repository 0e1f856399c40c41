from __future__ import annotations

import asyncio
import unittest

from app.domain.metric_record import MetricRecord
from app.normalizers.key_normalizer import KeyNormalizer
from app.repositories.metric_store import MetricStoreClient
from app.repositories.upload_job_repository import UploadJobRepository
from app.services.metric_export_service import EXPORT_FIELDS, MetricExportService
from app.services.metric_ingestion_service import MetricIngestionService
from tests.fakes import InMemoryTableGateway, no_sleep

RECORDS = [
    MetricRecord(
        section_key="executive",
        category="Core Metrics",
        metric_key="people_served",
        metric_name="People Served",
        display_order=1,
        current_value="4,960,000",
        change_value="+12%",
        change_direction="up",
    ),
    MetricRecord(
        section_key="financial",
        category="Revenue",
        metric_key="revenue",
        metric_name="Revenue, net",
        display_order=1,
        current_value="EGP 1.2B",
        format_type="currency",
        description='Line one\nline "two"',
        benchmarks=("Sector avg 1.0B", "Top quartile 1.5B"),
    ),
    MetricRecord(
        section_key="operational",
        category="Efficiency",
        metric_key="program_efficiency",
        metric_name="Program Efficiency",
        display_order=2,
        current_value="87.5",
        format_type="percentage",
    ),
]


class TestMetricExportService(unittest.TestCase):
    def setUp(self) -> None:
        self.exporter = MetricExportService()

    def test_header_row_uses_versioned_columns(self) -> None:
        text = self.exporter.export_csv([])

        self.assertEqual(text, ",".join(EXPORT_FIELDS) + "\r\n")

    def test_quotes_delimiters_and_flattens_line_breaks(self) -> None:
        text = self.exporter.export_csv(RECORDS)
        lines = text.splitlines()

        self.assertEqual(len(lines), 4)
        self.assertIn('"Revenue, net"', lines[2])
        self.assertIn('"Line one line ""two"""', lines[2])
        self.assertIn("Sector avg 1.0B; Top quartile 1.5B", lines[2])

    def test_reingesting_export_reproduces_values(self) -> None:
        gateway = InMemoryTableGateway.versioned()
        normalizer = KeyNormalizer()
        store = MetricStoreClient(gateway, normalizer)
        service = MetricIngestionService(
            store=store,
            jobs=UploadJobRepository(gateway),
            normalizer=normalizer,
            sleep=no_sleep,
        )

        summary = asyncio.run(service.ingest_csv(self.exporter.export_csv(RECORDS), filename="export.csv"))
        stored = asyncio.run(store.get_all())

        self.assertEqual(summary.rows_failed, 0)
        self.assertEqual(
            {record.key: record.current_value for record in stored},
            {record.key: record.current_value for record in RECORDS},
        )
        revenue = next(record for record in stored if record.metric_key == "revenue")
        self.assertEqual(revenue.benchmarks, RECORDS[1].benchmarks)
        self.assertEqual(revenue.format_type, "currency")


if __name__ == "__main__":
    unittest.main()
