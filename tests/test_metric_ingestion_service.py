from __future__ import annotations

import asyncio
import json
import unittest

from app.domain.metric_record import MetricRecord
from app.normalizers.key_normalizer import KeyNormalizer
from app.repositories.audit_log_repository import AuditLogRepository
from app.repositories.metric_store import MetricStoreClient
from app.repositories.upload_job_repository import UploadJobRepository
from app.services.change_notifier import ChangeNotifier
from app.services.metric_ingestion_service import (
    CSVHeaderValidationError,
    CSVSchemaMappingError,
    MetricIngestionService,
    MetricRecordValidationError,
)
from db.models.csv_upload import CSVUpload
from db.models.dashboard_metric import DashboardMetric
from db.models.data_change import DataChange
from tests.fakes import InMemoryTableGateway, RecordingSleep

SCENARIO_CSV = (
    "Section,Category,Field,Value\n"
    "Executive Summary,Core Metrics,People Served,4960000\n"
    "Executive Summary,Core Metrics,Meals Delivered,367490721\n"
)


def _build_service(
    gateway: InMemoryTableGateway,
    *,
    batch_size: int = 10,
    max_reported_errors: int = 50,
    sleep: RecordingSleep | None = None,
) -> tuple[MetricIngestionService, MetricStoreClient]:
    normalizer = KeyNormalizer()
    store = MetricStoreClient(gateway, normalizer, ChangeNotifier(AuditLogRepository(gateway)))
    service = MetricIngestionService(
        store=store,
        jobs=UploadJobRepository(gateway),
        normalizer=normalizer,
        batch_size=batch_size,
        batch_delay_seconds=0.1,
        max_reported_errors=max_reported_errors,
        sleep=sleep or RecordingSleep(),
    )
    return service, store


def _twelve_row_csv(bad_row: int) -> str:
    lines = ["section,metric_name,current_value"]
    for index in range(1, 13):
        if index == bad_row:
            lines.append(f"operational,Retention Rate {index},150%")
        else:
            lines.append(f"programs,Metric {index},{index * 100}")
    return "\n".join(lines) + "\n"


class TestMetricIngestionService(unittest.TestCase):
    def setUp(self) -> None:
        self.gateway = InMemoryTableGateway.versioned()
        self.sleep = RecordingSleep()
        self.service, self.store = _build_service(self.gateway, sleep=self.sleep)

    def test_concrete_scenario_ingests_and_reads_back_by_section(self) -> None:
        summary = asyncio.run(self.service.ingest_csv(SCENARIO_CSV, filename="metrics.csv"))
        records = asyncio.run(self.store.get_by_section("executive"))

        self.assertEqual(summary.status, "COMPLETED")
        self.assertEqual(summary.rows_processed, 2)
        self.assertEqual(summary.rows_failed, 0)
        self.assertEqual(
            [(record.section_key, record.metric_key, record.current_value) for record in records],
            [("executive", "people_served", "4960000"), ("executive", "meals_delivered", "367490721")],
        )
        self.assertLess(records[0].display_order, records[1].display_order)

    def test_reingest_with_one_change_audits_only_that_record(self) -> None:
        asyncio.run(self.service.ingest_csv(SCENARIO_CSV, filename="metrics.csv"))
        changed = SCENARIO_CSV.replace("4960000", "5000000")

        summary = asyncio.run(self.service.ingest_csv(changed, filename="metrics.csv"))

        audit = self.gateway.rows(DataChange.__table__)
        updates = [row for row in audit if row["change_type"] == "UPDATE"]
        people = asyncio.run(self.store.get_by_section("executive"))[0]
        self.assertEqual(summary.rows_processed, 2)
        self.assertEqual(people.current_value, "5000000")
        self.assertEqual(len(updates), 1)
        self.assertEqual(updates[0]["record_id"], people.id)
        self.assertEqual(json.loads(updates[0]["new_value"]), {"current_value": "5000000"})
        self.assertEqual(len(audit), 3)

    def test_twelve_rows_with_one_invalid_row(self) -> None:
        summary = asyncio.run(self.service.ingest_csv(_twelve_row_csv(bad_row=7), filename="twelve.csv"))

        stored = self.gateway.rows(DashboardMetric.__table__)
        job = self.gateway.rows(CSVUpload.__table__)[0]
        self.assertEqual(summary.status, "COMPLETED")
        self.assertEqual(summary.total_rows, 12)
        self.assertEqual(summary.rows_processed, 11)
        self.assertEqual(summary.rows_failed, 1)
        self.assertEqual(len(stored), 11)
        self.assertEqual(summary.validation_errors[0].row_number, 8)
        self.assertEqual(job["status"], "COMPLETED")
        self.assertEqual(job["processed_rows"], 11)
        self.assertEqual(job["failed_rows"], 1)
        self.assertEqual(job["total_rows"], 12)
        self.assertEqual(job["error_details"]["total_errors"], 1)
        self.assertEqual(self.sleep.delays, [0.1])

    def test_failed_batch_reports_row_range_and_keeps_earlier_batches(self) -> None:
        gateway = InMemoryTableGateway.versioned(fail_upsert_calls=[2])
        service, _ = _build_service(gateway, batch_size=5)

        summary = asyncio.run(service.ingest_csv(_twelve_row_csv(bad_row=0), filename="twelve.csv"))

        self.assertEqual(summary.status, "COMPLETED")
        self.assertEqual(summary.rows_processed, 7)
        self.assertEqual(summary.rows_failed, 5)
        self.assertEqual(len(gateway.rows(DashboardMetric.__table__)), 7)
        batch_errors = [error for error in summary.validation_errors if "Batch" in error.message]
        self.assertEqual(len(batch_errors), 1)
        self.assertIn("rows 7-11", batch_errors[0].message)

    def test_all_rows_invalid_marks_job_failed(self) -> None:
        text = "section,metric_name,current_value\nexecutive,Donors,\nexecutive,,5\n"

        summary = asyncio.run(self.service.ingest_csv(text, filename="bad.csv"))

        job = self.gateway.rows(CSVUpload.__table__)[0]
        self.assertEqual(summary.status, "FAILED")
        self.assertEqual(summary.rows_processed, 0)
        self.assertEqual(summary.rows_failed, 2)
        self.assertEqual(job["status"], "FAILED")
        self.assertIsNotNone(job["completed_at"])

    def test_reported_errors_are_bounded(self) -> None:
        service, _ = _build_service(self.gateway, max_reported_errors=2)
        rows = "\n".join(f"executive,Metric {index}," for index in range(5))

        summary = asyncio.run(service.ingest_csv("section,field,value\n" + rows, filename="bad.csv"))

        job = self.gateway.rows(CSVUpload.__table__)[0]
        self.assertEqual(summary.rows_failed, 5)
        self.assertEqual(len(summary.validation_errors), 2)
        self.assertEqual(job["error_details"]["total_errors"], 5)
        self.assertEqual(len(job["error_details"]["errors"]), 2)

    def test_missing_header_column_fails_job_and_raises(self) -> None:
        with self.assertRaises(CSVHeaderValidationError) as ctx:
            asyncio.run(self.service.ingest_csv("section,field\nexecutive,Donors\n", filename="bad.csv"))

        job = self.gateway.rows(CSVUpload.__table__)[0]
        self.assertEqual(ctx.exception.job_id, job["id"])
        self.assertEqual(job["status"], "FAILED")
        self.assertEqual(job["error_details"]["missing_columns"], ["current_value"])
        self.assertEqual(self.gateway.rows(DashboardMetric.__table__), [])

    def test_invalid_manual_mapping_raises_schema_mapping_error(self) -> None:
        with self.assertRaises(CSVSchemaMappingError) as ctx:
            asyncio.run(
                self.service.ingest_csv(
                    SCENARIO_CSV,
                    filename="metrics.csv",
                    manual_mapping={"section_key": "Missing Column"},
                )
            )

        self.assertIn("override_source_not_found", {error.code for error in ctx.exception.errors})

    def test_manual_mapping_supplies_required_column_under_unknown_header(self) -> None:
        summary = asyncio.run(
            self.service.ingest_csv(
                "Dept,Field,Value\nExecutive Summary,People Served,4960000\n",
                filename="metrics.csv",
                manual_mapping={"section_key": "Dept"},
            )
        )
        records = asyncio.run(self.store.get_by_section("executive"))

        self.assertEqual(summary.status, "COMPLETED")
        self.assertEqual(summary.rows_processed, 1)
        self.assertEqual(
            [(record.metric_key, record.current_value) for record in records],
            [("people_served", "4960000")],
        )

    def test_non_utf8_upload_is_rejected(self) -> None:
        with self.assertRaises(CSVHeaderValidationError):
            asyncio.run(self.service.ingest_csv(b"\xff\xfe\x00bad", filename="bad.csv"))

    def test_runs_untracked_when_upload_table_is_missing(self) -> None:
        gateway = InMemoryTableGateway([DashboardMetric.__table__, DataChange.__table__])
        service, _ = _build_service(gateway)

        summary = asyncio.run(service.ingest_csv(SCENARIO_CSV, filename="metrics.csv"))

        self.assertIsNone(summary.job_id)
        self.assertEqual(summary.rows_processed, 2)

    def test_ingest_records_canonicalizes_keys(self) -> None:
        records = [
            MetricRecord(
                section_key="Financial Analytics",
                category="Revenue",
                metric_key="total_revenue",
                metric_name="Total Revenue",
                current_value="EGP 1.2B",
                format_type="currency",
            )
        ]

        summary = asyncio.run(self.service.ingest_records(records))

        stored = self.gateway.rows(DashboardMetric.__table__)
        self.assertEqual(summary.rows_processed, 1)
        self.assertEqual((stored[0]["section_key"], stored[0]["metric_key"]), ("financial", "revenue"))

    def test_upsert_row_validates_single_metric(self) -> None:
        result = asyncio.run(
            self.service.upsert_row({"section_key": "Executive Summary", "metric_name": "Donors", "current_value": "10"})
        )

        self.assertEqual(result.written, 1)
        with self.assertRaises(MetricRecordValidationError) as ctx:
            asyncio.run(self.service.upsert_row({"section_key": "executive", "metric_name": "Donors"}))
        self.assertEqual(ctx.exception.errors[0].column, "current_value")


if __name__ == "__main__":
    unittest.main()
