from __future__ import annotations

import asyncio
import unittest
import uuid

from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from app.domain.metric_change import MetricChangeEvent
from app.domain.metric_record import MetricRecord
from app.main import create_app
from app.normalizers.key_normalizer import KeyNormalizer
from app.repositories.audit_log_repository import AuditLogRepository
from app.repositories.metric_store import MetricStoreClient
from app.repositories.section_repository import SectionRepository
from app.repositories.upload_job_repository import UploadJobRepository
from app.seed.inventory import INVENTORY_SECTIONS
from app.services.change_notifier import ChangeNotifier
from app.services.dashboard_projector import DashboardProjector
from app.services.metric_export_service import MetricExportService, get_metric_export_service
from app.services.metric_ingestion_service import MetricIngestionService, get_metric_ingestion_service
from app.services.runtime import (
    get_audit_log_repository,
    get_change_notifier,
    get_dashboard_projector,
    get_key_normalizer,
    get_metric_store_client,
    get_section_repository,
    get_upload_job_repository,
)
from db.models.csv_upload import CSVUpload
from db.repositories.errors import MetricStoreError
from tests.fakes import InMemoryTableGateway, no_sleep

METRICS_CSV = (
    "Section,Category,Field,Value\n"
    "Executive Summary,Core Metrics,People Served,4960000\n"
    "Financial Analytics,Financial Health,Program Ratio,83%\n"
)


class _UploadTableDownGateway(InMemoryTableGateway):
    async def insert_rows(self, table, rows):
        if table is CSVUpload.__table__:
            raise MetricStoreError("Store operation on csv_uploads failed: connection reset")
        return await super().insert_rows(table, rows)


class _BackloggedNotifier(ChangeNotifier):
    """
    Hands every new subscriber a backlog larger than its buffer.
    """

    def __init__(self, backlog: list[MetricChangeEvent]) -> None:
        super().__init__(default_buffer=1)
        self._backlog = backlog

    def subscribe(self, max_buffer=None):
        subscription = super().subscribe(max_buffer)
        for event in self._backlog:
            subscription.offer(event)
        return subscription


def _update_event(metric_key: str) -> MetricChangeEvent:
    return MetricChangeEvent(
        change_type="UPDATE",
        section_key="executive",
        metric_key=metric_key,
        record_id=uuid.uuid4(),
        record=None,
        changed_fields=("current_value",),
    )


class TestApiRouters(unittest.TestCase):
    def setUp(self) -> None:
        self.gateway = InMemoryTableGateway.versioned()
        normalizer = KeyNormalizer()
        audit_log = AuditLogRepository(self.gateway)
        self.notifier = ChangeNotifier(audit_log)
        self.store = MetricStoreClient(self.gateway, normalizer, self.notifier)
        self.sections = SectionRepository(self.gateway, self.store)
        jobs = UploadJobRepository(self.gateway)
        ingestion = MetricIngestionService(
            store=self.store,
            jobs=jobs,
            normalizer=normalizer,
            batch_size=10,
            sleep=no_sleep,
        )

        self.app = app = create_app()
        app.dependency_overrides.update(
            {
                get_key_normalizer: lambda: normalizer,
                get_audit_log_repository: lambda: audit_log,
                get_change_notifier: lambda: self.notifier,
                get_metric_store_client: lambda: self.store,
                get_section_repository: lambda: self.sections,
                get_upload_job_repository: lambda: jobs,
                get_dashboard_projector: lambda: DashboardProjector(normalizer),
                get_metric_ingestion_service: lambda: ingestion,
                get_metric_export_service: lambda: MetricExportService(),
            }
        )
        self.client = TestClient(app)

    def _upload(self, content: str, **data: str):
        return self.client.post(
            "/metrics/upload-csv",
            files={"file": ("metrics.csv", content.encode("utf-8"), "text/csv")},
            data=data,
        )

    def test_upload_csv_returns_summary_and_tracks_job(self) -> None:
        response = self._upload(METRICS_CSV, uploaded_by="ops")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "COMPLETED")
        self.assertEqual(body["rows_processed"], 2)
        self.assertEqual(body["rows_failed"], 0)

        job = self.client.get(f"/uploads/{body['job_id']}")
        self.assertEqual(job.status_code, 200)
        self.assertEqual(job.json()["uploaded_by"], "ops")
        self.assertEqual(self.client.get("/uploads").json()["count"], 1)

    def test_upload_csv_rejects_missing_required_headers(self) -> None:
        response = self._upload("Section,Category\nExecutive Summary,Core Metrics\n")

        self.assertEqual(response.status_code, 400)
        self.assertIn("message", response.json()["detail"])

    def test_upload_rejects_non_csv_files(self) -> None:
        response = self.client.post(
            "/metrics/upload-csv",
            files={"file": ("metrics.json", b"{}", "application/json")},
        )

        self.assertEqual(response.status_code, 400)

    def test_upload_rejects_malformed_column_mapping(self) -> None:
        response = self._upload(METRICS_CSV, column_mapping="not json")

        self.assertEqual(response.status_code, 400)

    def test_metric_reads_and_section_filter(self) -> None:
        self._upload(METRICS_CSV)

        listed = self.client.get("/metrics").json()
        financial = self.client.get("/metrics/financial").json()

        self.assertEqual(listed["count"], 2)
        self.assertEqual(listed["shape"], "versioned")
        self.assertEqual([item["metric_key"] for item in financial["items"]], ["program_ratio"])

    def test_put_upserts_and_reports_unchanged_replay(self) -> None:
        payload = {
            "section_key": "Executive Summary",
            "metric_name": "Meals Delivered",
            "current_value": "367490721",
            "benchmarks": ["WFP regional median"],
        }

        first = self.client.put("/metrics", json=payload)
        second = self.client.put("/metrics", json=payload)

        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json()["written"], 1)
        self.assertEqual(first.json()["records"][0]["section_key"], "executive")
        self.assertEqual(first.json()["records"][0]["benchmarks"], ["WFP regional median"])
        self.assertEqual(second.json()["written"], 0)
        self.assertEqual(second.json()["unchanged"], 1)

    def test_put_rejects_out_of_range_percentage(self) -> None:
        response = self.client.put(
            "/metrics",
            json={
                "section_key": "financial",
                "metric_key": "program_ratio",
                "current_value": "150%",
                "format_type": "percentage",
            },
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["detail"]["errors"][0]["column"], "current_value")

    def test_put_requires_key_or_name(self) -> None:
        response = self.client.put("/metrics", json={"section_key": "executive", "current_value": "1"})

        self.assertEqual(response.status_code, 422)

    def test_delete_metric_and_missing_metric(self) -> None:
        self._upload(METRICS_CSV)

        deleted = self.client.delete("/metrics/Executive Summary/people_served")
        missing = self.client.delete("/metrics/executive/people_served")

        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(deleted.json(), {"section_key": "executive", "metric_key": "people_served", "deleted": 1})
        self.assertEqual(missing.status_code, 404)

    def test_export_streams_csv(self) -> None:
        self._upload(METRICS_CSV)

        response = self.client.get("/metrics/export")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("text/csv"))
        self.assertIn("people_served", response.text)
        self.assertIn("program_ratio", response.text)

    def test_dashboard_projection(self) -> None:
        asyncio.run(self.sections.seed(INVENTORY_SECTIONS))
        self._upload(METRICS_CSV)

        body = self.client.get("/dashboard").json()

        self.assertEqual(list(body["sections"])[:2], ["executive", "financial"])
        core = body["sections"]["executive"]["categories"]["Core Metrics"]
        self.assertEqual(core[0]["metric_key"], "people_served")
        self.assertEqual(body["executive_metrics"], {"peopleServed": 4960000.0})

    def test_sections_list_and_delete_conflict(self) -> None:
        asyncio.run(self.sections.seed(INVENTORY_SECTIONS))
        asyncio.run(
            self.store.upsert_one(
                MetricRecord(
                    section_key="scenarios",
                    category="Economic Factors",
                    metric_key="inflation_rate_factor",
                    metric_name="Food Inflation Rate",
                    current_value="7",
                )
            )
        )

        listed = self.client.get("/sections").json()
        conflict = self.client.delete("/sections/scenarios")
        removed = self.client.delete("/sections/programs")
        missing = self.client.delete("/sections/programs")

        self.assertEqual(listed["count"], 7)
        self.assertEqual(conflict.status_code, 409)
        self.assertEqual(conflict.json()["detail"]["metric_count"], 1)
        self.assertEqual(removed.status_code, 204)
        self.assertEqual(missing.status_code, 404)

    def test_change_history_lists_audit_entries(self) -> None:
        self._upload(METRICS_CSV)
        self.client.put(
            "/metrics",
            json={"section_key": "executive", "metric_key": "people_served", "current_value": "5000000"},
        )

        body = self.client.get("/changes", params={"limit": 10}).json()

        self.assertEqual(body["count"], 3)
        self.assertEqual(body["items"][0]["change_type"], "UPDATE")
        self.assertIn("current_value", body["items"][0]["field_name"])

    def test_history_limit_and_unknown_upload(self) -> None:
        self.assertEqual(self.client.get("/changes", params={"limit": 0}).status_code, 422)
        self.assertEqual(self.client.get(f"/uploads/{uuid.uuid4()}").status_code, 404)

    def test_health_reports_active_shape(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"status": "ok", "metric_shape": None})
        self.client.get("/metrics")
        self.assertEqual(self.client.get("/health").json()["metric_shape"], "versioned")

    def test_upload_reports_store_outage_as_unavailable(self) -> None:
        gateway = _UploadTableDownGateway.versioned()
        normalizer = KeyNormalizer()
        failing = MetricIngestionService(
            store=MetricStoreClient(gateway, normalizer),
            jobs=UploadJobRepository(gateway),
            normalizer=normalizer,
            sleep=no_sleep,
        )
        self.app.dependency_overrides[get_metric_ingestion_service] = lambda: failing

        response = self._upload(METRICS_CSV)

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["detail"], "Metric store is unavailable.")
        self.assertEqual(gateway.rows(CSVUpload.__table__), [])

    def test_change_stream_closes_when_notifier_stops(self) -> None:
        self.notifier.close()

        with self.client.websocket_connect("/metrics/stream") as websocket:
            with self.assertRaises(WebSocketDisconnect):
                websocket.receive_json()

    def test_change_stream_sends_resync_after_overflow(self) -> None:
        self.notifier = _BackloggedNotifier([_update_event("people_served"), _update_event("meals_delivered")])

        with self.client.websocket_connect("/metrics/stream") as websocket:
            first = websocket.receive_json()
            second = websocket.receive_json()
            with self.assertRaises(WebSocketDisconnect):
                websocket.receive_json()

        self.assertEqual(first["type"], "change")
        self.assertEqual(first["event"]["metric_key"], "people_served")
        self.assertEqual(first["event"]["changed_fields"], ["current_value"])
        self.assertEqual(second, {"type": "resync"})
        self.assertEqual(self.notifier.subscriber_count, 0)


if __name__ == "__main__":
    unittest.main()
