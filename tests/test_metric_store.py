from __future__ import annotations

import asyncio
import json
import unittest

from app.domain.metric_record import MetricRecord
from app.normalizers.key_normalizer import KeyNormalizer
from app.reconcilers.metric_shapes import LEGACY_SHAPE, VERSIONED_SHAPE
from app.repositories.audit_log_repository import AuditLogRepository
from app.repositories.metric_store import MetricStoreClient
from app.services.change_notifier import ChangeNotifier
from db.models.csv_upload import CSVUpload
from db.models.dashboard_metric import DashboardMetric
from db.models.data_change import DataChange
from db.models.legacy_dashboard_metric import LegacyDashboardMetric
from db.repositories.errors import MetricStoreError, SchemaUnavailableError
from tests.fakes import InMemoryTableGateway

VALUE_COLUMNS = ("section_key", "category", "metric_key", "metric_name", "display_order", "current_value")


def _record(metric_key: str, value: str, *, display_order: int = 1, **overrides) -> MetricRecord:
    fields = {
        "section_key": "executive",
        "category": "Core Metrics",
        "metric_key": metric_key,
        "metric_name": metric_key.replace("_", " ").title(),
        "current_value": value,
        "display_order": display_order,
    }
    fields.update(overrides)
    return MetricRecord(**fields)


def _build_store(gateway: InMemoryTableGateway) -> MetricStoreClient:
    notifier = ChangeNotifier(AuditLogRepository(gateway), changed_by="tester")
    return MetricStoreClient(gateway, KeyNormalizer(), notifier)


class TestVersionedStore(unittest.TestCase):
    def setUp(self) -> None:
        self.gateway = InMemoryTableGateway.versioned()
        self.store = _build_store(self.gateway)

    def test_upsert_then_read_by_section_in_display_order(self) -> None:
        records = [
            _record("meals_delivered", "367490721", display_order=2),
            _record("people_served", "4960000", display_order=1),
            _record("revenue", "1000", section_key="financial"),
        ]

        result = asyncio.run(self.store.upsert_many(records))
        executive = asyncio.run(self.store.get_by_section("executive"))

        self.assertEqual(result.shape, VERSIONED_SHAPE)
        self.assertEqual(result.written, 3)
        self.assertEqual([record.metric_key for record in executive], ["people_served", "meals_delivered"])
        self.assertTrue(all(record.id is not None for record in executive))

    def test_upsert_is_idempotent(self) -> None:
        record = _record("people_served", "4960000")

        asyncio.run(self.store.upsert_one(record))
        first_state = [{column: row[column] for column in VALUE_COLUMNS} for row in self.gateway.rows(DashboardMetric.__table__)]
        second = asyncio.run(self.store.upsert_one(record))
        second_state = [{column: row[column] for column in VALUE_COLUMNS} for row in self.gateway.rows(DashboardMetric.__table__)]

        self.assertEqual(first_state, second_state)
        self.assertEqual(second.written, 0)
        self.assertEqual(second.unchanged, 1)
        self.assertEqual(len(self.gateway.rows(DataChange.__table__)), 1)

    def test_duplicate_keys_in_one_call_resolve_last_wins(self) -> None:
        result = asyncio.run(
            self.store.upsert_many([_record("people_served", "1"), _record("people_served", "2")])
        )

        stored = self.gateway.rows(DashboardMetric.__table__)
        self.assertEqual(result.written, 1)
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0]["current_value"], "2")

    def test_update_writes_field_level_audit_entry(self) -> None:
        asyncio.run(self.store.upsert_many([_record("people_served", "4960000"), _record("meals_delivered", "367490721", display_order=2)]))
        result = asyncio.run(
            self.store.upsert_many(
                [_record("people_served", "5000000"), _record("meals_delivered", "367490721", display_order=2)]
            )
        )

        audit = self.gateway.rows(DataChange.__table__)
        updates = [row for row in audit if row["change_type"] == "UPDATE"]
        self.assertEqual(result.written, 1)
        self.assertEqual(result.unchanged, 1)
        self.assertEqual(len(audit), 3)
        self.assertEqual(len(updates), 1)
        self.assertEqual(updates[0]["field_name"], "current_value")
        self.assertEqual(json.loads(updates[0]["old_value"]), {"current_value": "4960000"})
        self.assertEqual(json.loads(updates[0]["new_value"]), {"current_value": "5000000"})
        self.assertEqual(updates[0]["changed_by"], "tester")
        self.assertEqual(updates[0]["record_id"], result.records[0].id)

    def test_delete_one_removes_record_and_audits(self) -> None:
        asyncio.run(self.store.upsert_one(_record("people_served", "4960000")))

        changes = asyncio.run(self.store.delete_one("Executive Summary", "Lives Impacted"))
        missing = asyncio.run(self.store.delete_one("executive", "people_served"))

        audit = self.gateway.rows(DataChange.__table__)
        self.assertEqual(len(changes), 1)
        self.assertEqual(changes[0].change_type, "DELETE")
        self.assertEqual(missing, [])
        self.assertEqual(self.gateway.rows(DashboardMetric.__table__), [])
        self.assertEqual([row["change_type"] for row in audit], ["INSERT", "DELETE"])
        self.assertEqual(audit[1]["field_name"], "_record")
        self.assertIsNone(audit[1]["new_value"])

    def test_store_failure_propagates(self) -> None:
        gateway = InMemoryTableGateway.versioned(fail_upsert_calls=[1])
        store = _build_store(gateway)

        with self.assertRaises(MetricStoreError):
            asyncio.run(store.upsert_one(_record("people_served", "1")))
        self.assertEqual(gateway.rows(DataChange.__table__), [])

    def test_audit_failure_does_not_fail_the_write(self) -> None:
        gateway = InMemoryTableGateway([DashboardMetric.__table__])
        store = _build_store(gateway)

        result = asyncio.run(store.upsert_one(_record("people_served", "1")))

        self.assertEqual(result.written, 1)
        self.assertEqual(len(gateway.rows(DashboardMetric.__table__)), 1)


class TestLegacyFallback(unittest.TestCase):
    def setUp(self) -> None:
        self.gateway = InMemoryTableGateway.legacy()
        self.gateway.seed_rows(
            LegacyDashboardMetric.__table__,
            [
                {"section": "Executive Summary", "category": "Core Metrics", "field": "Lives Impacted", "value": "4960000"},
                {"section": "executive", "category": "Core Metrics", "field": "Meals Delivered", "value": "367490721"},
                {"section": "financial", "category": "Revenue", "field": "Total Revenue", "value": "EGP 1.2B"},
            ],
        )
        self.store = _build_store(self.gateway)

    def test_reads_synthesize_canonical_fields(self) -> None:
        records = asyncio.run(self.store.get_all())

        by_key = {record.key: record for record in records}
        self.assertEqual(self.store.active_shape, LEGACY_SHAPE)
        self.assertEqual(by_key[("executive", "people_served")].current_value, "4960000")
        self.assertEqual(by_key[("executive", "people_served")].metric_name, "Lives Impacted")
        self.assertEqual(by_key[("executive", "meals_delivered")].current_value, "367490721")
        self.assertEqual(by_key[("financial", "revenue")].current_value, "EGP 1.2B")

    def test_section_read_filters_after_conversion(self) -> None:
        records = asyncio.run(self.store.get_by_section("Executive Summary"))

        self.assertEqual([record.metric_key for record in records], ["people_served", "meals_delivered"])
        self.assertEqual([record.display_order for record in records], [1, 2])

    def test_shape_choice_is_cached_after_fallback(self) -> None:
        asyncio.run(self.store.get_all())
        calls_before = len(self.gateway.calls)
        asyncio.run(self.store.get_all())

        self.assertEqual(len(self.gateway.calls) - calls_before, 1)

    def test_writes_use_flat_layout(self) -> None:
        result = asyncio.run(
            self.store.upsert_one(_record("donor_count", "1200", metric_name="Donor Count", unit="donors"))
        )

        stored = [row for row in self.gateway.rows(LegacyDashboardMetric.__table__) if row["field"] == "Donor Count"]
        self.assertEqual(result.shape, LEGACY_SHAPE)
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0]["section"], "executive")
        self.assertEqual(stored[0]["value"], "1200")
        self.assertNotIn("unit", stored[0])

    def test_write_updates_row_stored_under_original_headings(self) -> None:
        result = asyncio.run(
            self.store.upsert_one(_record("people_served", "5000000", metric_name="People Served"))
        )

        records = asyncio.run(self.store.get_by_section("executive"))
        legacy_rows = [
            row for row in self.gateway.rows(LegacyDashboardMetric.__table__) if row["section"] != "financial"
        ]
        self.assertEqual(
            [(record.metric_key, record.current_value) for record in records],
            [("people_served", "5000000"), ("meals_delivered", "367490721")],
        )
        self.assertEqual(len(legacy_rows), 2)
        self.assertEqual(
            (legacy_rows[0]["section"], legacy_rows[0]["field"], legacy_rows[0]["value"]),
            ("Executive Summary", "Lives Impacted", "5000000"),
        )
        self.assertEqual(result.changes[0].change_type, "UPDATE")
        self.assertEqual(result.changes[0].changed_fields, ("value",))

    def test_unchanged_write_under_original_headings_is_skipped(self) -> None:
        upsert_calls = self.gateway.upsert_calls

        result = asyncio.run(
            self.store.upsert_one(_record("people_served", "4960000", metric_name="People Served"))
        )

        self.assertEqual(result.unchanged, 1)
        self.assertEqual(result.written, 0)
        self.assertEqual(self.gateway.upsert_calls, upsert_calls)
        self.assertEqual(len(self.gateway.rows(LegacyDashboardMetric.__table__)), 3)

    def test_missing_both_shapes_raises(self) -> None:
        store = _build_store(InMemoryTableGateway([CSVUpload.__table__]))

        with self.assertRaises(SchemaUnavailableError):
            asyncio.run(store.get_all())


if __name__ == "__main__":
    unittest.main()
