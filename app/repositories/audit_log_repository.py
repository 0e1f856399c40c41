"""
app/repositories/audit_log_repository.py

Append-only persistence for metric audit entries.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from app.domain.metric_change import AuditEntry
from db.models.data_change import DataChange
from db.repositories.table_gateway import TableGateway


class AuditLogRepository:
    """
    Writes and lists ``data_changes`` rows. Entries are never updated or deleted.
    """

    table = DataChange.__table__

    def __init__(self, gateway: TableGateway) -> None:
        self._gateway = gateway

    async def append(self, entries: Sequence[AuditEntry]) -> int:
        if not entries:
            return 0
        payloads: list[dict[str, Any]] = [
            {
                "table_name": entry.table_name,
                "record_id": entry.record_id,
                "field_name": entry.field_name,
                "old_value": entry.old_value,
                "new_value": entry.new_value,
                "change_type": entry.change_type,
                "changed_by": entry.changed_by,
            }
            for entry in entries
        ]
        inserted = await self._gateway.insert_rows(self.table, payloads)
        return len(inserted)

    async def list_recent(
        self,
        *,
        limit: int = 100,
        record_id: uuid.UUID | None = None,
    ) -> list[AuditEntry]:
        rows = await self._gateway.select_rows(
            self.table,
            filters={"record_id": record_id} if record_id is not None else None,
            order_by=("-timestamp",),
            limit=max(1, limit),
        )
        return [_to_entry(row) for row in rows]


def _to_entry(row: Mapping[str, Any]) -> AuditEntry:
    return AuditEntry(
        id=row.get("id"),
        table_name=row["table_name"],
        record_id=row["record_id"],
        field_name=row["field_name"],
        old_value=row.get("old_value"),
        new_value=row.get("new_value"),
        change_type=row["change_type"],
        changed_by=row.get("changed_by"),
        timestamp=row.get("timestamp"),
    )
