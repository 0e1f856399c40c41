"""
app/domain/metric_change.py

Committed metric mutations and the audit entries derived from them.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from app.domain.metric_record import MetricRecord

ChangeType = Literal["INSERT", "UPDATE", "DELETE"]

CHANGE_INSERT = "INSERT"
CHANGE_UPDATE = "UPDATE"
CHANGE_DELETE = "DELETE"

WHOLE_RECORD_FIELD = "_record"


@dataclass(frozen=True)
class MetricChange:
    """
    One committed write on a metric table.

    ``old_values``/``new_values`` hold the stored columns that differ. For
    inserts ``old_values`` is empty; for deletes ``new_values`` is empty.
    """

    change_type: str
    table_name: str
    record_id: uuid.UUID | None
    section_key: str
    metric_key: str
    record: MetricRecord | None = None
    changed_fields: tuple[str, ...] = ()
    old_values: dict[str, Any] = field(default_factory=dict)
    new_values: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuditEntry:
    table_name: str
    record_id: uuid.UUID
    field_name: str
    change_type: str
    old_value: str | None = None
    new_value: str | None = None
    changed_by: str | None = None
    timestamp: datetime | None = None
    id: uuid.UUID | None = None


@dataclass(frozen=True)
class MetricChangeEvent:
    """
    Published once per committed write.

    Carries the new record state; deletes carry only the identifier.
    """

    change_type: str
    section_key: str
    metric_key: str
    record_id: uuid.UUID | None
    record: MetricRecord | None
    changed_fields: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "change_type": self.change_type,
            "section_key": self.section_key,
            "metric_key": self.metric_key,
            "record_id": str(self.record_id) if self.record_id else None,
            "record": self.record.to_dict() if self.record else None,
            "changed_fields": list(self.changed_fields),
        }
