"""
app/schemas/history.py

Response schemas for sections, the audit trail and live change events.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID | None = None
    section_key: str
    section_name: str
    display_order: int
    is_active: bool = True
    created_at: datetime | None = None


class SectionListResponse(BaseModel):
    items: list[SectionResponse] = Field(default_factory=list)
    count: int = Field(..., ge=0)


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID | None = None
    table_name: str
    record_id: uuid.UUID
    field_name: str
    change_type: str
    old_value: str | None = None
    new_value: str | None = None
    changed_by: str | None = None
    timestamp: datetime | None = None


class AuditEntryListResponse(BaseModel):
    items: list[AuditEntryResponse] = Field(default_factory=list)
    count: int = Field(..., ge=0)
