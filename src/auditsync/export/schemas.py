"""Audit events read from the source table and export run summaries."""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices
from pydantic import AwareDatetime
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from auditsync.checkpoint.schemas import ExportCheckpoint
from auditsync.sync_status.schemas import DestinationType
from auditsync.sync_status.schemas import SyncStatus


class AuditEvent(BaseModel):
    """One moderation audit row.  Read-only to this package."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    subject_id: str = Field(validation_alias=AliasChoices("subject_id", "pattern_id"))
    action: str
    actor_id: str = Field(validation_alias=AliasChoices("actor_id", "moderator_id"))
    reason: str | None = None
    note: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: AwareDatetime
    updated_at: AwareDatetime | None = None


# Warehouse column types for AuditEvent rows.
AUDIT_EVENT_SCHEMA: list[dict[str, str]] = [
    {"name": "id", "type": "STRING"},
    {"name": "subject_id", "type": "STRING"},
    {"name": "action", "type": "STRING"},
    {"name": "actor_id", "type": "STRING"},
    {"name": "reason", "type": "STRING"},
    {"name": "note", "type": "STRING"},
    {"name": "ip_address", "type": "STRING"},
    {"name": "user_agent", "type": "STRING"},
    {"name": "created_at", "type": "TIMESTAMP"},
    {"name": "updated_at", "type": "TIMESTAMP"},
]


class ExportRunSummary(BaseModel):
    """Outcome of one :meth:`ExportOrchestrator.run_export` call."""

    destination_type: DestinationType
    status: SyncStatus
    started_at: datetime
    since: datetime | None = None
    records_exported: int = 0
    duration_ms: int = 0
    checkpoint: ExportCheckpoint | None = None
