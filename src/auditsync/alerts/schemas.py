"""Alert payload and suppression bookkeeping."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AwareDatetime
from pydantic import BaseModel
from pydantic import Field

from auditsync.sync_status.schemas import DestinationType
from auditsync.sync_status.schemas import utcnow


class SyncFailureReport(BaseModel):
    """What went wrong in an export run, as handed to the dispatcher."""

    time: datetime = Field(default_factory=utcnow)
    error: str
    context: str
    export_type: DestinationType | None = None
    retry_count: int = Field(default=0, ge=0)
    checkpoint_data: dict[str, Any] | None = None

    @property
    def suppression_key(self) -> str:
        export_type = self.export_type.value if self.export_type else "unknown"
        return f"{self.context}|{export_type}"


class SuppressionEntry(BaseModel):
    """Alerts seen for one ``(context, export_type)`` within the current window."""

    count: int = Field(default=0, ge=0)
    last_alert_at: AwareDatetime


class SuppressionDecision(BaseModel):
    suppressed: bool
    count: int
