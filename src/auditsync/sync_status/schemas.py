"""Sync-status enums and records."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone
from enum import Enum
from typing import Any

from pydantic import AwareDatetime
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncStatus(str, Enum):
    """Outcome of one export attempt."""

    SUCCESS = "success"
    FAILURE = "failure"


class Destination(str, Enum):
    """Destination names accepted by the central ``audit_sync_status`` table."""

    S3 = "S3"
    BIGQUERY = "BigQuery"
    POSTGRES = "Postgres"
    AZURE = "Azure"


class DestinationType(str, Enum):
    """Export targets this package can ship audit events to."""

    S3 = "s3"
    BIGQUERY = "bigquery"

    @property
    def destination(self) -> Destination:
        return _DESTINATION_BY_TYPE[self]


_DESTINATION_BY_TYPE = {
    DestinationType.S3: Destination.S3,
    DestinationType.BIGQUERY: Destination.BIGQUERY,
}


class SyncStatusInput(BaseModel):
    """What a caller hands to the recorder; validated on construction."""

    status: SyncStatus
    destination: Destination
    duration_ms: int = Field(ge=0)
    error_message: str | None = None
    records_exported: int | None = Field(default=None, ge=0)
    environment: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SyncStatusRecord(BaseModel):
    """An immutable row of the central ``audit_sync_status`` table."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    timestamp: AwareDatetime = Field(
        default_factory=utcnow,
        description="When the attempt was recorded; part of the natural key.",
    )
    status: SyncStatus
    destination: Destination
    duration_ms: int = Field(ge=0)
    error_message: str | None = None
    records_exported: int | None = Field(default=None, ge=0)
    environment: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def natural_key(self) -> tuple[datetime, Destination, SyncStatus]:
        return (self.timestamp, self.destination, self.status)

    def to_row(self) -> dict[str, Any]:
        """Column mapping for the central store."""
        return self.model_dump(mode="json")


class FallbackSyncLog(SyncStatusRecord):
    """A sync-status record buffered on local disk because the central write failed."""

    fallback_reason: str = "central store insert failed"
    emergency_write: bool = False
    original_error: str | None = None

    @classmethod
    def from_record(
        cls,
        record: SyncStatusRecord,
        *,
        fallback_reason: str,
        emergency_write: bool = False,
        original_error: str | None = None,
    ) -> FallbackSyncLog:
        return cls(
            **record.model_dump(),
            fallback_reason=fallback_reason,
            emergency_write=emergency_write,
            original_error=original_error,
        )

    def to_record(self) -> SyncStatusRecord:
        return SyncStatusRecord(
            **self.model_dump(
                exclude={"fallback_reason", "emergency_write", "original_error"}
            )
        )
