"""Persist sync-attempt records to the central store, falling back to disk."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING
from typing import Any

from pydantic import ValidationError

from auditsync.config import RuntimeEnvironment
from auditsync.redaction import redact
from auditsync.redaction import redact_metadata
from auditsync.sync_status.schemas import SyncStatus
from auditsync.sync_status.schemas import SyncStatusInput
from auditsync.sync_status.schemas import SyncStatusRecord
from auditsync.sync_status.schemas import utcnow
from auditsync.timeouts import bounded

if TYPE_CHECKING:
    from auditsync.central.store import CentralStore
    from auditsync.fallback.writer import FallbackWriter

logger = logging.getLogger(__name__)


class SyncStatusRecorder:
    """Append sync-status records; never raises into the caller.

    The write path degrades in three steps: central store, then the fallback
    directory, then a single emergency file.  If all three fail the attempt
    is logged and dropped.
    """

    def __init__(
        self,
        central: CentralStore,
        fallback: FallbackWriter,
        *,
        environment: RuntimeEnvironment | None = None,
        timeout_seconds: float | None = 15.0,
    ) -> None:
        self._central = central
        self._fallback = fallback
        self._environment = environment or RuntimeEnvironment()
        self._timeout_seconds = timeout_seconds

    def build_record(self, entry: SyncStatusInput) -> SyncStatusRecord:
        """Redact and stamp *entry* into the immutable record that gets stored."""
        if entry.status == SyncStatus.FAILURE and not entry.error_message:
            logger.warning("Failure sync status recorded without an error message")
        return SyncStatusRecord(
            timestamp=utcnow(),
            status=entry.status,
            destination=entry.destination,
            duration_ms=entry.duration_ms,
            error_message=redact(entry.error_message),
            records_exported=entry.records_exported,
            environment=entry.environment or self._environment.tag(),
            metadata=redact_metadata(entry.metadata),
        )

    async def record(
        self, entry: SyncStatusInput | Mapping[str, Any]
    ) -> SyncStatusRecord | None:
        """Store one attempt; return the stored record, or None if invalid."""
        try:
            if not isinstance(entry, SyncStatusInput):
                entry = SyncStatusInput.model_validate(entry)
        except ValidationError as exc:
            logger.error("Invalid sync status entry dropped: %s", exc)
            return None

        record = self.build_record(entry)
        logger.info(
            "Logging sync status: %s to %s (%dms)",
            record.status.value,
            record.destination.value,
            record.duration_ms,
        )
        try:
            await bounded(
                self._central.insert(record),
                timeout_seconds=self._timeout_seconds,
                operation="central.insert",
            )
        except Exception as exc:
            logger.error("Central store insert failed, writing fallback log: %s", exc)
            await self._write_fallback(record, exc)
            return record

        logger.info("Sync status logged to central store")
        return record

    async def _write_fallback(self, record: SyncStatusRecord, error: Exception) -> None:
        reason = f"Central store insert failed: {error}"
        buffered = record.model_copy(
            update={
                "metadata": {
                    **record.metadata,
                    "central_error": str(error),
                    "central_error_type": type(error).__name__,
                }
            }
        )
        try:
            await self._fallback.write(buffered, fallback_reason=reason)
            return
        except Exception as exc:
            logger.error("Failed to write fallback sync log: %s", exc)
            fallback_error = exc

        try:
            await self._fallback.emergency_write(
                buffered, fallback_reason=reason, error=str(fallback_error)
            )
        except Exception:
            logger.exception(
                "Emergency sync log write failed; %s record for %s is lost",
                record.status.value,
                record.destination.value,
            )
