"""Where new audit events are read from."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol
from typing import runtime_checkable

from pydantic import ValidationError

from auditsync.central.store import PostgrestCentralStore
from auditsync.errors import AuditSyncError
from auditsync.export.schemas import AuditEvent

logger = logging.getLogger(__name__)


@runtime_checkable
class EventSource(Protocol):
    """Audit events created at or after *since*, oldest first."""

    async def query(self, since: datetime) -> list[AuditEvent]: ...


class PostgrestEventSource:
    """Read the audit-event table through the central store's PostgREST API.

    The whole range is paged in before anything is shipped, so a server-side
    row cap never leaves events behind the checkpoint.
    """

    def __init__(
        self,
        central: PostgrestCentralStore,
        *,
        table: str,
        page_size: int = 1000,
    ) -> None:
        self._central = central
        self._table = table
        self._page_size = page_size

    async def query(self, since: datetime) -> list[AuditEvent]:
        logger.info("Fetching audit logs since: %s", since.isoformat())
        rows = await self._central.fetch_all(
            self._table,
            {
                "select": "*",
                "created_at": f"gte.{since.isoformat()}",
                "order": "created_at.asc,id.asc",
            },
            page_size=self._page_size,
        )
        try:
            events = [AuditEvent.model_validate(row) for row in rows]
        except ValidationError as exc:
            raise AuditSyncError(f"event source returned malformed rows: {exc}") from exc
        logger.info("Fetched %d new audit log entries", len(events))
        return events
