"""Read new audit events and hand them to a destination adapter."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from auditsync.export.destinations import ExportDestination
from auditsync.export.schemas import AuditEvent
from auditsync.export.source import EventSource
from auditsync.sync_status.schemas import DestinationType
from auditsync.timeouts import bounded

logger = logging.getLogger(__name__)


class RemoteExporter:
    """Query-then-ship for one destination, each step time-bounded."""

    def __init__(
        self,
        source: EventSource,
        destination: ExportDestination,
        *,
        timeout_seconds: float | None = 60.0,
    ) -> None:
        self._source = source
        self._destination = destination
        self._timeout_seconds = timeout_seconds

    @property
    def destination_type(self) -> DestinationType:
        return self._destination.destination_type

    async def fetch(self, since: datetime) -> list[AuditEvent]:
        """Events with timestamp >= *since*, oldest first.

        The inclusive bound means an event sitting exactly on the previous
        cursor is exported again rather than skipped.
        """
        return await bounded(
            self._source.query(since),
            timeout_seconds=self._timeout_seconds,
            operation="source.query",
        )

    async def ship(self, events: Sequence[AuditEvent]) -> int:
        shipped = await bounded(
            self._destination.ship(events),
            timeout_seconds=self._timeout_seconds,
            operation=f"destination.{self.destination_type.value}",
        )
        logger.info("Shipped %d records to %s", shipped, self.destination_type.value)
        return shipped
