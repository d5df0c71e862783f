"""Central system-of-record client.

The central store holds the ``audit_sync_status`` history and the
``sync_errors`` incident log.  :class:`PostgrestCentralStore` talks to it over
the PostgREST HTTP dialect; tests substitute an in-memory implementation of
the :class:`CentralStore` protocol.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from functools import partial
from typing import Any
from typing import Protocol
from typing import runtime_checkable
from urllib.parse import urlencode

from pydantic import BaseModel
from pydantic import Field

from auditsync.config import CentralStoreConfig
from auditsync.errors import ConfigurationError
from auditsync.http import send_json
from auditsync.sync_status.schemas import Destination
from auditsync.sync_status.schemas import SyncStatus
from auditsync.sync_status.schemas import SyncStatusRecord
from auditsync.sync_status.schemas import utcnow

logger = logging.getLogger(__name__)


class IncidentRecord(BaseModel):
    """One row of the central ``sync_errors`` table."""

    error_type: str = "audit_export_failure"
    error_message: str
    context: str
    export_type: str | None = None
    retry_count: int = 0
    environment: str
    created_at: datetime = Field(default_factory=utcnow)
    resolved_at: datetime | None = None
    status: str = "open"


class SyncStatistics(BaseModel):
    """Aggregate view over a window of ``audit_sync_status`` rows."""

    total_syncs: int = 0
    success_count: int = 0
    failure_count: int = 0
    avg_duration_ms: float = 0.0
    success_rate: float = 0.0
    recent_failures: list[dict[str, Any]] = Field(default_factory=list)


RECENT_FAILURE_WINDOW = timedelta(hours=24)
RECENT_FAILURE_LIMIT = 10


def _row_time(row: dict[str, Any]) -> datetime | None:
    value = row.get("timestamp")
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def summarize_sync_rows(rows: list[dict[str, Any]], *, now: datetime) -> SyncStatistics:
    """Fold status rows into :class:`SyncStatistics`.

    ``success_rate`` is a percentage.  Recent failures are those newer than
    24 hours before *now*, newest first, at most ten.
    """
    total = len(rows)
    if total == 0:
        return SyncStatistics()
    successes = sum(1 for r in rows if r.get("status") == SyncStatus.SUCCESS.value)
    failures = [r for r in rows if r.get("status") == SyncStatus.FAILURE.value]
    durations = [int(r.get("duration_ms") or 0) for r in rows]

    cutoff = now - RECENT_FAILURE_WINDOW
    recent = []
    for row in failures:
        ts = _row_time(row)
        if ts is not None and ts > cutoff:
            recent.append((ts, row))
    recent.sort(key=lambda pair: pair[0], reverse=True)

    return SyncStatistics(
        total_syncs=total,
        success_count=successes,
        failure_count=len(failures),
        avg_duration_ms=sum(durations) / total,
        success_rate=successes / total * 100,
        recent_failures=[row for _, row in recent[:RECENT_FAILURE_LIMIT]],
    )


@runtime_checkable
class CentralStore(Protocol):
    """Operations the export and reconciliation jobs need from the central store."""

    async def insert(self, record: SyncStatusRecord) -> None: ...

    async def find_by_natural_key(
        self,
        timestamp: datetime,
        destination: Destination,
        status: SyncStatus,
    ) -> dict[str, Any] | None: ...

    async def probe(self) -> None: ...

    async def insert_incident(self, incident: IncidentRecord) -> None: ...

    async def history(
        self,
        limit: int = 100,
        *,
        status: SyncStatus | None = None,
        destination: Destination | None = None,
        environment: str | None = None,
    ) -> list[dict[str, Any]]: ...

    async def statistics(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        now: datetime | None = None,
    ) -> SyncStatistics: ...


def _iso(ts: datetime) -> str:
    return ts.isoformat()


class PostgrestCentralStore:
    """PostgREST-backed :class:`CentralStore`.

    Every call runs ``urllib`` in a worker thread with the configured socket
    timeout; failures surface as :class:`~auditsync.errors.TransientIOError`.
    """

    def __init__(self, config: CentralStoreConfig) -> None:
        if not config.url or not config.service_key:
            raise ConfigurationError("central store url and service key are required")
        self._config = config
        self._base_url = config.url.rstrip("/") + "/rest/v1"
        self._headers = {
            "apikey": config.service_key,
            "Authorization": f"Bearer {config.service_key}",
        }

    def _url(self, table: str, params: dict[str, str] | None = None) -> str:
        url = f"{self._base_url}/{table}"
        if params:
            url = f"{url}?{urlencode(params)}"
        return url

    async def _call(self, method: str, url: str, payload: Any = None, **headers: str) -> Any:
        return await asyncio.to_thread(
            partial(
                send_json,
                method,
                url,
                payload=payload,
                headers={**self._headers, **headers},
                timeout_seconds=self._config.timeout_seconds,
            )
        )

    async def insert(self, record: SyncStatusRecord) -> None:
        await self._call(
            "POST",
            self._url(self._config.sync_status_table),
            record.to_row(),
            Prefer="return=minimal",
        )

    async def find_by_natural_key(
        self,
        timestamp: datetime,
        destination: Destination,
        status: SyncStatus,
    ) -> dict[str, Any] | None:
        rows = await self._call(
            "GET",
            self._url(
                self._config.sync_status_table,
                {
                    "select": "id",
                    "timestamp": f"eq.{_iso(timestamp)}",
                    "destination": f"eq.{destination.value}",
                    "status": f"eq.{status.value}",
                    "limit": "1",
                },
            ),
        )
        if isinstance(rows, list) and rows:
            return rows[0]
        return None

    async def probe(self) -> None:
        await self._call(
            "GET",
            self._url(self._config.sync_status_table, {"select": "id", "limit": "1"}),
        )

    async def insert_incident(self, incident: IncidentRecord) -> None:
        await self._call(
            "POST",
            self._url(self._config.incident_table),
            incident.model_dump(mode="json"),
            Prefer="return=minimal",
        )

    async def fetch(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        """Read rows from an arbitrary table (used by the event source)."""
        rows = await self._call("GET", self._url(table, params))
        return rows if isinstance(rows, list) else []

    async def fetch_all(
        self,
        table: str,
        params: dict[str, str],
        *,
        page_size: int = 1000,
    ) -> list[dict[str, Any]]:
        """Read every matching row, one ``limit``/``offset`` page at a time.

        The server may cap a response below *page_size*, so only an empty
        page ends the scan.  *params* should carry a total ``order``.
        """
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        rows: list[dict[str, Any]] = []
        while True:
            page = await self.fetch(
                table, {**params, "limit": str(page_size), "offset": str(len(rows))}
            )
            if not page:
                return rows
            rows.extend(page)
            logger.debug(
                "Fetched page of %d rows from %s (%d so far)", len(page), table, len(rows)
            )

    async def history(
        self,
        limit: int = 100,
        *,
        status: SyncStatus | None = None,
        destination: Destination | None = None,
        environment: str | None = None,
    ) -> list[dict[str, Any]]:
        """Most recent status rows first, optionally filtered."""
        params = {"select": "*", "order": "timestamp.desc", "limit": str(limit)}
        if status is not None:
            params["status"] = f"eq.{status.value}"
        if destination is not None:
            params["destination"] = f"eq.{destination.value}"
        if environment is not None:
            params["environment"] = f"eq.{environment}"
        return await self.fetch(self._config.sync_status_table, params)

    async def statistics(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        now: datetime | None = None,
    ) -> SyncStatistics:
        """Aggregate the status rows whose timestamp falls in ``[start, end]``."""
        params = {"select": "*", "order": "timestamp.asc,id.asc"}
        if start is not None and end is not None:
            params["and"] = f"(timestamp.gte.{_iso(start)},timestamp.lte.{_iso(end)})"
        elif start is not None:
            params["timestamp"] = f"gte.{_iso(start)}"
        elif end is not None:
            params["timestamp"] = f"lte.{_iso(end)}"
        rows = await self.fetch_all(self._config.sync_status_table, params)
        return summarize_sync_rows(rows, now=now or utcnow())
