"""In-memory stand-ins for the central store, event source, storage clients and channels."""

from __future__ import annotations

from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Any

from auditsync.central.store import IncidentRecord
from auditsync.central.store import PostgrestCentralStore
from auditsync.central.store import summarize_sync_rows
from auditsync.central.store import SyncStatistics
from auditsync.config import CentralStoreConfig
from auditsync.errors import TransientIOError
from auditsync.export.schemas import AuditEvent
from auditsync.notify.schemas import Notification
from auditsync.sync_status.schemas import Destination
from auditsync.sync_status.schemas import SyncStatus
from auditsync.sync_status.schemas import SyncStatusRecord

T0 = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_event(n: int, created_at: datetime | None = None) -> AuditEvent:
    return AuditEvent(
        id=f"evt-{n}",
        pattern_id=f"pattern-{n}",
        action="approve",
        moderator_id="moderator-1",
        reason="looks fine",
        created_at=created_at or T0 - timedelta(minutes=n),
    )


def make_record(
    *,
    timestamp: datetime = T0,
    status: SyncStatus = SyncStatus.SUCCESS,
    destination: Destination = Destination.S3,
    duration_ms: int = 100,
    error_message: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> SyncStatusRecord:
    return SyncStatusRecord(
        timestamp=timestamp,
        status=status,
        destination=destination,
        duration_ms=duration_ms,
        error_message=error_message,
        records_exported=0 if status == SyncStatus.SUCCESS else None,
        environment="TEST | local | unit",
        metadata=metadata or {},
    )


# ---------------------------------------------------------------------------
# Central store
# ---------------------------------------------------------------------------


class InMemoryCentralStore:
    """CentralStore backed by lists; each operation can be made to fail."""

    def __init__(
        self,
        *,
        fail_insert: Exception | None = None,
        fail_find: Exception | None = None,
        fail_probe: Exception | None = None,
        fail_incident: Exception | None = None,
    ) -> None:
        self.rows: list[SyncStatusRecord] = []
        self.incidents: list[IncidentRecord] = []
        self.fail_insert = fail_insert
        self.fail_find = fail_find
        self.fail_probe = fail_probe
        self.fail_incident = fail_incident
        self.insert_calls = 0
        self.probe_calls = 0

    async def insert(self, record: SyncStatusRecord) -> None:
        self.insert_calls += 1
        if self.fail_insert is not None:
            raise self.fail_insert
        self.rows.append(record)

    async def find_by_natural_key(
        self,
        timestamp: datetime,
        destination: Destination,
        status: SyncStatus,
    ) -> dict[str, Any] | None:
        if self.fail_find is not None:
            raise self.fail_find
        for i, row in enumerate(self.rows):
            if row.natural_key == (timestamp, destination, status):
                return {"id": i + 1}
        return None

    async def probe(self) -> None:
        self.probe_calls += 1
        if self.fail_probe is not None:
            raise self.fail_probe

    async def insert_incident(self, incident: IncidentRecord) -> None:
        if self.fail_incident is not None:
            raise self.fail_incident
        self.incidents.append(incident)

    async def history(
        self,
        limit: int = 100,
        *,
        status: SyncStatus | None = None,
        destination: Destination | None = None,
        environment: str | None = None,
    ) -> list[dict[str, Any]]:
        rows = [
            r
            for r in self.rows
            if (status is None or r.status == status)
            and (destination is None or r.destination == destination)
            and (environment is None or r.environment == environment)
        ]
        rows.sort(key=lambda r: r.timestamp, reverse=True)
        return [r.to_row() for r in rows[:limit]]

    async def statistics(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        now: datetime | None = None,
    ) -> SyncStatistics:
        rows = [
            r.to_row()
            for r in self.rows
            if (start is None or r.timestamp >= start) and (end is None or r.timestamp <= end)
        ]
        return summarize_sync_rows(rows, now=now or T0)


class StubPostgrestCentral(PostgrestCentralStore):
    """PostgREST client whose ``fetch`` serves *rows* from memory.

    ``limit`` and ``offset`` are honoured; *max_rows* caps every response the
    way a server-side ``db-max-rows`` does.
    """

    def __init__(self, rows: list[dict[str, Any]], *, max_rows: int | None = None) -> None:
        super().__init__(CentralStoreConfig(url="https://central", service_key="k"))
        self.rows = rows
        self.max_rows = max_rows
        self.calls: list[tuple[str, dict[str, str]]] = []

    async def fetch(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        self.calls.append((table, dict(params)))
        offset = int(params.get("offset", 0))
        limit = int(params.get("limit", len(self.rows)))
        if self.max_rows is not None:
            limit = min(limit, self.max_rows)
        return self.rows[offset : offset + limit]


def unavailable(what: str = "central store") -> TransientIOError:
    return TransientIOError(f"{what} unavailable")


# ---------------------------------------------------------------------------
# Export source and clients
# ---------------------------------------------------------------------------


class FakeEventSource:
    def __init__(self, events: list[AuditEvent] | None = None, *, error: Exception | None = None):
        self.events = list(events or [])
        self.error = error
        self.queries: list[datetime] = []

    async def query(self, since: datetime) -> list[AuditEvent]:
        self.queries.append(since)
        if self.error is not None:
            raise self.error
        return [e for e in self.events if e.created_at >= since]


class FakeObjectStorage:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.error = error
        self.puts: list[dict[str, Any]] = []

    async def put(
        self,
        key: str,
        body: bytes,
        *,
        content_type: str,
        metadata: dict[str, str],
    ) -> None:
        if self.error is not None:
            raise self.error
        self.puts.append(
            {"key": key, "body": body, "content_type": content_type, "metadata": metadata}
        )


class FakeWarehouse:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.error = error
        self.inserts: list[dict[str, Any]] = []

    async def insert_rows(
        self,
        table: str,
        rows: list[dict[str, Any]],
        *,
        schema: list[dict[str, str]],
    ) -> None:
        if self.error is not None:
            raise self.error
        self.inserts.append({"table": table, "rows": rows, "schema": schema})


def object_storage_factory(config) -> FakeObjectStorage:
    """``module:callable`` target for CLI tests."""
    return FakeObjectStorage()


# ---------------------------------------------------------------------------
# Notification channels
# ---------------------------------------------------------------------------


class RecordingChannel:
    def __init__(self, name: str = "chat", *, error: Exception | None = None) -> None:
        self.name = name
        self.error = error
        self.delivered: list[Notification] = []

    async def deliver(self, notification: Notification) -> None:
        if self.error is not None:
            raise self.error
        self.delivered.append(notification)
