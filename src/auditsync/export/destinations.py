"""Destination adapters: how a batch of audit events is shipped.

The storage clients themselves (an S3 SDK, a warehouse SDK) are supplied by
the deployment; this module only needs the narrow protocols below.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Protocol
from typing import runtime_checkable

from auditsync.config import ObjectStoreConfig
from auditsync.config import WarehouseConfig
from auditsync.export.schemas import AUDIT_EVENT_SCHEMA
from auditsync.export.schemas import AuditEvent
from auditsync.sync_status.schemas import DestinationType
from auditsync.sync_status.schemas import utcnow

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Client protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class ObjectStorageClient(Protocol):
    async def put(
        self,
        key: str,
        body: bytes,
        *,
        content_type: str,
        metadata: dict[str, str],
    ) -> None: ...


@runtime_checkable
class WarehouseClient(Protocol):
    async def insert_rows(
        self,
        table: str,
        rows: list[dict[str, Any]],
        *,
        schema: list[dict[str, str]],
    ) -> None: ...


@runtime_checkable
class ExportDestination(Protocol):
    """Ships a batch and returns how many events were delivered."""

    destination_type: DestinationType

    async def ship(self, events: Sequence[AuditEvent]) -> int: ...


# ---------------------------------------------------------------------------
# Object storage
# ---------------------------------------------------------------------------


def object_key(category: str, now: datetime) -> str:
    """Date-partitioned key, e.g. ``audit_logs/2026/10/18/audit_logs_2026-10-18_<ms>.json``."""
    now = now.astimezone(timezone.utc)
    epoch_ms = int(now.timestamp() * 1000)
    return (
        f"{category}/{now:%Y}/{now:%m}/{now:%d}/"
        f"{category}_{now:%Y-%m-%d}_{epoch_ms}.json"
    )


def to_ndjson(events: Sequence[AuditEvent]) -> bytes:
    return "\n".join(event.model_dump_json() for event in events).encode("utf-8")


class ObjectStoreDestination:
    destination_type = DestinationType.S3

    def __init__(
        self,
        client: ObjectStorageClient,
        config: ObjectStoreConfig | None = None,
        *,
        clock=utcnow,
    ) -> None:
        self._client = client
        self._config = config or ObjectStoreConfig()
        self._clock = clock

    async def ship(self, events: Sequence[AuditEvent]) -> int:
        now = self._clock()
        key = object_key(self._config.category, now)
        logger.info(
            "Exporting %d logs to object storage: %s/%s",
            len(events),
            self._config.bucket,
            key,
        )
        await self._client.put(
            key,
            to_ndjson(events),
            content_type="application/json",
            metadata={
                "export-date": now.isoformat(),
                "record-count": str(len(events)),
                "source": self._config.source_label,
            },
        )
        return len(events)


# ---------------------------------------------------------------------------
# Warehouse
# ---------------------------------------------------------------------------


class WarehouseDestination:
    destination_type = DestinationType.BIGQUERY

    def __init__(self, client: WarehouseClient, config: WarehouseConfig | None = None) -> None:
        self._client = client
        self._config = config or WarehouseConfig()

    @property
    def table(self) -> str:
        cfg = self._config
        return f"{cfg.project_id}.{cfg.dataset_id}.{cfg.table_id}"

    async def ship(self, events: Sequence[AuditEvent]) -> int:
        logger.info("Exporting %d logs to warehouse: %s", len(events), self.table)
        rows = [event.model_dump() for event in events]
        await self._client.insert_rows(self.table, rows, schema=AUDIT_EVENT_SCHEMA)
        return len(events)
