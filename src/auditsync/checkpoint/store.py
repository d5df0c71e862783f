"""Durable per-destination export cursor."""

from __future__ import annotations

import logging
from datetime import datetime
from datetime import timedelta

from pydantic import ValidationError

from auditsync.checkpoint.schemas import ExportCheckpoint
from auditsync.state.store import StateStore
from auditsync.sync_status.schemas import DestinationType
from auditsync.sync_status.schemas import utcnow

logger = logging.getLogger(__name__)


def checkpoint_key(destination_type: DestinationType) -> str:
    return f"audit-logs-export-{destination_type.value}"


class CheckpointStore:
    """One checkpoint per destination type, kept in a :class:`StateStore`.

    The stored timestamp never moves backwards: :meth:`advance` keeps the
    later of the stored and the proposed cursor.
    """

    def __init__(self, state: StateStore, *, default_lookback_hours: int = 24) -> None:
        self._state = state
        self._default_lookback = timedelta(hours=default_lookback_hours)

    async def load(self, destination_type: DestinationType) -> ExportCheckpoint | None:
        raw = await self._state.get(checkpoint_key(destination_type))
        if raw is None:
            return None
        try:
            return ExportCheckpoint.model_validate(raw)
        except ValidationError as exc:
            logger.warning(
                "Ignoring invalid checkpoint for %s: %s", destination_type.value, exc
            )
            return None

    async def since(
        self,
        destination_type: DestinationType,
        *,
        now: datetime | None = None,
    ) -> datetime:
        """Export cursor, defaulting to the lookback window when none is stored."""
        checkpoint = await self.load(destination_type)
        if checkpoint is not None:
            return checkpoint.last_export_timestamp
        return (now or utcnow()) - self._default_lookback

    async def advance(
        self,
        destination_type: DestinationType,
        *,
        run_started_at: datetime,
        count: int,
    ) -> ExportCheckpoint:
        """Record a confirmed export that started at *run_started_at*."""
        current = await self.load(destination_type)
        timestamp = run_started_at
        if current is not None and current.last_export_timestamp > timestamp:
            logger.warning(
                "Checkpoint for %s is ahead of run start; keeping %s",
                destination_type.value,
                current.last_export_timestamp.isoformat(),
            )
            timestamp = current.last_export_timestamp

        checkpoint = ExportCheckpoint(
            last_export_timestamp=timestamp,
            last_export_count=count,
            last_export_date=timestamp.date().isoformat(),
            export_type=destination_type,
            status="success",
        )
        await self._state.set(
            checkpoint_key(destination_type), checkpoint.model_dump(mode="json")
        )
        logger.info(
            "Checkpoint saved for %s: %s",
            destination_type.value,
            checkpoint.last_export_timestamp.isoformat(),
        )
        return checkpoint
