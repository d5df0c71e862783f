"""Windowed duplicate-alert suppression backed by a persisted state store."""

from __future__ import annotations

import logging
from datetime import datetime
from datetime import timedelta

from pydantic import ValidationError

from auditsync.alerts.schemas import SuppressionDecision
from auditsync.alerts.schemas import SuppressionEntry
from auditsync.alerts.schemas import SyncFailureReport
from auditsync.state.store import StateStore
from auditsync.sync_status.schemas import utcnow

logger = logging.getLogger(__name__)

SUPPRESSION_STATE_KEY = "alert-suppression"


class AlertSuppressor:
    """Bound alert volume per failure signature.

    For each ``(context, export_type)`` key the store keeps a counter and the
    time the last alert actually went out.  While fewer than *threshold*
    alerts have fired within *window* of that time, alerts pass.  Beyond it
    they are suppressed, but the counter keeps counting so the incident size
    is preserved.  Once the window has elapsed the counter restarts at 1.
    """

    def __init__(
        self,
        store: StateStore,
        *,
        threshold: int = 3,
        window_seconds: int = 3600,
        state_key: str = SUPPRESSION_STATE_KEY,
    ) -> None:
        if threshold < 1:
            raise ValueError("suppression threshold must be >= 1")
        if window_seconds < 0:
            raise ValueError("suppression window must be >= 0")
        self._store = store
        self._threshold = threshold
        self._window = timedelta(seconds=window_seconds)
        self._state_key = state_key

    async def check(
        self,
        report: SyncFailureReport,
        *,
        now: datetime | None = None,
    ) -> SuppressionDecision:
        """Count *report* and decide whether its alert should be sent."""
        now = now or utcnow()
        cache = await self._store.get(self._state_key) or {}
        key = report.suppression_key

        entry: SuppressionEntry | None = None
        if key in cache:
            try:
                entry = SuppressionEntry.model_validate(cache[key])
            except ValidationError:
                logger.warning("Discarding malformed suppression entry for %s", key)

        if entry is None or now - entry.last_alert_at >= self._window:
            entry = SuppressionEntry(count=1, last_alert_at=now)
            suppressed = False
        elif entry.count >= self._threshold:
            entry = SuppressionEntry(count=entry.count + 1, last_alert_at=entry.last_alert_at)
            suppressed = True
        else:
            entry = SuppressionEntry(count=entry.count + 1, last_alert_at=now)
            suppressed = False

        cache[key] = entry.model_dump(mode="json")
        await self._store.set(self._state_key, cache)

        if suppressed:
            logger.warning(
                "Suppressing duplicate alert for %s (%d within window)", key, entry.count
            )
        return SuppressionDecision(suppressed=suppressed, count=entry.count)

    async def count_for(self, report: SyncFailureReport) -> int:
        cache = await self._store.get(self._state_key) or {}
        raw = cache.get(report.suppression_key)
        return int(raw.get("count", 0)) if isinstance(raw, dict) else 0
