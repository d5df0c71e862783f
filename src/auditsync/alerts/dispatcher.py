"""Export-failure alerting with suppression and incident logging."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from auditsync.alerts.schemas import SyncFailureReport
from auditsync.alerts.suppression import AlertSuppressor
from auditsync.central.store import CentralStore
from auditsync.central.store import IncidentRecord
from auditsync.config import AlertConfig
from auditsync.config import RuntimeEnvironment
from auditsync.notify.channels import NotificationChannel
from auditsync.notify.fanout import fan_out
from auditsync.notify.schemas import Notification
from auditsync.notify.schemas import NotificationField
from auditsync.redaction import redact
from auditsync.timeouts import bounded

logger = logging.getLogger(__name__)


class AlertDispatcher:
    """Send one alert per export failure unless its signature is being suppressed."""

    def __init__(
        self,
        central: CentralStore,
        suppressor: AlertSuppressor,
        channels: Sequence[NotificationChannel],
        *,
        environment: RuntimeEnvironment | None = None,
        config: AlertConfig | None = None,
    ) -> None:
        self._central = central
        self._suppressor = suppressor
        self._channels = list(channels)
        self._environment = environment or RuntimeEnvironment()
        self._config = config or AlertConfig()

    async def report(self, failure: SyncFailureReport) -> bool:
        """Report *failure*; return True when it was not suppressed.

        Never raises: suppression-store, incident and channel errors are
        logged and the remaining steps still run.
        """
        clean_error = redact(failure.error, max_chars=self._config.max_error_chars) or ""
        logger.error("Reporting sync failure: %s - %s", failure.context, clean_error)

        try:
            decision = await self._suppressor.check(failure)
        except Exception as exc:
            logger.error("Error checking alert suppression: %s", exc)
        else:
            if decision.suppressed:
                logger.info("Alert suppressed due to duplicate detection")
                return False

        await self._log_incident(failure, clean_error)
        results = await fan_out(
            self._channels,
            self.build_notification(failure, clean_error),
            timeout_seconds=self._config.timeout_seconds,
        )
        logger.info("Sync failure reported (channels: %s)", results)
        return True

    async def _log_incident(self, failure: SyncFailureReport, clean_error: str) -> None:
        incident = IncidentRecord(
            error_message=clean_error,
            context=failure.context,
            export_type=failure.export_type.value if failure.export_type else None,
            retry_count=failure.retry_count,
            environment=self._environment.tag(),
        )
        try:
            await bounded(
                self._central.insert_incident(incident),
                timeout_seconds=self._config.timeout_seconds,
                operation="central.insert_incident",
            )
        except Exception as exc:
            logger.error("Failed to log incident to central store: %s", exc)
        else:
            logger.info("Incident logged to central store")

    def build_notification(
        self, failure: SyncFailureReport, clean_error: str
    ) -> Notification:
        export_type = failure.export_type.value if failure.export_type else "unknown"
        fields = [
            NotificationField(title="Time", value=failure.time.isoformat()),
            NotificationField(title="Environment", value=self._environment.tag()),
            NotificationField(title="Context", value=failure.context),
            NotificationField(title="Export Type", value=export_type),
            NotificationField(title="Error", value=clean_error, short=False),
        ]
        if failure.retry_count > 0:
            fields.append(
                NotificationField(title="Retry Count", value=str(failure.retry_count))
            )
        return Notification(
            event="audit_sync_failure",
            text=":rotating_light: Audit Sync Failed",
            title="Audit Sync Failure Alert",
            color="#ff0000",
            fields=fields,
            footer="Audit Sync Monitor",
            ts=int(failure.time.timestamp()),
            event_payload={
                "status": "failure",
                "context": failure.context,
                "exportType": export_type,
                "error": clean_error,
                "retryCount": failure.retry_count,
                "environment": self._environment.tag(),
                "timestamp": failure.time.isoformat(),
                "checkpoint": failure.checkpoint_data,
            },
        )
