"""Post a reconciliation run summary to the notification channels."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from collections.abc import Sequence
from datetime import datetime

from auditsync.config import ReingestConfig
from auditsync.config import RuntimeEnvironment
from auditsync.notify.channels import NotificationChannel
from auditsync.notify.fanout import fan_out
from auditsync.notify.schemas import Notification
from auditsync.notify.schemas import NotificationField
from auditsync.reingest.schemas import ReingestSummary
from auditsync.reingest.schemas import RunStatus
from auditsync.sync_status.schemas import utcnow

logger = logging.getLogger(__name__)

_STATUS_STYLE = {
    RunStatus.SUCCESS: (":white_check_mark:", "good"),
    RunStatus.PARTIAL: (":warning:", "warning"),
    RunStatus.FAILURE: (":x:", "danger"),
}


def generate_job_id(now: datetime) -> str:
    return f"reingest-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:9]}"


def format_duration(ms: int) -> str:
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60_000:
        return f"{ms / 1000:.1f}s"
    return f"{ms // 60_000}m {(ms % 60_000) // 1000}s"


def truncate_errors(errors: Sequence[str], max_chars: int) -> list[str]:
    """Errors whose newline-joined text fits in *max_chars*.

    Whole errors are kept while they fit.  The first one that does not is cut
    short with ``...`` and a ``(+N more)`` line counts what was left out,
    each only if there is room for it.
    """
    kept: list[str] = []
    used = 0
    for index, error in enumerate(errors):
        sep = 1 if kept else 0
        if used + sep + len(error) <= max_chars:
            kept.append(error)
            used += sep + len(error)
            continue
        rest = len(errors) - index - 1
        reserve = len(f"(+{rest} more)") + 1 if rest else 0
        room = max_chars - used - sep - len("...") - reserve
        if room > 0:
            kept.append(f"{error[:room]}...")
            used += sep + room + len("...")
        else:
            rest += 1
        if rest:
            marker = f"(+{rest} more)"
            if used + (1 if kept else 0) + len(marker) <= max_chars:
                kept.append(marker)
        break
    return kept


class ResultNotifier:
    """Fan a :class:`ReingestSummary` out to chat and webhook channels."""

    def __init__(
        self,
        channels: Sequence[NotificationChannel],
        *,
        environment: RuntimeEnvironment | None = None,
        config: ReingestConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
        timeout_seconds: float | None = 10.0,
    ) -> None:
        self._channels = list(channels)
        self._environment = environment or RuntimeEnvironment()
        self._config = config or ReingestConfig()
        self._clock = clock
        self._timeout_seconds = timeout_seconds

    async def notify(
        self,
        summary: ReingestSummary,
        status: RunStatus | None = None,
    ) -> dict[str, bool] | None:
        """Send the summary; returns per-channel delivery or None for dry runs."""
        if summary.dry_run:
            logger.info("Skipping notifications in dry-run mode")
            return None

        notification = self.build_notification(summary, status or summary.derive_status())
        logger.info(
            "Sending re-ingestion notifications (job %s, status %s)",
            notification.event_payload["jobId"],
            notification.event_payload["status"],
        )
        return await fan_out(
            self._channels, notification, timeout_seconds=self._timeout_seconds
        )

    def build_notification(self, summary: ReingestSummary, status: RunStatus) -> Notification:
        now = self._clock()
        job_id = generate_job_id(now)
        emoji, color = _STATUS_STYLE[status]
        fields = [
            NotificationField(title="Status", value=status.value.upper()),
            NotificationField(title="Files Processed", value=str(summary.total_files)),
            NotificationField(title="Successes", value=str(summary.successful_inserts)),
            NotificationField(title="Failures", value=str(summary.failed_inserts)),
            NotificationField(title="Duration", value=format_duration(summary.processing_time_ms)),
            NotificationField(title="Environment", value=self._environment.name),
            NotificationField(title="Job ID", value=job_id),
        ]
        if summary.errors:
            fields.append(
                NotificationField(
                    title="Error Summary",
                    value="\n".join(
                        truncate_errors(summary.errors, self._config.max_chat_error_chars)
                    ),
                    short=False,
                )
            )
        return Notification(
            event="audit_reingestion_result",
            text=f"{emoji} Fallback audit log re-ingestion {status.value}",
            title=f"{emoji} Fallback Re-ingestion Result",
            color=color,
            fields=fields,
            footer="Audit Sync Monitor",
            ts=int(now.timestamp()),
            event_payload={
                "status": status.value,
                "files": summary.total_files,
                "success": summary.successful_inserts,
                "failed": summary.failed_inserts,
                "durationMs": summary.processing_time_ms,
                "timestamp": now.isoformat(),
                "jobId": job_id,
                "errorSummary": truncate_errors(
                    summary.errors, self._config.max_chat_error_chars
                )
                or None,
            },
        )
