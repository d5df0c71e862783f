"""One scheduled export run: checkpoint, fetch, ship, record, alert."""

from __future__ import annotations

import logging
import traceback
from collections.abc import Callable
from collections.abc import Iterable
from datetime import datetime
from time import perf_counter

from auditsync.alerts.dispatcher import AlertDispatcher
from auditsync.alerts.schemas import SyncFailureReport
from auditsync.checkpoint.store import CheckpointStore
from auditsync.config import ExportConfig
from auditsync.errors import ConfigurationError
from auditsync.errors import ExportFailedError
from auditsync.export.exporter import RemoteExporter
from auditsync.export.schemas import ExportRunSummary
from auditsync.observability import track_latency
from auditsync.sync_status.recorder import SyncStatusRecorder
from auditsync.sync_status.schemas import DestinationType
from auditsync.sync_status.schemas import SyncStatus
from auditsync.sync_status.schemas import SyncStatusInput
from auditsync.sync_status.schemas import utcnow
from auditsync.timeouts import bounded

logger = logging.getLogger(__name__)


class ExportOrchestrator:
    """Compose checkpointing, export, status recording and alerting.

    The checkpoint only moves after the destination confirmed the batch and
    never on a run that found nothing to export.  Overlapping invocations
    against the same destination are not guarded against here; the
    scheduler is expected to run one export per destination at a time.
    """

    def __init__(
        self,
        checkpoints: CheckpointStore,
        exporters: Iterable[RemoteExporter],
        recorder: SyncStatusRecorder,
        alerts: AlertDispatcher,
        *,
        config: ExportConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._checkpoints = checkpoints
        self._exporters = {e.destination_type: e for e in exporters}
        self._recorder = recorder
        self._alerts = alerts
        self._config = config or ExportConfig()
        self._clock = clock

    async def run_export(
        self,
        destination_type: DestinationType | str,
        config: ExportConfig | None = None,
    ) -> ExportRunSummary:
        """Export everything created since the checkpoint.

        Raises :class:`ExportFailedError` after the failure has been recorded
        and reported.
        """
        try:
            destination_type = DestinationType(destination_type)
        except ValueError as exc:
            raise ConfigurationError(
                f"Unsupported export type '{destination_type}'. Supported: s3, bigquery."
            ) from exc
        exporter = self._exporters.get(destination_type)
        if exporter is None:
            raise ConfigurationError(
                f"No exporter configured for destination '{destination_type.value}'"
            )
        cfg = config or self._config

        started_at = self._clock()
        start = perf_counter()
        since: datetime | None = None
        logger.info("Starting audit log export to %s", destination_type.value)

        def elapsed_ms() -> int:
            return int((perf_counter() - start) * 1000)

        with track_latency(f"export.{destination_type.value}"):
            try:
                since = await bounded(
                    self._checkpoints.since(destination_type, now=started_at),
                    timeout_seconds=cfg.io_timeout_seconds,
                    operation="checkpoint.load",
                )
                events = await exporter.fetch(since)

                if not events:
                    logger.info("No new audit logs to export")
                    await self._recorder.record(
                        SyncStatusInput(
                            status=SyncStatus.SUCCESS,
                            destination=destination_type.destination,
                            duration_ms=elapsed_ms(),
                            records_exported=0,
                            metadata={
                                "export_type": destination_type.value,
                                "no_records": True,
                                "last_export_timestamp": since.isoformat(),
                            },
                        )
                    )
                    return ExportRunSummary(
                        destination_type=destination_type,
                        status=SyncStatus.SUCCESS,
                        started_at=started_at,
                        since=since,
                        duration_ms=elapsed_ms(),
                    )

                shipped = await exporter.ship(events)
                checkpoint = await bounded(
                    self._checkpoints.advance(
                        destination_type,
                        run_started_at=started_at,
                        count=len(events),
                    ),
                    timeout_seconds=cfg.io_timeout_seconds,
                    operation="checkpoint.save",
                )
            except Exception as exc:
                await self._handle_failure(
                    destination_type, cfg, exc, since=since, duration_ms=elapsed_ms()
                )
                raise ExportFailedError(
                    f"export to {destination_type.value} failed: {exc}"
                ) from exc

        logger.info("Export completed successfully: %d records exported", shipped)
        await self._recorder.record(
            SyncStatusInput(
                status=SyncStatus.SUCCESS,
                destination=destination_type.destination,
                duration_ms=elapsed_ms(),
                records_exported=shipped,
                metadata={
                    "export_type": destination_type.value,
                    "records_processed": len(events),
                    "exported_records": shipped,
                    "last_export_timestamp": since.isoformat(),
                    "checkpoint": checkpoint.model_dump(mode="json"),
                },
            )
        )
        return ExportRunSummary(
            destination_type=destination_type,
            status=SyncStatus.SUCCESS,
            started_at=started_at,
            since=since,
            records_exported=shipped,
            duration_ms=elapsed_ms(),
            checkpoint=checkpoint,
        )

    async def _handle_failure(
        self,
        destination_type: DestinationType,
        cfg: ExportConfig,
        exc: Exception,
        *,
        since: datetime | None,
        duration_ms: int,
    ) -> None:
        logger.error("Export to %s failed: %s", destination_type.value, exc)
        error = str(exc) or type(exc).__name__
        await self._recorder.record(
            SyncStatusInput(
                status=SyncStatus.FAILURE,
                destination=destination_type.destination,
                duration_ms=duration_ms,
                error_message=error,
                metadata={
                    "export_type": destination_type.value,
                    "last_export_timestamp": since.isoformat() if since else None,
                    "error_type": type(exc).__name__,
                    "stack": "".join(traceback.format_exception(exc)),
                },
            )
        )
        await self._alerts.report(
            SyncFailureReport(
                time=self._clock(),
                error=error,
                context=cfg.alert_context,
                export_type=destination_type,
                retry_count=0,
                checkpoint_data={
                    "last_export_timestamp": since.isoformat() if since else None,
                },
            )
        )
