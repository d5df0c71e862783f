"""Replay buffered fallback records into the central store, exactly once.

Files are processed oldest first.  Each one is validated, checked against the
central store by its natural key ``(timestamp, destination, status)``,
inserted if absent, and then moved to the archive directory.  A file whose
insert fails stays where it is for the next run; one bad file never stops the
batch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from time import perf_counter

from auditsync.central.store import CentralStore
from auditsync.config import ReingestConfig
from auditsync.errors import FallbackRecordError
from auditsync.fallback.writer import FallbackWriter
from auditsync.observability import track_latency
from auditsync.reingest.schemas import ReingestOutcome
from auditsync.reingest.schemas import ReingestResult
from auditsync.reingest.schemas import ReingestSummary
from auditsync.sync_status.schemas import FallbackSyncLog
from auditsync.sync_status.schemas import SyncStatusRecord
from auditsync.sync_status.schemas import utcnow
from auditsync.timeouts import bounded

logger = logging.getLogger(__name__)


class Reconciler:
    def __init__(
        self,
        central: CentralStore,
        fallback: FallbackWriter,
        *,
        config: ReingestConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._central = central
        self._fallback = fallback
        self._config = config or ReingestConfig()
        self._clock = clock

    async def run(self, *, dry_run: bool = False, verbose: bool = False) -> ReingestSummary:
        """Process every pending fallback file and return the run totals."""
        start = perf_counter()
        summary = ReingestSummary(dry_run=dry_run)
        logger.info("Starting fallback log re-ingestion")
        if dry_run:
            logger.warning("DRY-RUN MODE: no central store writes will be performed")

        with track_latency("reingest.run"):
            if not dry_run:
                try:
                    await bounded(
                        self._central.probe(),
                        timeout_seconds=self._config.io_timeout_seconds,
                        operation="central.probe",
                    )
                except Exception as exc:
                    logger.error("Central store connectivity test failed: %s", exc)
                    summary.errors.append(f"Central store connectivity failed: {exc}")
                    summary.aborted = True
                    summary.processing_time_ms = int((perf_counter() - start) * 1000)
                    return summary
                logger.info("Central store connectivity confirmed")

            files = self._fallback.discover()
            summary.total_files = len(files)
            logger.info("Found %d fallback log files to process", len(files))

            for result in await self.process_files(files, dry_run=dry_run, verbose=verbose):
                summary.add(result)

        summary.processing_time_ms = int((perf_counter() - start) * 1000)
        return summary

    async def process_files(
        self,
        paths: Sequence[Path],
        *,
        dry_run: bool = False,
        verbose: bool = False,
    ) -> list[ReingestResult]:
        return [
            await self.process_file(path, dry_run=dry_run, verbose=verbose)
            for path in paths
        ]

    async def process_file(
        self,
        path: Path,
        *,
        dry_run: bool = False,
        verbose: bool = False,
    ) -> ReingestResult:
        result = ReingestResult(filepath=str(path), record_count=1)
        try:
            entry = await asyncio.to_thread(self._fallback.load, path)
        except FallbackRecordError as exc:
            logger.error("Invalid fallback file %s: %s", path.name, exc)
            result.outcome = ReingestOutcome.INVALID
            result.error = str(exc)
            return result

        if verbose:
            logger.info(
                "Processing %s: status=%s destination=%s duration=%dms",
                path.name,
                entry.status.value,
                entry.destination.value,
                entry.duration_ms,
            )

        if dry_run:
            logger.info("[DRY-RUN] Would insert and archive %s", path.name)
            result.success = True
            result.outcome = ReingestOutcome.DRY_RUN
            return result

        try:
            existing = await bounded(
                self._central.find_by_natural_key(
                    entry.timestamp, entry.destination, entry.status
                ),
                timeout_seconds=self._config.io_timeout_seconds,
                operation="central.find_by_natural_key",
            )
        except Exception as exc:
            logger.error("Duplicate check failed for %s: %s", path.name, exc)
            result.error = f"duplicate check failed: {exc}"
            return result

        if existing is not None:
            logger.warning("Skipping duplicate entry: %s", path.name)
            result.outcome = ReingestOutcome.DUPLICATE
        else:
            try:
                await bounded(
                    self._central.insert(self.to_central_record(entry)),
                    timeout_seconds=self._config.io_timeout_seconds,
                    operation="central.insert",
                )
            except Exception as exc:
                logger.error("Failed to re-ingest %s: %s", path.name, exc)
                result.error = f"central store insert failed: {exc}"
                return result
            logger.info("Successfully re-ingested: %s", path.name)
            result.outcome = ReingestOutcome.INSERTED

        result.success = True
        try:
            await self._fallback.archive(path)
            result.archived = True
        except OSError as exc:
            # The next run will see the row via the natural-key check and archive then.
            logger.warning("Failed to archive %s after success: %s", path.name, exc)
        return result

    def to_central_record(self, entry: FallbackSyncLog) -> SyncStatusRecord:
        """Central-schema row carrying reingest provenance in its metadata."""
        record = entry.to_record()
        return record.model_copy(
            update={
                "metadata": {
                    **record.metadata,
                    "reingested_from_fallback": True,
                    "reingest_timestamp": self._clock().isoformat(),
                    "original_fallback_reason": entry.fallback_reason,
                }
            }
        )
