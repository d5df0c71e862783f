"""Durable local buffer for sync-status records the central store rejected.

Each record lands in its own ``audit-sync-<timestamp>.json`` file.  The
timestamp part is fixed width (``YYYY-MM-DD-HH-MM-SS-ffffff`` in UTC), so a
plain lexicographic sort of the directory is also chronological.  Reconciled
files are moved into an ``archived/`` subdirectory and are never listed again.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel
from pydantic import Field
from pydantic import ValidationError

from auditsync.config import FallbackConfig
from auditsync.errors import FallbackRecordError
from auditsync.redaction import redact
from auditsync.redaction import redact_metadata
from auditsync.sync_status.schemas import Destination
from auditsync.sync_status.schemas import FallbackSyncLog
from auditsync.sync_status.schemas import SyncStatus
from auditsync.sync_status.schemas import SyncStatusRecord
from auditsync.sync_status.schemas import utcnow

if TYPE_CHECKING:
    from auditsync.central.store import CentralStore

logger = logging.getLogger(__name__)

FILE_PREFIX = "audit-sync-"
FILE_SUFFIX = ".json"
EMERGENCY_PREFIX = "emergency-sync-log-"


def filename_for(timestamp: datetime) -> str:
    """Filesystem-safe, sortable file name for a record timestamp."""
    stamp = timestamp.astimezone(timezone.utc).strftime("%Y-%m-%d-%H-%M-%S-%f")
    return f"{FILE_PREFIX}{stamp}{FILE_SUFFIX}"


class FallbackStats(BaseModel):
    """Aggregate view of the pending buffer."""

    total_logs: int = 0
    success_count: int = 0
    failure_count: int = 0
    avg_duration_ms: float = 0.0
    destinations: dict[str, int] = Field(default_factory=dict)
    recent_logs: list[FallbackSyncLog] = Field(default_factory=list)


class BulkResyncResult(BaseModel):
    synced: int = 0
    duplicates: int = 0
    errors: int = 0


class FallbackWriter:
    """Reads and writes the fallback directory."""

    def __init__(self, config: FallbackConfig | None = None) -> None:
        self.config = config or FallbackConfig()
        self.directory = Path(self.config.directory)
        self.archive_dir = self.directory / self.config.archive_subdir
        self.emergency_dir = Path(self.config.emergency_dir)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def write(self, record: SyncStatusRecord, *, fallback_reason: str) -> Path:
        """Persist *record* as a new fallback file and return its path."""
        entry = self._sanitized(record, fallback_reason=fallback_reason)
        path = await asyncio.to_thread(
            partial(self._create_exclusive, self.directory, entry)
        )
        logger.warning("Fallback sync log written: %s", path)
        return path

    async def emergency_write(
        self,
        record: SyncStatusRecord,
        *,
        fallback_reason: str,
        error: str,
    ) -> Path:
        """Last-resort write into the emergency directory.

        These files are outside the fallback directory and therefore never
        picked up by reconciliation; an operator moves them in by hand.
        """
        entry = self._sanitized(
            record,
            fallback_reason=fallback_reason,
            emergency_write=True,
            original_error=redact(error),
        )
        stamp = int(utcnow().timestamp() * 1000)
        path = self.emergency_dir / f"{EMERGENCY_PREFIX}{stamp}{FILE_SUFFIX}"
        await asyncio.to_thread(
            partial(self._dump, path, entry, exclusive=False)
        )
        logger.error("Emergency sync log written: %s", path)
        return path

    @staticmethod
    def _sanitized(record: SyncStatusRecord, **extra) -> FallbackSyncLog:
        data = record.model_dump()
        data["error_message"] = redact(record.error_message)
        data["metadata"] = redact_metadata(record.metadata)
        return FallbackSyncLog(**data, **extra)

    @classmethod
    def _create_exclusive(cls, directory: Path, entry: FallbackSyncLog) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        base = filename_for(entry.timestamp)[: -len(FILE_SUFFIX)]
        path = directory / f"{base}{FILE_SUFFIX}"
        attempt = 0
        while True:
            try:
                cls._dump(path, entry, exclusive=True)
                return path
            except FileExistsError:
                attempt += 1
                path = directory / f"{base}_{attempt:04d}{FILE_SUFFIX}"

    @staticmethod
    def _dump(path: Path, entry: FallbackSyncLog, *, exclusive: bool) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "x" if exclusive else "w", encoding="utf-8") as fh:
            fh.write(entry.model_dump_json(indent=2))
            fh.flush()
            os.fsync(fh.fileno())

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def discover(self) -> list[Path]:
        """Pending fallback files, oldest first."""
        if not self.directory.is_dir():
            return []
        return sorted(
            p
            for p in self.directory.iterdir()
            if p.is_file()
            and p.name.startswith(FILE_PREFIX)
            and p.name.endswith(FILE_SUFFIX)
        )

    @staticmethod
    def load(path: Path) -> FallbackSyncLog:
        """Parse and strictly validate one fallback file."""
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise FallbackRecordError(f"unreadable: {exc}") from exc
        try:
            return FallbackSyncLog.model_validate_json(raw)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in exc.errors()[:3]
            )
            raise FallbackRecordError(f"invalid fallback record: {problems}") from exc

    async def _load_all(self, paths: list[Path]) -> list[FallbackSyncLog]:
        entries: list[FallbackSyncLog] = []
        for path in paths:
            try:
                entries.append(await asyncio.to_thread(self.load, path))
            except FallbackRecordError as exc:
                logger.error("Failed to parse fallback log %s: %s", path.name, exc)
        return entries

    async def list_logs(
        self,
        limit: int = 100,
        *,
        status: SyncStatus | None = None,
        destination: Destination | None = None,
    ) -> list[FallbackSyncLog]:
        """Buffered records, newest first, optionally filtered."""
        entries = await self._load_all(list(reversed(self.discover())))
        out: list[FallbackSyncLog] = []
        for entry in entries:
            if status is not None and entry.status != status:
                continue
            if destination is not None and entry.destination != destination:
                continue
            out.append(entry)
            if len(out) >= limit:
                break
        return out

    async def stats(self, *, now: datetime | None = None) -> FallbackStats:
        entries = await self._load_all(list(reversed(self.discover())))
        if not entries:
            return FallbackStats()
        now = now or utcnow()
        destinations: dict[str, int] = {}
        for entry in entries:
            destinations[entry.destination.value] = (
                destinations.get(entry.destination.value, 0) + 1
            )
        day_ago = now - timedelta(hours=24)
        return FallbackStats(
            total_logs=len(entries),
            success_count=sum(1 for e in entries if e.status == SyncStatus.SUCCESS),
            failure_count=sum(1 for e in entries if e.status == SyncStatus.FAILURE),
            avg_duration_ms=sum(e.duration_ms for e in entries) / len(entries),
            destinations=destinations,
            recent_logs=[e for e in entries if e.timestamp > day_ago][:10],
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def cleanup(
        self,
        days_to_keep: int | None = None,
        *,
        now: datetime | None = None,
    ) -> int:
        """Delete files whose record timestamp is older than the cutoff.

        The decision uses the timestamp inside the record, not the file's
        mtime.  Files that cannot be parsed are kept.
        """
        days = self.config.days_to_keep if days_to_keep is None else days_to_keep
        cutoff = (now or utcnow()) - timedelta(days=days)
        deleted = 0
        for path in self.discover():
            try:
                entry = await asyncio.to_thread(self.load, path)
            except FallbackRecordError as exc:
                logger.error("Failed to process fallback log %s: %s", path.name, exc)
                continue
            if entry.timestamp < cutoff:
                await asyncio.to_thread(path.unlink)
                deleted += 1
        logger.info("Cleaned up %d old fallback logs", deleted)
        return deleted

    async def archive(self, path: Path) -> Path:
        """Move a reconciled file out of the discovery directory."""
        target = self.archive_dir / path.name
        await asyncio.to_thread(self._move, path, target)
        logger.info("Archived %s -> %s", path, target)
        return target

    @staticmethod
    def _move(source: Path, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        os.replace(source, target)

    async def bulk_resync(
        self,
        central: CentralStore,
        batch_size: int = 50,
    ) -> BulkResyncResult:
        """Push every buffered record to *central* in batches.

        Runs through the reconciler so natural-key dedup and archiving apply
        exactly as in a scheduled reconciliation.
        """
        from auditsync.reingest.reconciler import Reconciler
        from auditsync.reingest.schemas import ReingestOutcome

        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        reconciler = Reconciler(central, self)
        result = BulkResyncResult()
        files = self.discover()
        for start in range(0, len(files), batch_size):
            batch = files[start : start + batch_size]
            for item in await reconciler.process_files(batch):
                if item.outcome == ReingestOutcome.INSERTED:
                    result.synced += 1
                elif item.outcome == ReingestOutcome.DUPLICATE:
                    result.duplicates += 1
                else:
                    result.errors += 1
        logger.info(
            "Bulk resync finished: synced=%d duplicates=%d errors=%d",
            result.synced,
            result.duplicates,
            result.errors,
        )
        return result
