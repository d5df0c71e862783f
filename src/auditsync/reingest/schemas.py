"""Per-file results and run summaries for fallback reconciliation."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel
from pydantic import Field


class ReingestOutcome(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    DRY_RUN = "dry_run"
    INVALID = "invalid"
    FAILED = "failed"


class RunStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


class ReingestResult(BaseModel):
    """What happened to one fallback file."""

    filepath: str
    success: bool = False
    outcome: ReingestOutcome = ReingestOutcome.FAILED
    error: str | None = None
    record_count: int = 0
    archived: bool = False

    @property
    def filename(self) -> str:
        return Path(self.filepath).name


class ReingestSummary(BaseModel):
    """Totals for one reconciliation run."""

    total_files: int = 0
    successful_inserts: int = 0
    failed_inserts: int = 0
    total_records: int = 0
    duplicates: int = 0
    would_insert: int = 0
    archived: int = 0
    errors: list[str] = Field(default_factory=list)
    processing_time_ms: int = 0
    dry_run: bool = False
    aborted: bool = False

    def add(self, result: ReingestResult) -> None:
        self.total_records += result.record_count
        if result.archived:
            self.archived += 1
        if result.outcome == ReingestOutcome.INSERTED:
            self.successful_inserts += 1
        elif result.outcome == ReingestOutcome.DUPLICATE:
            self.successful_inserts += 1
            self.duplicates += 1
        elif result.outcome == ReingestOutcome.DRY_RUN:
            self.would_insert += 1
        else:
            self.failed_inserts += 1
            if result.error:
                self.errors.append(f"{result.filename}: {result.error}")

    @property
    def ok(self) -> bool:
        """True when nothing failed; the CLI's exit status follows this."""
        return not self.aborted and self.failed_inserts == 0

    def derive_status(self) -> RunStatus:
        if self.aborted:
            return RunStatus.FAILURE
        if self.failed_inserts == 0:
            return RunStatus.SUCCESS
        if self.successful_inserts == 0:
            return RunStatus.FAILURE
        return RunStatus.PARTIAL
