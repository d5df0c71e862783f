"""Exception types shared across the export and reconciliation jobs."""

from __future__ import annotations


class AuditSyncError(Exception):
    """Base class for all auditsync errors."""


class TransientIOError(AuditSyncError):
    """A store, destination or network endpoint was unavailable or timed out.

    Never retried in-process; the next scheduled run picks the work up again.
    """


class ConfigurationError(AuditSyncError, ValueError):
    """Required settings or credentials are missing."""


class FallbackRecordError(AuditSyncError):
    """A buffered fallback file could not be parsed or validated."""


class ExportFailedError(AuditSyncError):
    """An export run failed after its failure was recorded and reported."""
