"""Fallback buffer — local JSON files for sync records the central store rejected."""

from auditsync.fallback.writer import BulkResyncResult
from auditsync.fallback.writer import FallbackStats
from auditsync.fallback.writer import FallbackWriter
from auditsync.fallback.writer import filename_for

__all__ = [
    "BulkResyncResult",
    "FallbackStats",
    "FallbackWriter",
    "filename_for",
]
