"""Sync-status records and the recorder that persists them."""

from auditsync.sync_status.recorder import SyncStatusRecorder
from auditsync.sync_status.schemas import Destination
from auditsync.sync_status.schemas import DestinationType
from auditsync.sync_status.schemas import FallbackSyncLog
from auditsync.sync_status.schemas import SyncStatus
from auditsync.sync_status.schemas import SyncStatusInput
from auditsync.sync_status.schemas import SyncStatusRecord

__all__ = [
    "Destination",
    "DestinationType",
    "FallbackSyncLog",
    "SyncStatus",
    "SyncStatusInput",
    "SyncStatusRecord",
    "SyncStatusRecorder",
]
