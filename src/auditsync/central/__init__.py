"""Central store — system of record for sync history and incidents."""

from auditsync.central.store import CentralStore
from auditsync.central.store import IncidentRecord
from auditsync.central.store import PostgrestCentralStore
from auditsync.central.store import summarize_sync_rows
from auditsync.central.store import SyncStatistics

__all__ = [
    "CentralStore",
    "IncidentRecord",
    "PostgrestCentralStore",
    "summarize_sync_rows",
    "SyncStatistics",
]
