"""Export — ship new audit events to object storage or a warehouse."""

from auditsync.export.destinations import ExportDestination
from auditsync.export.destinations import object_key
from auditsync.export.destinations import ObjectStorageClient
from auditsync.export.destinations import ObjectStoreDestination
from auditsync.export.destinations import WarehouseClient
from auditsync.export.destinations import WarehouseDestination
from auditsync.export.exporter import RemoteExporter
from auditsync.export.orchestrator import ExportOrchestrator
from auditsync.export.schemas import AUDIT_EVENT_SCHEMA
from auditsync.export.schemas import AuditEvent
from auditsync.export.schemas import ExportRunSummary
from auditsync.export.source import EventSource
from auditsync.export.source import PostgrestEventSource

__all__ = [
    "AUDIT_EVENT_SCHEMA",
    "AuditEvent",
    "EventSource",
    "ExportDestination",
    "ExportOrchestrator",
    "ExportRunSummary",
    "ObjectStorageClient",
    "ObjectStoreDestination",
    "PostgrestEventSource",
    "RemoteExporter",
    "WarehouseClient",
    "WarehouseDestination",
    "object_key",
]
