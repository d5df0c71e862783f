"""Failure alerting — suppression, incident log and channel fan-out."""

from auditsync.alerts.dispatcher import AlertDispatcher
from auditsync.alerts.schemas import SuppressionDecision
from auditsync.alerts.schemas import SuppressionEntry
from auditsync.alerts.schemas import SyncFailureReport
from auditsync.alerts.suppression import AlertSuppressor

__all__ = [
    "AlertDispatcher",
    "AlertSuppressor",
    "SuppressionDecision",
    "SuppressionEntry",
    "SyncFailureReport",
]
