"""Reconciliation — replay fallback logs into the central store."""

from auditsync.reingest.notifier import ResultNotifier
from auditsync.reingest.reconciler import Reconciler
from auditsync.reingest.schemas import ReingestOutcome
from auditsync.reingest.schemas import ReingestResult
from auditsync.reingest.schemas import ReingestSummary
from auditsync.reingest.schemas import RunStatus

__all__ = [
    "Reconciler",
    "ReingestOutcome",
    "ReingestResult",
    "ReingestSummary",
    "ResultNotifier",
    "RunStatus",
]
