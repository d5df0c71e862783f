"""auditsync — audit-log export, fallback buffering and reconciliation."""

__version__ = "0.1.0"
