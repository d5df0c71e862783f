"""Export checkpoints — durable cursor per destination type."""

from auditsync.checkpoint.schemas import ExportCheckpoint
from auditsync.checkpoint.store import checkpoint_key
from auditsync.checkpoint.store import CheckpointStore

__all__ = ["CheckpointStore", "ExportCheckpoint", "checkpoint_key"]
