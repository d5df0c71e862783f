"""Persisted keyed state shared by checkpoints and alert suppression."""

from auditsync.state.store import JsonFileStateStore
from auditsync.state.store import RedisStateStore
from auditsync.state.store import StateStore

__all__ = [
    "JsonFileStateStore",
    "RedisStateStore",
    "StateStore",
]
