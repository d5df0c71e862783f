"""Unit tests for the per-destination export checkpoint."""

from __future__ import annotations

from datetime import timedelta

from auditsync.checkpoint import checkpoint_key
from auditsync.checkpoint import CheckpointStore
from auditsync.sync_status import DestinationType
from tests.helpers.fakes import T0


class TestCheckpointStore:
    async def test_default_is_lookback_window(self, state_store):
        store = CheckpointStore(state_store)
        since = await store.since(DestinationType.S3, now=T0)
        assert since == T0 - timedelta(hours=24)

    async def test_custom_lookback(self, state_store):
        store = CheckpointStore(state_store, default_lookback_hours=2)
        assert await store.since(DestinationType.S3, now=T0) == T0 - timedelta(hours=2)

    async def test_advance_then_since(self, state_store):
        store = CheckpointStore(state_store)
        checkpoint = await store.advance(DestinationType.S3, run_started_at=T0, count=5)
        assert checkpoint.last_export_timestamp == T0
        assert checkpoint.last_export_count == 5
        assert checkpoint.last_export_date == "2026-10-18"
        assert checkpoint.status == "success"
        assert await store.since(DestinationType.S3) == T0

    async def test_destinations_are_independent(self, state_store):
        store = CheckpointStore(state_store)
        await store.advance(DestinationType.S3, run_started_at=T0, count=1)
        assert await store.load(DestinationType.BIGQUERY) is None
        assert state_store.path_for(checkpoint_key(DestinationType.S3)).exists()

    async def test_never_moves_backwards(self, state_store):
        store = CheckpointStore(state_store)
        await store.advance(DestinationType.S3, run_started_at=T0, count=3)
        earlier = T0 - timedelta(hours=1)
        checkpoint = await store.advance(DestinationType.S3, run_started_at=earlier, count=1)
        assert checkpoint.last_export_timestamp == T0
        assert await store.since(DestinationType.S3) == T0

    async def test_invalid_document_ignored(self, state_store):
        await state_store.set(checkpoint_key(DestinationType.S3), {"last_export_count": -1})
        store = CheckpointStore(state_store)
        assert await store.load(DestinationType.S3) is None
        assert await store.since(DestinationType.S3, now=T0) == T0 - timedelta(hours=24)

    def test_key_format(self):
        assert checkpoint_key(DestinationType.BIGQUERY) == "audit-logs-export-bigquery"
