"""Unit tests for SyncStatusRecorder and its fallback chain."""

from __future__ import annotations

import asyncio
import json

from auditsync.config import RuntimeEnvironment
from auditsync.fallback import FallbackWriter
from auditsync.sync_status import Destination
from auditsync.sync_status import SyncStatus
from auditsync.sync_status import SyncStatusInput
from auditsync.sync_status import SyncStatusRecorder
from tests.helpers.fakes import InMemoryCentralStore
from tests.helpers.fakes import unavailable

ENV = RuntimeEnvironment(name="test", region="local", project="unit")


def _failure_input(**overrides) -> SyncStatusInput:
    data = {
        "status": SyncStatus.FAILURE,
        "destination": Destination.BIGQUERY,
        "duration_ms": 1200,
        "error_message": "socket hang up password=hunter2",
        "metadata": {"export_type": "bigquery"},
    }
    data.update(overrides)
    return SyncStatusInput(**data)


class _BrokenWriter(FallbackWriter):
    async def write(self, record, *, fallback_reason):
        raise OSError("read-only file system")


class _HangingStore(InMemoryCentralStore):
    async def insert(self, record):
        await asyncio.sleep(5)


# ---------------------------------------------------------------------------
# Central path
# ---------------------------------------------------------------------------


class TestCentralPath:
    async def test_success_goes_to_central_only(self, central, fallback):
        recorder = SyncStatusRecorder(central, fallback, environment=ENV)
        record = await recorder.record(
            SyncStatusInput(
                status=SyncStatus.SUCCESS,
                destination=Destination.S3,
                duration_ms=50,
                records_exported=12,
            )
        )
        assert central.rows == [record]
        assert record.environment == "TEST | local | unit"
        assert record.records_exported == 12
        assert fallback.discover() == []

    async def test_error_message_redacted(self, central, fallback):
        recorder = SyncStatusRecorder(central, fallback, environment=ENV)
        record = await recorder.record(_failure_input())
        assert record.error_message == "socket hang up password=***"

    async def test_explicit_environment_kept(self, central, fallback):
        recorder = SyncStatusRecorder(central, fallback, environment=ENV)
        record = await recorder.record(_failure_input(environment="custom"))
        assert record.environment == "custom"

    async def test_accepts_plain_mapping(self, central, fallback):
        recorder = SyncStatusRecorder(central, fallback, environment=ENV)
        record = await recorder.record(
            {"status": "success", "destination": "Postgres", "duration_ms": 5}
        )
        assert record is not None
        assert record.destination == Destination.POSTGRES

    async def test_recorded_rows_feed_history_and_statistics(self, central, fallback):
        recorder = SyncStatusRecorder(central, fallback, environment=ENV)
        ok = await recorder.record(
            SyncStatusInput(
                status=SyncStatus.SUCCESS, destination=Destination.S3, duration_ms=100
            )
        )
        failed = await recorder.record(_failure_input(duration_ms=300))

        history = await central.history(status=SyncStatus.FAILURE)
        assert [row["destination"] for row in history] == ["BigQuery"]

        stats = await central.statistics(now=failed.timestamp)
        assert stats.total_syncs == 2
        assert stats.success_count == 1
        assert stats.avg_duration_ms == 200
        assert stats.success_rate == 50
        assert stats.recent_failures == [failed.to_row()]
        assert ok.to_row() not in stats.recent_failures

    async def test_invalid_entry_dropped(self, central, fallback):
        recorder = SyncStatusRecorder(central, fallback, environment=ENV)
        assert await recorder.record({"status": "maybe", "destination": "S3"}) is None
        assert await recorder.record(
            {"status": "success", "destination": "S3", "duration_ms": -1}
        ) is None
        assert central.rows == []
        assert fallback.discover() == []


# ---------------------------------------------------------------------------
# Fallback path
# ---------------------------------------------------------------------------


class TestFallbackPath:
    async def test_central_failure_writes_fallback(self, fallback):
        central = InMemoryCentralStore(fail_insert=unavailable())
        recorder = SyncStatusRecorder(central, fallback, environment=ENV)

        record = await recorder.record(_failure_input())

        files = fallback.discover()
        assert len(files) == 1
        buffered = FallbackWriter.load(files[0])
        assert buffered.timestamp == record.timestamp
        assert buffered.status == SyncStatus.FAILURE
        assert buffered.metadata["central_error"] == "central store unavailable"
        assert buffered.metadata["central_error_type"] == "TransientIOError"
        assert buffered.fallback_reason.startswith("Central store insert failed")
        assert "hunter2" not in files[0].read_text(encoding="utf-8")

    async def test_central_timeout_writes_fallback(self, fallback):
        recorder = SyncStatusRecorder(
            _HangingStore(), fallback, environment=ENV, timeout_seconds=0.01
        )
        await recorder.record(_failure_input())
        assert len(fallback.discover()) == 1

    async def test_fallback_failure_writes_emergency_file(self, fallback_config):
        writer = _BrokenWriter(fallback_config)
        central = InMemoryCentralStore(fail_insert=unavailable())
        recorder = SyncStatusRecorder(central, writer, environment=ENV)

        await recorder.record(_failure_input())

        emergency = list(writer.emergency_dir.iterdir())
        assert len(emergency) == 1
        data = json.loads(emergency[0].read_text(encoding="utf-8"))
        assert data["emergency_write"] is True
        assert data["original_error"] == "read-only file system"

    async def test_never_raises_when_everything_fails(self, tmp_path, fallback_config):
        blocker = tmp_path / "emergency-is-a-file"
        blocker.write_text("x", encoding="utf-8")

        writer = _BrokenWriter(fallback_config)
        writer.emergency_dir = blocker / "sub"
        central = InMemoryCentralStore(fail_insert=unavailable())
        recorder = SyncStatusRecorder(central, writer, environment=ENV)

        record = await recorder.record(_failure_input())
        assert record is not None
