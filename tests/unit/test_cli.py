"""Unit tests for the command-line entry points."""

from __future__ import annotations

import asyncio
import json
from datetime import timedelta

import pytest
from redis.asyncio import Redis

from auditsync.central import PostgrestCentralStore
from auditsync.cli import build_state_store
from auditsync.cli import export_main
from auditsync.cli import fallback_main
from auditsync.cli import format_summary
from auditsync.cli import load_factory
from auditsync.cli import reingest_main
from auditsync.config import AlertConfig
from auditsync.config import CentralStoreConfig
from auditsync.config import ExportConfig
from auditsync.config import FallbackConfig
from auditsync.config import ObjectStoreConfig
from auditsync.config import Settings
from auditsync.errors import ConfigurationError
from auditsync.fallback import FallbackWriter
from auditsync.reingest import ReingestSummary
from auditsync.state import JsonFileStateStore
from auditsync.state import RedisStateStore
from auditsync.sync_status import Destination
from auditsync.sync_status import SyncStatus
from auditsync.sync_status.schemas import utcnow
from tests.helpers.fakes import FakeObjectStorage
from tests.helpers.fakes import make_record

# Nothing listens on the discard port, so every central-store call is refused.
UNREACHABLE = CentralStoreConfig(
    url="http://127.0.0.1:9", service_key="test-key", timeout_seconds=2.0
)


def _settings(tmp_path, **overrides) -> Settings:
    data = {
        "fallback": FallbackConfig(
            directory=str(tmp_path / "fallback"),
            emergency_dir=str(tmp_path / "emergency"),
        ),
        "export": ExportConfig(checkpoint_dir=str(tmp_path / "checkpoints")),
        "alerts": AlertConfig(cache_dir=str(tmp_path / "cache")),
    }
    data.update(overrides)
    return Settings(**data)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


class TestBuildStateStore:
    def test_defaults_to_json_files(self, tmp_path):
        store = build_state_store(_settings(tmp_path), str(tmp_path / "s"))
        assert isinstance(store, JsonFileStateStore)

    def test_redis_when_client_given(self, tmp_path):
        redis = Redis.from_url("redis://127.0.0.1:1")
        store = build_state_store(_settings(tmp_path), str(tmp_path / "s"), redis)
        assert isinstance(store, RedisStateStore)


class TestLoadFactory:
    def test_resolves_callable(self):
        factory = load_factory("tests.helpers.fakes:object_storage_factory")
        assert isinstance(factory(ObjectStoreConfig()), FakeObjectStorage)

    @pytest.mark.parametrize(
        "path", ["", "no_colon", "tests.helpers.fakes:", "missing.module:factory"]
    )
    def test_bad_paths(self, path):
        with pytest.raises(ConfigurationError):
            load_factory(path)

    def test_missing_attribute(self):
        with pytest.raises(ConfigurationError, match="cannot load"):
            load_factory("tests.helpers.fakes:nope")


# ---------------------------------------------------------------------------
# auditsync-export
# ---------------------------------------------------------------------------


class TestExportMain:
    def test_missing_central_config(self, tmp_path):
        assert export_main(["s3"], settings=_settings(tmp_path)) == 1

    def test_missing_client_factory(self, tmp_path):
        settings = _settings(tmp_path, central=UNREACHABLE)
        assert export_main(["s3"], settings=settings) == 1

    def test_rejects_unknown_destination(self, tmp_path):
        with pytest.raises(SystemExit):
            export_main(["ftp"], settings=_settings(tmp_path))

    def test_unreachable_central_store_buffers_failure(self, tmp_path):
        settings = _settings(
            tmp_path,
            central=UNREACHABLE,
            object_store=ObjectStoreConfig(
                client_factory="tests.helpers.fakes:object_storage_factory"
            ),
        )

        assert export_main(["s3"], settings=settings) == 1

        writer = FallbackWriter(settings.fallback)
        files = writer.discover()
        assert len(files) == 1
        buffered = FallbackWriter.load(files[0])
        assert buffered.status == SyncStatus.FAILURE
        assert buffered.destination == Destination.S3
        assert (tmp_path / "cache" / "alert-suppression.json").exists()
        assert not (tmp_path / "checkpoints").exists()

    def test_batch_size_sets_event_page_size(self, tmp_path, monkeypatch):
        seen = []

        async def fake_fetch_all(self, table, params, *, page_size=1000):
            seen.append((table, page_size))
            return []

        monkeypatch.setattr(PostgrestCentralStore, "fetch_all", fake_fetch_all)
        settings = _settings(
            tmp_path,
            central=UNREACHABLE,
            object_store=ObjectStoreConfig(
                client_factory="tests.helpers.fakes:object_storage_factory"
            ),
            export=ExportConfig(checkpoint_dir=str(tmp_path / "checkpoints"), batch_size=250),
        )

        assert export_main(["s3"], settings=settings) == 0
        assert seen == [("pattern_moderation_log", 250)]


# ---------------------------------------------------------------------------
# auditsync-reingest
# ---------------------------------------------------------------------------


class TestReingestMain:
    def test_help(self, capsys):
        with pytest.raises(SystemExit) as exc:
            reingest_main(["--help"])
        assert exc.value.code == 0
        out = capsys.readouterr().out
        assert "--dry-run" in out
        assert "--verbose" in out

    def test_missing_central_config(self, tmp_path):
        assert reingest_main([], settings=_settings(tmp_path)) == 1

    async def _seed(self, settings, count):
        writer = FallbackWriter(settings.fallback)
        for i in range(count):
            await writer.write(
                make_record(timestamp=utcnow() - timedelta(seconds=i)), fallback_reason="r"
            )
        return writer

    def test_dry_run(self, tmp_path, capsys):
        settings = _settings(tmp_path, central=UNREACHABLE)
        writer = asyncio.run(self._seed(settings, 2))

        assert reingest_main(["--dry-run"], settings=settings) == 0

        out = capsys.readouterr().out
        assert "Total Files Processed: 2" in out
        assert "Would Insert: 2" in out
        assert "DRY-RUN MODE: No actual changes were made" in out
        assert len(writer.discover()) == 2

    def test_unreachable_central_store_aborts(self, tmp_path, capsys):
        settings = _settings(tmp_path, central=UNREACHABLE)
        assert reingest_main([], settings=settings) == 1
        assert "Central store connectivity failed" in capsys.readouterr().out


class TestFormatSummary:
    def test_lists_errors(self):
        text = format_summary(
            ReingestSummary(total_files=2, failed_inserts=1, errors=["a.json: boom"])
        )
        assert "Failed Inserts: 1" in text
        assert "  1. a.json: boom" in text
        assert "DRY-RUN" not in text


# ---------------------------------------------------------------------------
# auditsync-fallback
# ---------------------------------------------------------------------------


class TestFallbackMain:
    @pytest.fixture()
    def seeded(self, tmp_path):
        settings = _settings(tmp_path)
        writer = FallbackWriter(settings.fallback)

        async def seed():
            now = utcnow()
            await writer.write(make_record(timestamp=now), fallback_reason="r")
            await writer.write(
                make_record(
                    timestamp=now - timedelta(days=40),
                    status=SyncStatus.FAILURE,
                    error_message="boom",
                ),
                fallback_reason="r",
            )

        asyncio.run(seed())
        return settings, writer

    def test_list(self, seeded, capsys):
        settings, _ = seeded
        assert fallback_main(["list", "--status", "failure"], settings=settings) == 0
        rows = json.loads(capsys.readouterr().out)
        assert len(rows) == 1
        assert rows[0]["error_message"] == "boom"

    def test_stats(self, seeded, capsys):
        settings, _ = seeded
        assert fallback_main(["stats"], settings=settings) == 0
        stats = json.loads(capsys.readouterr().out)
        assert stats["total_logs"] == 2
        assert stats["failure_count"] == 1

    def test_cleanup(self, seeded, capsys):
        settings, writer = seeded
        assert fallback_main(["cleanup", "--days", "30"], settings=settings) == 0
        assert json.loads(capsys.readouterr().out) == {"deleted": 1}
        assert len(writer.discover()) == 1

    def test_resync_needs_central(self, seeded):
        settings, _ = seeded
        assert fallback_main(["resync"], settings=settings) == 1
