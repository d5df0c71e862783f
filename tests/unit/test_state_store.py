"""Unit tests for the JSON-file state store."""

from __future__ import annotations

import asyncio

import pytest

from auditsync.state import JsonFileStateStore
from auditsync.state import StateStore


class TestJsonFileStateStore:
    async def test_missing_key_is_none(self, state_store):
        assert await state_store.get("nothing") is None

    async def test_set_then_get(self, state_store):
        await state_store.set("audit-logs-export-s3", {"a": 1, "b": ["x"]})
        assert await state_store.get("audit-logs-export-s3") == {"a": 1, "b": ["x"]}

    async def test_overwrite(self, state_store):
        await state_store.set("k", {"v": 1})
        await state_store.set("k", {"v": 2})
        assert await state_store.get("k") == {"v": 2}

    async def test_creates_directory_and_leaves_no_temp_file(self, tmp_path):
        store = JsonFileStateStore(tmp_path / "deep" / "state")
        await store.set("k", {"v": 1})
        assert store.path_for("k").exists()
        assert [p.name for p in store.directory.iterdir()] == ["k.json"]

    async def test_corrupt_file_reads_as_none(self, state_store):
        path = state_store.path_for("k")
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")
        assert await state_store.get("k") is None

    async def test_non_object_reads_as_none(self, state_store):
        path = state_store.path_for("k")
        path.parent.mkdir(parents=True)
        path.write_text("[1, 2]", encoding="utf-8")
        assert await state_store.get("k") is None

    @pytest.mark.parametrize("key", ["../escape", "", "a/b", ".hidden"])
    def test_rejects_unsafe_keys(self, state_store, key):
        with pytest.raises(ValueError):
            state_store.path_for(key)

    async def test_concurrent_writers_serialize(self, state_store):
        await asyncio.gather(*(state_store.set("k", {"v": i}) for i in range(10)))
        assert (await state_store.get("k"))["v"] in range(10)

    def test_satisfies_protocol(self, state_store):
        assert isinstance(state_store, StateStore)
