"""Persisted keyed state for checkpoints and alert suppression.

Two backends share one small async contract:

* :class:`JsonFileStateStore` keeps one pretty-printed JSON document per key
  in a directory.  Writes go to a temporary sibling first and are moved into
  place with ``os.replace`` so a crash never leaves a half-written file.
* :class:`RedisStateStore` keeps each document as a JSON string under
  ``{prefix}:{key}``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from functools import partial
from pathlib import Path
from typing import Any
from typing import Protocol
from typing import runtime_checkable

from redis.asyncio import Redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError  # type: ignore[import-untyped]

from auditsync.errors import TransientIOError

logger = logging.getLogger(__name__)

_SAFE_KEY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


@runtime_checkable
class StateStore(Protocol):
    """Keyed JSON documents that survive process restarts."""

    async def get(self, key: str) -> dict[str, Any] | None: ...

    async def set(self, key: str, value: dict[str, Any]) -> None: ...


def _check_key(key: str) -> str:
    if not _SAFE_KEY_RE.match(key):
        raise ValueError(f"state key {key!r} is not filesystem-safe")
    return key


# ---------------------------------------------------------------------------
# JSON files
# ---------------------------------------------------------------------------


class JsonFileStateStore:
    """One JSON file per key under *directory*."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self._lock = asyncio.Lock()

    def path_for(self, key: str) -> Path:
        return self.directory / f"{_check_key(key)}.json"

    async def get(self, key: str) -> dict[str, Any] | None:
        path = self.path_for(key)
        async with self._lock:
            return await asyncio.to_thread(self._read, path)

    async def set(self, key: str, value: dict[str, Any]) -> None:
        path = self.path_for(key)
        data = json.dumps(value, indent=2, sort_keys=True, default=str)
        async with self._lock:
            await asyncio.to_thread(partial(self._write, path, data))

    @staticmethod
    def _read(path: Path) -> dict[str, Any] | None:
        if not path.exists():
            return None
        try:
            loaded = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt state file %s", path)
            return None
        if not isinstance(loaded, dict):
            logger.warning("Ignoring non-object state file %s", path)
            return None
        return loaded

    @staticmethod
    def _write(path: Path, data: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f".{path.name}.tmp")
        with open(tmp, "w", encoding="utf-8") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


class RedisStateStore:
    """JSON documents stored as Redis strings."""

    def __init__(self, redis: Redis, *, prefix: str = "auditsync:state") -> None:
        self._redis = redis
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{_check_key(key)}"

    async def get(self, key: str) -> dict[str, Any] | None:
        try:
            raw = await self._redis.get(self._key(key))
        except (RedisError, OSError) as exc:
            raise TransientIOError(f"redis get failed: {exc}") from exc
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            loaded = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt state value at %s", self._key(key))
            return None
        return loaded if isinstance(loaded, dict) else None

    async def set(self, key: str, value: dict[str, Any]) -> None:
        data = json.dumps(value, sort_keys=True, default=str)
        try:
            await self._redis.set(self._key(key), data)
        except (RedisError, OSError) as exc:
            raise TransientIOError(f"redis set failed: {exc}") from exc

    async def close(self) -> None:
        await self._redis.aclose()
