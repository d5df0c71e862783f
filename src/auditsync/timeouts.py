"""Bounded execution of external calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from auditsync.errors import TransientIOError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def bounded(
    awaitable: Awaitable[T],
    *,
    timeout_seconds: float | None,
    operation: str,
) -> T:
    """Await *awaitable*, cancelling it after *timeout_seconds*.

    A timeout is reported as :class:`TransientIOError` so callers handle it
    like any other unreachable endpoint.  ``None`` disables the bound.
    """
    if timeout_seconds is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        logger.warning("%s timed out after %.1fs", operation, timeout_seconds)
        raise TransientIOError(
            f"{operation} timed out after {timeout_seconds:g}s"
        ) from exc
