"""Concurrent delivery to several channels with per-channel isolation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from auditsync.notify.channels import NotificationChannel
from auditsync.notify.schemas import Notification
from auditsync.timeouts import bounded

logger = logging.getLogger(__name__)


async def fan_out(
    channels: Sequence[NotificationChannel],
    notification: Notification,
    *,
    timeout_seconds: float | None = 10.0,
) -> dict[str, bool]:
    """Deliver *notification* on every channel concurrently.

    Waits for all channels; a failing or slow channel never cancels the
    others.  Returns ``{channel name: delivered}``.
    """
    if not channels:
        return {}

    results = await asyncio.gather(
        *(
            bounded(
                channel.deliver(notification),
                timeout_seconds=timeout_seconds,
                operation=f"notify.{channel.name}",
            )
            for channel in channels
        ),
        return_exceptions=True,
    )

    outcome: dict[str, bool] = {}
    for channel, result in zip(channels, results):
        if isinstance(result, BaseException):
            logger.error("%s notification failed: %s", channel.name, result)
            outcome[channel.name] = False
        else:
            logger.info("%s notification sent", channel.name)
            outcome[channel.name] = True
    return outcome
