"""Notification channels: chat webhook, generic webhook, SMTP email."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from functools import partial
from typing import Protocol
from typing import runtime_checkable

from auditsync.config import NotificationConfig
from auditsync.http import send_json
from auditsync.notify.schemas import Notification

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationChannel(Protocol):
    """A destination for operator notifications."""

    name: str

    async def deliver(self, notification: Notification) -> None: ...


class ChatWebhookChannel:
    """Incoming-webhook chat message with one attachment of fields."""

    name = "chat"

    def __init__(self, url: str, *, timeout_seconds: float = 10.0) -> None:
        self._url = url
        self._timeout_seconds = timeout_seconds

    @staticmethod
    def render(notification: Notification) -> dict:
        attachment: dict = {
            "color": notification.color,
            "title": notification.title,
            "fields": [f.model_dump() for f in notification.fields],
        }
        if notification.footer:
            attachment["footer"] = notification.footer
        if notification.ts is not None:
            attachment["ts"] = notification.ts
        return {"text": notification.text, "attachments": [attachment]}

    async def deliver(self, notification: Notification) -> None:
        await asyncio.to_thread(
            partial(
                send_json,
                "POST",
                self._url,
                payload=self.render(notification),
                timeout_seconds=self._timeout_seconds,
            )
        )


class GenericWebhookChannel:
    """Flat JSON event for arbitrary automation endpoints."""

    name = "webhook"

    def __init__(self, url: str, *, timeout_seconds: float = 10.0) -> None:
        self._url = url
        self._timeout_seconds = timeout_seconds

    @staticmethod
    def render(notification: Notification) -> dict:
        return {"event": notification.event, **notification.event_payload}

    async def deliver(self, notification: Notification) -> None:
        await asyncio.to_thread(
            partial(
                send_json,
                "POST",
                self._url,
                payload=self.render(notification),
                timeout_seconds=self._timeout_seconds,
            )
        )


class EmailChannel:
    """Best-effort plain-text email over SMTP."""

    name = "email"

    def __init__(self, config: NotificationConfig) -> None:
        self._config = config

    def render(self, notification: Notification) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self._config.email_from
        message["To"] = self._config.email_to
        message["Subject"] = notification.title
        message.set_content(notification.plain_text())
        return message

    async def deliver(self, notification: Notification) -> None:
        await asyncio.to_thread(self._send, self.render(notification))

    def _send(self, message: EmailMessage) -> None:
        cfg = self._config
        with smtplib.SMTP(
            cfg.smtp_host or "localhost",
            cfg.smtp_port,
            timeout=cfg.timeout_seconds,
        ) as smtp:
            if cfg.smtp_use_tls:
                smtp.starttls()
            if cfg.smtp_user:
                smtp.login(cfg.smtp_user, cfg.smtp_password or "")
            smtp.send_message(message)


def build_channels(
    config: NotificationConfig,
    *,
    include_email: bool = True,
) -> list[NotificationChannel]:
    """Channels whose endpoints are configured; missing ones are skipped."""
    channels: list[NotificationChannel] = []
    if config.chat_webhook_url:
        channels.append(
            ChatWebhookChannel(
                config.chat_webhook_url, timeout_seconds=config.timeout_seconds
            )
        )
    else:
        logger.warning("Chat webhook URL not configured, skipping chat channel")
    if config.generic_webhook_url:
        channels.append(
            GenericWebhookChannel(
                config.generic_webhook_url, timeout_seconds=config.timeout_seconds
            )
        )
    if include_email:
        if config.email_enabled:
            channels.append(EmailChannel(config))
        else:
            logger.warning("Email configuration incomplete, skipping email channel")
    return channels
