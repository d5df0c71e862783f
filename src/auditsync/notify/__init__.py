"""Operator notification channels and concurrent fan-out."""

from auditsync.notify.channels import build_channels
from auditsync.notify.channels import ChatWebhookChannel
from auditsync.notify.channels import EmailChannel
from auditsync.notify.channels import GenericWebhookChannel
from auditsync.notify.channels import NotificationChannel
from auditsync.notify.fanout import fan_out
from auditsync.notify.schemas import Notification
from auditsync.notify.schemas import NotificationField

__all__ = [
    "ChatWebhookChannel",
    "EmailChannel",
    "GenericWebhookChannel",
    "Notification",
    "NotificationChannel",
    "NotificationField",
    "build_channels",
    "fan_out",
]
