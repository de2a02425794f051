"""
External delivery channels for the notification outbox.

Each channel sends one notification to one user within
EXTERNAL_TIMEOUT_SECONDS and raises ExternalDependencyError on failure.
"""
from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

import requests

from app.core.config import Settings
from app.core.errors import ExternalDependencyError
from app.models.notification import Notification
from app.models.user import User

logger = logging.getLogger(__name__)


class DeliveryChannel(Protocol):
    name: str

    def send(self, user: User, notification: Notification) -> None:
        ...


class SlackWebhookChannel:
    name = "slack"

    def __init__(self, webhook_url: str, timeout: float):
        self.webhook_url = webhook_url
        self.timeout = timeout

    def send(self, user: User, notification: Notification) -> None:
        payload = {
            "text": f"*{notification.title}*\n{notification.message}",
            "metadata": {"user_id": user.id, "notification_id": notification.id},
        }
        try:
            resp = requests.post(self.webhook_url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise ExternalDependencyError("slack", str(exc)) from exc


class SmtpEmailChannel:
    name = "email"

    def __init__(self, host: str, port: int, sender: str, timeout: float):
        self.host = host
        self.port = port
        self.sender = sender
        self.timeout = timeout

    def send(self, user: User, notification: Notification) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = user.email
        msg["Subject"] = notification.title
        msg.set_content(notification.message)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise ExternalDependencyError("email", str(exc)) from exc


def build_channels(settings: Settings) -> list[DeliveryChannel]:
    channels: list[DeliveryChannel] = []
    if settings.SMTP_HOST:
        channels.append(SmtpEmailChannel(
            settings.SMTP_HOST,
            settings.SMTP_PORT,
            settings.SMTP_SENDER,
            settings.EXTERNAL_TIMEOUT_SECONDS,
        ))
    if settings.ENABLE_SLACK_OUTBOX:
        if settings.SLACK_WEBHOOK_URL:
            channels.append(SlackWebhookChannel(
                settings.SLACK_WEBHOOK_URL, settings.EXTERNAL_TIMEOUT_SECONDS
            ))
        else:
            logger.warning("ENABLE_SLACK_OUTBOX is set but SLACK_WEBHOOK_URL is empty")
    return channels
