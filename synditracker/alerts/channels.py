"""Notification channel implementations for alert delivery.

Provides an ABC for notification channels plus concrete implementations
for Discord-style webhooks and SMTP email. Channels never raise on
delivery failure: they log and return False so one broken channel cannot
fail an ingestion request or block the other channel.
"""

import asyncio
import logging
import re
import smtplib
import ssl
from abc import ABC, abstractmethod
from email.message import EmailMessage

import httpx

from synditracker.alerts.schemas import AlertMessage

logger = logging.getLogger(__name__)

_RECIPIENT_SPLIT = re.compile(r"[,\n\r]+")


def parse_recipients(raw: str | None, fallback: str) -> list[str]:
    """Split a comma/newline separated recipient list.

    Entries are trimmed and blanks dropped. An empty result falls back
    to the single ``fallback`` address.
    """
    recipients = [r.strip() for r in _RECIPIENT_SPLIT.split(raw or "")]
    recipients = [r for r in recipients if r]
    return recipients or [fallback]


def is_allowed_webhook_url(url: str | None, prefixes: tuple[str, ...]) -> bool:
    """True if the URL starts with one of the allowed provider prefixes."""
    if not url:
        return False
    return any(url.startswith(p) for p in prefixes)


class NotificationChannel(ABC):
    """Abstract base for notification delivery channels."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this channel (e.g. 'webhook', 'email')."""

    @abstractmethod
    async def send(self, message: AlertMessage) -> bool:
        """Deliver a message through this channel.

        Args:
            message: Composed alert.

        Returns:
            True if delivery succeeded, False otherwise.
        """


class WebhookChannel(NotificationChannel):
    """Posts alerts as a Discord-style embed to a webhook URL.

    Creates a new ``httpx.AsyncClient`` per call (short-lived, no pooling).
    """

    def __init__(self, url: str, timeout: float = 5.0) -> None:
        self._url = url
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "webhook"

    def _build_payload(self, message: AlertMessage) -> dict:
        fields = list(message.fields)
        if message.dashboard_url:
            fields.append({
                "name": "Pulse Command",
                "value": f"[View Dashboard]({message.dashboard_url})",
                "inline": False,
            })

        embed: dict = {
            "title": message.title,
            "description": message.description,
            "color": message.color,
            "footer": {"text": message.footer},
            "timestamp": message.timestamp.isoformat(),
        }
        if fields:
            embed["fields"] = fields
        if message.dashboard_url:
            embed["url"] = message.dashboard_url

        return {"username": message.username, "embeds": [embed]}

    async def send(self, message: AlertMessage) -> bool:
        payload = self._build_payload(message)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json=payload)
                if resp.is_success:
                    logger.info("Webhook %s alert sent", message.kind.value)
                    return True
                logger.error(
                    "Webhook %s alert failed with status %d",
                    message.kind.value, resp.status_code,
                )
                return False
        except httpx.TimeoutException:
            logger.warning("Webhook %s alert timed out", message.kind.value)
            return False
        except Exception as e:
            logger.error("Webhook %s alert failed: %s", message.kind.value, e)
            return False


class EmailChannel(NotificationChannel):
    """Sends plain-text alert emails over SMTP.

    ``smtplib`` is blocking, so delivery runs in a worker thread and is
    bounded by the same timeout as the webhook.
    """

    def __init__(
        self,
        recipients: list[str],
        host: str | None,
        port: int = 587,
        sender: str = "synditracker@localhost",
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 5.0,
    ) -> None:
        self._recipients = recipients
        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "email"

    @property
    def recipients(self) -> list[str]:
        return list(self._recipients)

    def _build_message(self, message: AlertMessage) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = message.subject or message.title
        msg["From"] = self._sender
        msg["To"] = ", ".join(self._recipients)
        msg.set_content(message.body or message.description)
        return msg

    def _send_blocking(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._use_tls:
                server.starttls(context=ssl.create_default_context())
            if self._username and self._password:
                server.login(self._username, self._password)
            server.send_message(msg)

    async def send(self, message: AlertMessage) -> bool:
        if not self._host:
            logger.info("Email %s alert skipped: no SMTP host configured", message.kind.value)
            return False

        msg = self._build_message(message)
        try:
            async with asyncio.timeout(self._timeout):
                await asyncio.to_thread(self._send_blocking, msg)
        except TimeoutError:
            logger.warning("Email %s alert timed out", message.kind.value)
            return False
        except Exception as e:
            logger.error("Email %s alert failed: %s", message.kind.value, e)
            return False

        logger.info(
            "Email %s alert sent to %d recipient(s)",
            message.kind.value, len(self._recipients),
        )
        return True
