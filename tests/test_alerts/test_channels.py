"""Tests for notification channels and recipient/URL helpers."""

import smtplib
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from synditracker.alerts.channels import (
    EmailChannel,
    WebhookChannel,
    is_allowed_webhook_url,
    parse_recipients,
)
from synditracker.alerts.messages import compose_spike, compose_test

DISCORD = "https://discord.com/api/webhooks/123/abc"
PREFIXES = ("https://discord.com/api/webhooks/", "https://discordapp.com/api/webhooks/")


def _mock_response(status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code=status_code, request=httpx.Request("POST", DISCORD))


def _patched_client(mock_client_cls, response=None, side_effect=None):
    mock_client = AsyncMock()
    if side_effect is not None:
        mock_client.post.side_effect = side_effect
    else:
        mock_client.post.return_value = response
    mock_client_cls.return_value.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client_cls.return_value.__aexit__ = AsyncMock(return_value=False)
    return mock_client


@pytest.fixture
def spike_message():
    return compose_spike(7, 5, 1, "https://hub.example/dashboard")


# ── Helpers ────────────────────────────────────────────


class TestParseRecipients:
    def test_commas_and_newlines(self):
        raw = "a@example.com, b@example.com\nc@example.com\r\n"
        assert parse_recipients(raw, "admin@example.com") == [
            "a@example.com", "b@example.com", "c@example.com",
        ]

    def test_blank_entries_dropped(self):
        assert parse_recipients(" ,, a@example.com ,", "x@example.com") == ["a@example.com"]

    def test_empty_falls_back(self):
        assert parse_recipients("", "admin@example.com") == ["admin@example.com"]
        assert parse_recipients(None, "admin@example.com") == ["admin@example.com"]
        assert parse_recipients(" , \n", "admin@example.com") == ["admin@example.com"]


class TestWebhookAllowList:
    def test_discord_prefixes_allowed(self):
        assert is_allowed_webhook_url(DISCORD, PREFIXES)
        assert is_allowed_webhook_url("https://discordapp.com/api/webhooks/1/x", PREFIXES)

    def test_other_urls_rejected(self):
        assert not is_allowed_webhook_url("https://evil.example/api/webhooks/", PREFIXES)
        assert not is_allowed_webhook_url("http://discord.com/api/webhooks/1/x", PREFIXES)
        assert not is_allowed_webhook_url("", PREFIXES)
        assert not is_allowed_webhook_url(None, PREFIXES)


# ── WebhookChannel ─────────────────────────────────────


class TestWebhookChannel:
    def test_payload_shape(self, spike_message):
        payload = WebhookChannel(DISCORD)._build_payload(spike_message)

        assert payload["username"] == "Synditracker Hub"
        assert len(payload["embeds"]) == 1
        embed = payload["embeds"][0]
        assert embed["title"] == "🚀 DUPLICATE SPIKE DETECTED"
        assert embed["color"] == 15158332
        assert embed["footer"] == {"text": "Synditracker Spike Monitor"}
        assert embed["timestamp"] == spike_message.timestamp.isoformat()
        assert embed["url"] == "https://hub.example/dashboard"
        names = [f["name"] for f in embed["fields"]]
        assert names == ["Duplicates Found", "Window", "Threshold", "Pulse Command"]
        assert "https://hub.example/dashboard" in embed["fields"][-1]["value"]

    def test_build_payload_does_not_mutate_message(self, spike_message):
        WebhookChannel(DISCORD)._build_payload(spike_message)
        assert len(spike_message.fields) == 3

    @pytest.mark.asyncio
    async def test_successful_send(self, spike_message):
        channel = WebhookChannel(DISCORD)
        with patch("synditracker.alerts.channels.httpx.AsyncClient") as mock_client_cls:
            mock_client = _patched_client(mock_client_cls, response=_mock_response(204))
            result = await channel.send(spike_message)

        assert result is True
        mock_client.post.assert_awaited_once()
        assert mock_client.post.call_args.args[0] == DISCORD

    @pytest.mark.asyncio
    async def test_http_error_returns_false(self, spike_message):
        channel = WebhookChannel(DISCORD)
        with patch("synditracker.alerts.channels.httpx.AsyncClient") as mock_client_cls:
            _patched_client(mock_client_cls, response=_mock_response(500))
            assert await channel.send(spike_message) is False

    @pytest.mark.asyncio
    async def test_timeout_returns_false(self, spike_message):
        channel = WebhookChannel(DISCORD, timeout=0.1)
        with patch("synditracker.alerts.channels.httpx.AsyncClient") as mock_client_cls:
            _patched_client(mock_client_cls, side_effect=httpx.ReadTimeout("slow"))
            assert await channel.send(spike_message) is False

    @pytest.mark.asyncio
    async def test_connection_error_returns_false(self, spike_message):
        channel = WebhookChannel(DISCORD)
        with patch("synditracker.alerts.channels.httpx.AsyncClient") as mock_client_cls:
            _patched_client(mock_client_cls, side_effect=httpx.ConnectError("refused"))
            assert await channel.send(spike_message) is False

    def test_test_message_has_no_extra_fields(self):
        message = compose_test("Site", "https://a.example", "")
        embed = WebhookChannel(DISCORD)._build_payload(message)["embeds"][0]
        assert "fields" not in embed
        assert "url" not in embed


# ── EmailChannel ───────────────────────────────────────


class TestEmailChannel:
    def test_message_headers(self, spike_message):
        channel = EmailChannel(["a@example.com", "b@example.com"], host="smtp.example")
        msg = channel._build_message(spike_message)
        assert msg["Subject"] == "[Synditracker Alert] Duplicate Syndication Spike Detected"
        assert msg["To"] == "a@example.com, b@example.com"
        assert "Total duplicates in the last 1 hour(s): 7" in msg.get_content()

    @pytest.mark.asyncio
    async def test_skipped_without_host(self, spike_message):
        channel = EmailChannel(["a@example.com"], host=None)
        with patch("synditracker.alerts.channels.smtplib.SMTP") as smtp:
            assert await channel.send(spike_message) is False
        smtp.assert_not_called()

    @pytest.mark.asyncio
    async def test_successful_send(self, spike_message):
        channel = EmailChannel(
            ["a@example.com"], host="smtp.example", port=2525,
            username="user", password="pw",
        )
        with patch("synditracker.alerts.channels.smtplib.SMTP") as smtp:
            server = MagicMock()
            smtp.return_value.__enter__.return_value = server
            result = await channel.send(spike_message)

        assert result is True
        smtp.assert_called_once_with("smtp.example", 2525, timeout=5.0)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("user", "pw")
        server.send_message.assert_called_once()

    @pytest.mark.asyncio
    async def test_smtp_failure_returns_false(self, spike_message):
        channel = EmailChannel(["a@example.com"], host="smtp.example", use_tls=False)
        with patch("synditracker.alerts.channels.smtplib.SMTP") as smtp:
            smtp.side_effect = smtplib.SMTPConnectError(421, "busy")
            assert await channel.send(spike_message) is False
