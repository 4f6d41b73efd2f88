"""Outbound notification transports."""

from __future__ import annotations

import asyncio
import smtplib
from email.message import EmailMessage
from typing import Any

import httpx

from logalarm.config import AlarmConfig

ALARM_COLOR_HEX = "#FF0000"
# Entity markers of Telegram's legacy Markdown parse mode.
TELEGRAM_MARKDOWN_SPECIALS = ("_", "*", "`", "[")


def escape_telegram_markdown(text: str) -> str:
    for char in TELEGRAM_MARKDOWN_SPECIALS:
        text = text.replace(char, f"\\{char}")
    return text


def build_http_client(config: AlarmConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=config.http_timeout_seconds)


class AlarmTransport:
    """Transport interface.

    ``send`` raises on failure; the dispatcher owns error isolation.
    """

    name = "transport"

    def is_configured(self, config: AlarmConfig) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    async def send(
        self, message: str, config: AlarmConfig
    ) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class HttpTransport(AlarmTransport):
    """Base for transports that POST JSON with a shared ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.client = client

    async def post_json(
        self, url: str, payload: dict[str, Any], config: AlarmConfig
    ) -> httpx.Response:
        if self.client is not None:
            response = await self.client.post(url, json=payload)
        else:
            async with build_http_client(config) as client:
                response = await client.post(url, json=payload)
        response.raise_for_status()
        return response


class SlackWebhookTransport(HttpTransport):
    name = "slack"

    def is_configured(self, config: AlarmConfig) -> bool:
        return bool(config.slack_webhook_url)

    @staticmethod
    def build_payload(message: str, config: AlarmConfig) -> dict[str, Any]:
        subject = config.notification_email_subject
        return {
            "text": subject,
            "attachments": [
                {
                    "title": subject,
                    "text": message,
                    "color": ALARM_COLOR_HEX,
                    "fields": [{"title": "Priority", "value": "High", "short": True}],
                }
            ],
        }

    async def send(self, message: str, config: AlarmConfig) -> None:
        await self.post_json(
            config.slack_webhook_url, self.build_payload(message, config), config
        )


class DiscordWebhookTransport(HttpTransport):
    name = "discord"

    def is_configured(self, config: AlarmConfig) -> bool:
        return bool(config.discord_webhook_url)

    @staticmethod
    def build_payload(message: str, config: AlarmConfig) -> dict[str, Any]:
        subject = config.notification_email_subject
        return {
            "content": subject,
            "embeds": [
                {
                    "title": subject,
                    # Discord caps embed descriptions at 4096 characters.
                    "description": message[:4096],
                    "color": int(ALARM_COLOR_HEX.lstrip("#"), 16),
                    "fields": [{"name": "Priority", "value": "High", "inline": True}],
                }
            ],
        }

    async def send(self, message: str, config: AlarmConfig) -> None:
        await self.post_json(
            config.discord_webhook_url, self.build_payload(message, config), config
        )


class TelegramTransport(HttpTransport):
    name = "telegram"

    def is_configured(self, config: AlarmConfig) -> bool:
        return bool(config.telegram_bot_token and config.telegram_chat_id)

    @staticmethod
    def build_url(config: AlarmConfig) -> str:
        base = config.telegram_api_url.rstrip("/")
        return f"{base}/bot{config.telegram_bot_token}/sendMessage"

    async def send(self, message: str, config: AlarmConfig) -> None:
        payload = {
            "chat_id": config.telegram_chat_id,
            "text": escape_telegram_markdown(message),
            "parse_mode": "Markdown",
        }
        await self.post_json(self.build_url(config), payload, config)


class EmailTransport(AlarmTransport):
    """Plain-text SMTP mail to every configured recipient."""

    name = "email"

    def __init__(self, smtp_factory: Any = smtplib.SMTP):
        self.smtp_factory = smtp_factory

    def is_configured(self, config: AlarmConfig) -> bool:
        return bool(config.notification_email)

    def build_message(self, message: str, config: AlarmConfig) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = config.notification_email_subject
        msg["From"] = config.smtp_sender
        msg["To"] = ", ".join(config.notification_email)
        msg.set_content(message)
        return msg

    def _deliver(self, msg: EmailMessage, config: AlarmConfig) -> None:
        with self.smtp_factory(
            config.smtp_host, config.smtp_port, timeout=config.http_timeout_seconds
        ) as smtp:
            smtp.send_message(msg)

    async def send(self, message: str, config: AlarmConfig) -> None:
        # smtplib blocks; keep the event loop free for the other transports.
        await asyncio.to_thread(self._deliver, self.build_message(message, config), config)


def default_transports(client: httpx.AsyncClient | None = None) -> list[AlarmTransport]:
    return [
        SlackWebhookTransport(client),
        DiscordWebhookTransport(client),
        TelegramTransport(client),
        EmailTransport(),
    ]
