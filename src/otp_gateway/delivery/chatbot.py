"""Chat-bot backend — sends codes through a bot's ``sendMessage`` endpoint."""

from __future__ import annotations

import logging

import httpx

from otp_gateway.config import settings
from otp_gateway.delivery.base import Channel, DeliveryBackend

logger = logging.getLogger(__name__)


class ChatBotError(RuntimeError):
    pass


class ChatBotBackend(DeliveryBackend):
    """Telegram-style bot API client; the address is the target chat id."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    @property
    def channel(self) -> Channel:
        return Channel.CHAT_BOT

    async def send(self, address: str, text: str) -> None:
        if not settings.chatbot_token:
            raise ChatBotError("Chat-bot token is not configured")

        url = f"{settings.chatbot_api_base_url.rstrip('/')}/bot{settings.chatbot_token}/sendMessage"
        payload = {"chat_id": address, "text": text}

        async with httpx.AsyncClient(
            transport=self._transport, timeout=settings.delivery_timeout_seconds
        ) as client:
            resp = await client.post(url, json=payload)

        if resp.status_code != 200:
            logger.error("Failed to send chat message to %s: %s %s", address, resp.status_code, resp.text)
            raise ChatBotError(f"Bot API returned {resp.status_code}")
        if not resp.json().get("ok", False):
            raise ChatBotError(resp.json().get("description", "Bot API refused the message"))
        logger.info("OTP chat message sent to %s", address)
