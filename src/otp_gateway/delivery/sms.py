"""SMS backend — posts messages to an HTTP SMS gateway."""

from __future__ import annotations

import logging

import httpx

from otp_gateway.config import settings
from otp_gateway.delivery.base import Channel, DeliveryBackend

logger = logging.getLogger(__name__)


class SmsBackend(DeliveryBackend):
    """Hands SMS messages to a gateway that accepts ``{to, from, text}`` JSON.

    Parameters
    ----------
    transport:
        Optional ``httpx`` transport, mainly so tests can plug in a
        ``httpx.MockTransport``.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    @property
    def channel(self) -> Channel:
        return Channel.SMS

    async def send(self, address: str, text: str) -> None:
        headers = {"Content-Type": "application/json"}
        if settings.sms_api_key:
            headers["Authorization"] = f"Bearer {settings.sms_api_key}"
        payload = {"to": address, "from": settings.sms_sender, "text": text}

        async with httpx.AsyncClient(
            transport=self._transport, timeout=settings.delivery_timeout_seconds
        ) as client:
            resp = await client.post(settings.sms_gateway_url, json=payload, headers=headers)

        if resp.is_success:
            logger.info("OTP SMS handed to gateway for %s", address)
            return
        logger.error("SMS gateway rejected message to %s: %s %s", address, resp.status_code, resp.text)
        resp.raise_for_status()
