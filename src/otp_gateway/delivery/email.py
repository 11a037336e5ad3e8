"""Email backend — sends codes via async SMTP."""

from __future__ import annotations

import logging
from email.message import EmailMessage

import aiosmtplib

from otp_gateway.config import settings
from otp_gateway.delivery.base import Channel, DeliveryBackend

logger = logging.getLogger(__name__)


class EmailBackend(DeliveryBackend):
    """Sends transactional emails using the configured SMTP server."""

    subject = "Your OTP Code"

    @property
    def channel(self) -> Channel:
        return Channel.EMAIL

    async def send(self, address: str, text: str) -> None:
        msg = EmailMessage()
        msg["Subject"] = self.subject
        msg["From"] = settings.email_from
        msg["To"] = address
        msg.set_content(text)

        logger.info("Sending OTP email to %s", address)

        await aiosmtplib.send(
            msg,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username or None,
            password=settings.smtp_password or None,
            start_tls=settings.smtp_start_tls,
            timeout=settings.delivery_timeout_seconds,
        )

        logger.info("OTP email sent to %s", address)
