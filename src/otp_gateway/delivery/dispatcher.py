"""Delivery dispatcher — maps a channel to its backend and forwards messages."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from otp_gateway.delivery.base import Channel, DeliveryBackend
from otp_gateway.delivery.chatbot import ChatBotBackend
from otp_gateway.delivery.email import EmailBackend
from otp_gateway.delivery.file import FileBackend
from otp_gateway.delivery.sms import SmsBackend
from otp_gateway.exceptions import DeliveryFailed, UnsupportedChannel

logger = logging.getLogger(__name__)


def render_otp_message(code: str) -> str:
    """Plaintext body sent on every channel."""
    return f"Your one-time confirmation code is: {code}"


def default_backends() -> dict[Channel, DeliveryBackend]:
    return {
        Channel.EMAIL: EmailBackend(),
        Channel.SMS: SmsBackend(),
        Channel.CHAT_BOT: ChatBotBackend(),
        Channel.FILE: FileBackend(),
    }


class DeliveryDispatcher:
    """Stateless router from a channel selector to a delivery backend.

    Backends are fire-and-forget: a successful ``send`` only means the
    transport accepted the message.
    """

    def __init__(self, backends: Mapping[Channel, DeliveryBackend] | None = None) -> None:
        self._backends = dict(backends) if backends is not None else default_backends()

    def resolve(self, channel: Channel | str) -> DeliveryBackend:
        """Return the backend bound to *channel*.

        Raises ``UnsupportedChannel`` for anything outside :class:`Channel`
        or for a channel with no backend configured.
        """
        try:
            channel = Channel(channel)
        except ValueError:
            raise UnsupportedChannel(channel) from None
        backend = self._backends.get(channel)
        if backend is None:
            raise UnsupportedChannel(channel)
        return backend

    async def send(self, backend: DeliveryBackend, address: str, payload: str) -> None:
        """Hand *payload* to *backend*, wrapping transport errors in ``DeliveryFailed``."""
        try:
            await backend.send(address, payload)
        except DeliveryFailed:
            raise
        except Exception as exc:
            logger.error("Delivery via %s to %s failed: %s", backend.channel.value, address, exc)
            raise DeliveryFailed(backend.channel.value, address, str(exc) or type(exc).__name__) from exc

    async def deliver(self, channel: Channel | str, address: str, payload: str) -> None:
        await self.send(self.resolve(channel), address, payload)
