"""Delivery base — channel variants and the interface every backend implements."""

import enum
from abc import ABC, abstractmethod


class Channel(str, enum.Enum):
    """Closed set of delivery channels."""

    EMAIL = "EMAIL"
    SMS = "SMS"
    CHAT_BOT = "CHAT_BOT"
    FILE = "FILE"


class DeliveryBackend(ABC):
    """Abstract base class for all delivery backends.

    A backend hands a rendered plaintext message to its transport.  It
    returns once the hand-off succeeded and raises on any failure; the
    dispatcher translates failures into ``DeliveryFailed``.
    """

    @property
    @abstractmethod
    def channel(self) -> Channel:
        """The channel this backend serves (used in logs and errors)."""

    @abstractmethod
    async def send(self, address: str, text: str) -> None:
        """Deliver *text* to *address*.

        Parameters
        ----------
        address:
            Channel-specific recipient: an email address, an E.164 phone
            number, a chat id or a file name.
        text:
            The rendered message body.
        """
