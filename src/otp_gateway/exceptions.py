"""Error taxonomy shared by the OTP engine, the dispatcher and the host."""

from __future__ import annotations


class OtpGatewayError(Exception):
    """Base class for every error raised by the gateway core."""


class PrincipalNotFound(OtpGatewayError):
    """The principal does not exist (or has no address for the channel)."""

    def __init__(self, principal_id: int) -> None:
        super().__init__(f"Principal {principal_id} not found")
        self.principal_id = principal_id


class UnsupportedChannel(OtpGatewayError, ValueError):
    """The requested delivery channel is not one of the known variants."""

    def __init__(self, channel: object) -> None:
        super().__init__(f"Unsupported channel: {channel!r}")
        self.channel = channel


class DeliveryFailed(OtpGatewayError):
    """A delivery backend could not hand the message off."""

    def __init__(self, channel: str, address: str, reason: str) -> None:
        super().__init__(f"Delivery via {channel} to {address} failed: {reason}")
        self.channel = channel
        self.address = address
        self.reason = reason


class PersistenceUnavailable(OtpGatewayError):
    """The datastore rejected or could not run a request."""


class CodeCollision(OtpGatewayError):
    """Another active code already holds this value."""


class CodeSpaceExhausted(OtpGatewayError):
    """No free code value was found within the allowed number of draws."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"No unused code value after {attempts} attempts")
        self.attempts = attempts


class InvalidPolicy(OtpGatewayError, ValueError):
    """A policy update falls outside the allowed bounds."""
