"""Persistence and directory interfaces consumed by the OTP engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from otp_gateway.delivery.base import Channel
from otp_gateway.models.otp import OtpCode, OtpPolicy, OtpStatus
from otp_gateway.models.principal import Principal


class OtpCodeRepository(ABC):
    """Storage for issued codes.

    Status changes only ever go through :meth:`conditional_transition` or
    :meth:`bulk_expire`, both of which must be a single conditional update
    in the underlying store.
    """

    @abstractmethod
    async def insert(self, code: OtpCode) -> OtpCode:
        """Persist a new code and return it with its id assigned.

        Raises ``CodeCollision`` if an active code already has the value.
        """

    @abstractmethod
    async def find_by_code(self, code: str) -> OtpCode | None:
        """Look up a code by value, system-wide."""

    @abstractmethod
    async def conditional_transition(
        self, code_id: int, from_status: OtpStatus, to_status: OtpStatus
    ) -> bool:
        """Move one code to *to_status* only if it is still in *from_status*.

        Returns ``True`` if this call performed the transition.
        """

    @abstractmethod
    async def bulk_expire(self, ttl: timedelta, now: datetime) -> int:
        """Expire every active code created before ``now - ttl``.

        Returns the number of codes transitioned.
        """

    @abstractmethod
    async def delete_all_for_principal(self, principal_id: int) -> int:
        """Remove every code owned by *principal_id*."""


class OtpPolicyRepository(ABC):
    """Storage for the policy singleton."""

    @abstractmethod
    async def read(self) -> OtpPolicy:
        """Return the policy currently in effect."""

    @abstractmethod
    async def replace(self, length: int, ttl_seconds: int) -> OtpPolicy:
        """Replace the policy wholesale."""

    @abstractmethod
    async def init_default(self, length: int, ttl_seconds: int) -> OtpPolicy:
        """Create the policy row with the given values if none exists yet."""


class PrincipalDirectory(ABC):
    """Read-only view of principals, owned by another part of the system."""

    @abstractmethod
    async def get_principal(self, principal_id: int) -> Principal | None:
        """Return the principal, or ``None`` if absent or inactive."""

    @abstractmethod
    async def resolve_address(self, principal_id: int, channel: Channel) -> str | None:
        """Return the principal's address for *channel*, or ``None``."""
