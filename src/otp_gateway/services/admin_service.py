"""Admin service — bounds-checked policy changes and per-principal cleanup."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, ValidationError

from otp_gateway.config import settings
from otp_gateway.exceptions import InvalidPolicy
from otp_gateway.models.otp import OtpPolicy
from otp_gateway.services.otp_service import OtpService

logger = logging.getLogger(__name__)


class PolicyUpdate(BaseModel):
    """A replacement policy, constrained to the configured bounds."""

    length: int = Field(ge=settings.otp_min_length, le=settings.otp_max_length)
    ttl_seconds: int = Field(ge=settings.otp_min_ttl_seconds, le=settings.otp_max_ttl_seconds)


class AdminService:
    """Administrative operations layered on top of :class:`OtpService`."""

    def __init__(self, otp_service: OtpService) -> None:
        self._otp_service = otp_service

    async def get_policy(self) -> OtpPolicy:
        return await self._otp_service.get_policy()

    async def update_policy(self, length: int, ttl_seconds: int) -> OtpPolicy:
        """Validate the new values through :class:`PolicyUpdate`, then apply them."""
        try:
            update = PolicyUpdate(length=length, ttl_seconds=ttl_seconds)
        except ValidationError as exc:
            logger.warning("Rejected policy update length=%s ttl_seconds=%s", length, ttl_seconds)
            raise InvalidPolicy(str(exc)) from exc
        return await self._otp_service.update_policy(update.length, update.ttl_seconds)

    async def purge_principal_codes(self, principal_id: int) -> int:
        """Delete a principal's codes ahead of removing the principal itself."""
        count = await self._otp_service.purge_principal(principal_id)
        logger.info("Purged %d OTP codes of principal %s", count, principal_id)
        return count
