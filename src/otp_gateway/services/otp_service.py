"""OTP lifecycle engine — generation, delivery, validation and expiry of codes."""

from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Callable
from datetime import UTC, datetime

from otp_gateway.database.base import (
    OtpCodeRepository,
    OtpPolicyRepository,
    PrincipalDirectory,
)
from otp_gateway.delivery.base import Channel
from otp_gateway.delivery.dispatcher import DeliveryDispatcher, render_otp_message
from otp_gateway.exceptions import CodeCollision, CodeSpaceExhausted, PrincipalNotFound
from otp_gateway.models.otp import OtpCode, OtpPolicy, OtpStatus

logger = logging.getLogger(__name__)

# Draws attempted before giving up on finding a value no active code holds
MAX_GENERATION_ATTEMPTS = 5


def utcnow() -> datetime:
    return datetime.now(UTC)


class OtpService:
    """Issues one-time codes and decides, exactly once, whether each is consumed.

    Codes move ``ACTIVE → USED`` on a successful validation or
    ``ACTIVE → EXPIRED`` once their time-to-live has elapsed.  Both moves
    go through the repository's conditional update, so concurrent
    validations and the background sweep never both win for one code.

    Parameters
    ----------
    codes / policies / directory:
        Persistence and directory collaborators.
    dispatcher:
        Delivers rendered codes for :meth:`dispatch_to_principal`.
    clock:
        Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        codes: OtpCodeRepository,
        policies: OtpPolicyRepository,
        directory: PrincipalDirectory,
        dispatcher: DeliveryDispatcher,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._codes = codes
        self._policies = policies
        self._directory = directory
        self._dispatcher = dispatcher
        self._clock = clock

    # ── Generation & delivery ────────────────────────────

    async def generate(self, principal_id: int, operation_id: str | None = None) -> str:
        """Create and persist an active code for *principal_id*; no delivery.

        A value already held by another active code is rejected by the
        store and redrawn.  Raises ``CodeSpaceExhausted`` if every draw
        collides.
        """
        policy = await self._policies.read()
        for _ in range(MAX_GENERATION_ATTEMPTS):
            code = self._draw_code(policy.length)
            try:
                record = await self._codes.insert(
                    OtpCode(
                        principal_id=principal_id,
                        operation_id=operation_id,
                        code=code,
                        status=OtpStatus.ACTIVE,
                        created_at=self._clock(),
                    )
                )
            except CodeCollision:
                logger.warning("Generated code collides with an active OTP, redrawing")
                continue
            logger.info(
                "OTP id=%s generated for principal %s, operation %s",
                record.id,
                principal_id,
                operation_id,
            )
            return code

        logger.error("No free code value after %d draws", MAX_GENERATION_ATTEMPTS)
        raise CodeSpaceExhausted(MAX_GENERATION_ATTEMPTS)

    async def dispatch_to_principal(
        self, principal_id: int, operation_id: str | None, channel: Channel | str
    ) -> str:
        """Generate a code and deliver it to the principal over *channel*.

        The channel and the principal are checked before anything is
        persisted.  A delivery failure propagates as ``DeliveryFailed`` and
        leaves the generated code active.
        """
        backend = self._dispatcher.resolve(channel)
        address = await self._directory.resolve_address(principal_id, backend.channel)
        if address is None:
            logger.error(
                "dispatch: no %s address for principal %s", backend.channel.value, principal_id
            )
            raise PrincipalNotFound(principal_id)

        code = await self.generate(principal_id, operation_id)
        await self._dispatcher.send(backend, address, render_otp_message(code))
        logger.info("Sent OTP for principal %s via %s", principal_id, backend.channel.value)
        return code

    # ── Validation & expiry ──────────────────────────────

    async def validate(self, code: str) -> bool:
        """Consume *code*.  Returns ``True`` for exactly one successful caller."""
        otp = await self._codes.find_by_code(code.strip())
        if otp is None:
            logger.warning("validate: code not found")
            return False
        if otp.status is not OtpStatus.ACTIVE:
            logger.warning("validate: OTP id=%s is not active (status=%s)", otp.id, otp.status.value)
            return False

        policy = await self._policies.read()
        expiry = otp.expires_at(policy.ttl)
        if self._clock() > expiry:
            await self._codes.conditional_transition(otp.id, OtpStatus.ACTIVE, OtpStatus.EXPIRED)
            logger.warning("validate: OTP id=%s expired at %s", otp.id, expiry.isoformat())
            return False

        if await self._codes.conditional_transition(otp.id, OtpStatus.ACTIVE, OtpStatus.USED):
            logger.info("validate: OTP id=%s accepted and marked USED", otp.id)
            return True

        logger.warning("validate: OTP id=%s was consumed or expired concurrently", otp.id)
        return False

    async def sweep_expired(self) -> int:
        """Expire every active code older than the current TTL."""
        policy = await self._policies.read()
        count = await self._codes.bulk_expire(policy.ttl, self._clock())
        logger.info("sweep: expired %d codes older than %d seconds", count, policy.ttl_seconds)
        return count

    # ── Policy & housekeeping ────────────────────────────

    async def get_policy(self) -> OtpPolicy:
        return await self._policies.read()

    async def update_policy(self, length: int, ttl_seconds: int) -> OtpPolicy:
        """Replace the policy; issued codes keep their ``created_at``."""
        policy = await self._policies.replace(length, ttl_seconds)
        logger.info("OTP policy updated: length=%d, ttl_seconds=%d", length, ttl_seconds)
        return policy

    async def purge_principal(self, principal_id: int) -> int:
        """Delete every code owned by *principal_id*."""
        return await self._codes.delete_all_for_principal(principal_id)

    # ── Private helpers ──────────────────────────────────

    @staticmethod
    def _draw_code(length: int) -> str:
        return "".join(secrets.choice(string.digits) for _ in range(length))
