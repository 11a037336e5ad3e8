"""SQLAlchemy repositories — data access for codes, the policy and principals.

Every method runs in its own short transaction opened from the session
factory, so no session is shared between concurrent callers.  Driver and
ORM errors surface as ``PersistenceUnavailable``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from sqlalchemy import case, delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from otp_gateway.database.base import (
    OtpCodeRepository,
    OtpPolicyRepository,
    PrincipalDirectory,
)
from otp_gateway.delivery.base import Channel
from otp_gateway.exceptions import CodeCollision, PersistenceUnavailable
from otp_gateway.models.otp import POLICY_ROW_ID, OtpCode, OtpPolicy, OtpStatus
from otp_gateway.models.principal import Principal

logger = logging.getLogger(__name__)


class _SqlRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, action: str) -> AsyncIterator[AsyncSession]:
        """Yield a session inside a transaction that commits on exit."""
        try:
            async with self._session_factory.begin() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Persistence error during %s: %s", action, exc)
            raise PersistenceUnavailable(f"{action} failed") from exc


class SqlOtpCodeRepository(_SqlRepository, OtpCodeRepository):
    """Encapsulates all database statements related to one-time codes."""

    async def insert(self, code: OtpCode) -> OtpCode:
        """Persist *code*.

        Raises ``CodeCollision`` when an active code already holds the same
        value; nothing is written in that case.
        """
        try:
            async with self._session_factory.begin() as session:
                session.add(code)
                await session.flush()
        except IntegrityError as exc:
            logger.warning("Insert rejected, value held by an active code: %s", exc.orig)
            raise CodeCollision("code value already active") from exc
        except SQLAlchemyError as exc:
            logger.error("Persistence error during insert code: %s", exc)
            raise PersistenceUnavailable("insert code failed") from exc
        logger.debug("Saved OTP id=%s for principal %s", code.id, code.principal_id)
        return code

    async def find_by_code(self, code: str) -> OtpCode | None:
        """Look up a code by value.

        When the same value was issued more than once the active row wins,
        then the most recent one.
        """
        stmt = (
            select(OtpCode)
            .where(OtpCode.code == code)
            .order_by(
                case((OtpCode.status == OtpStatus.ACTIVE, 0), else_=1),
                OtpCode.id.desc(),
            )
            .limit(1)
        )
        async with self._transaction("find code") as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def conditional_transition(
        self, code_id: int, from_status: OtpStatus, to_status: OtpStatus
    ) -> bool:
        stmt = (
            update(OtpCode)
            .where(OtpCode.id == code_id, OtpCode.status == from_status)
            .values(status=to_status)
            .execution_options(synchronize_session=False)
        )
        async with self._transaction("transition code") as session:
            result = await session.execute(stmt)
            changed = result.rowcount == 1
        logger.debug(
            "Transition OTP id=%s %s -> %s: %s",
            code_id,
            from_status.value,
            to_status.value,
            "applied" if changed else "no-op",
        )
        return changed

    async def bulk_expire(self, ttl: timedelta, now: datetime) -> int:
        threshold = now - ttl
        stmt = (
            update(OtpCode)
            .where(OtpCode.status == OtpStatus.ACTIVE, OtpCode.created_at < threshold)
            .values(status=OtpStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        async with self._transaction("bulk expire") as session:
            result = await session.execute(stmt)
            count = result.rowcount or 0
        logger.info("Marked %d OTP codes as EXPIRED (created before %s)", count, threshold)
        return count

    async def delete_all_for_principal(self, principal_id: int) -> int:
        stmt = delete(OtpCode).where(OtpCode.principal_id == principal_id)
        async with self._transaction("delete codes") as session:
            result = await session.execute(stmt)
            count = result.rowcount or 0
        logger.info("Deleted %d OTP codes for principal %s", count, principal_id)
        return count


class SqlOtpPolicyRepository(_SqlRepository, OtpPolicyRepository):
    """Reads and replaces the policy singleton row."""

    async def read(self) -> OtpPolicy:
        async with self._transaction("read policy") as session:
            policy = await session.get(OtpPolicy, POLICY_ROW_ID)
        if policy is None:
            raise PersistenceUnavailable("OTP policy has not been initialised")
        return policy

    async def replace(self, length: int, ttl_seconds: int) -> OtpPolicy:
        async with self._transaction("replace policy") as session:
            policy = await session.merge(
                OtpPolicy(id=POLICY_ROW_ID, length=length, ttl_seconds=ttl_seconds)
            )
        logger.info("OTP policy replaced: length=%d ttl_seconds=%d", length, ttl_seconds)
        return policy

    async def init_default(self, length: int, ttl_seconds: int) -> OtpPolicy:
        async with self._transaction("init policy") as session:
            policy = await session.get(OtpPolicy, POLICY_ROW_ID)
            if policy is not None:
                logger.info("OTP policy already initialised: %r", policy)
                return policy
            policy = OtpPolicy(id=POLICY_ROW_ID, length=length, ttl_seconds=ttl_seconds)
            session.add(policy)
        logger.info("Initialised default OTP policy: %r", policy)
        return policy


# Principal attribute holding the address for each channel
_ADDRESS_FIELDS: dict[Channel, str] = {
    Channel.EMAIL: "email",
    Channel.SMS: "phone",
    Channel.CHAT_BOT: "chat_id",
    Channel.FILE: "username",
}


class SqlPrincipalDirectory(_SqlRepository, PrincipalDirectory):
    """Looks up principals and their per-channel addresses."""

    async def get_principal(self, principal_id: int) -> Principal | None:
        stmt = select(Principal).where(
            Principal.id == principal_id, Principal.is_active.is_(True)
        )
        async with self._transaction("find principal") as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def resolve_address(self, principal_id: int, channel: Channel) -> str | None:
        principal = await self.get_principal(principal_id)
        if principal is None:
            return None
        return getattr(principal, _ADDRESS_FIELDS[channel]) or None
