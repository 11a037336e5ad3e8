"""Shared fixtures — a file-backed SQLite database per test, a fake clock and
recording delivery backends."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from otp_gateway.database.repository import (
    SqlOtpCodeRepository,
    SqlOtpPolicyRepository,
    SqlPrincipalDirectory,
)
from otp_gateway.delivery.base import Channel, DeliveryBackend
from otp_gateway.delivery.dispatcher import DeliveryDispatcher
from otp_gateway.models.otp import OtpCode  # noqa: F401  (registers tables)
from otp_gateway.models.principal import Base, Principal, PrincipalRole
from otp_gateway.services.otp_service import OtpService

ALICE_ID = 1
BOB_ID = 2
ADMIN_ID = 3


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingBackend(DeliveryBackend):
    """Backend that remembers what it was asked to send, or fails on demand."""

    def __init__(self, channel: Channel) -> None:
        self._channel = channel
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    @property
    def channel(self) -> Channel:
        return self._channel

    async def send(self, address: str, text: str) -> None:
        if self.fail:
            raise ConnectionError("transport down")
        self.sent.append((address, text))


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Create tables in a fresh SQLite file and seed principals and policy."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'otp.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        session.add_all(
            [
                Principal(
                    id=ALICE_ID,
                    username="alice",
                    email="alice@example.com",
                    phone="+15551234567",
                    chat_id="100200300",
                ),
                Principal(id=BOB_ID, username="bob", email="bob@example.com"),
                Principal(
                    id=ADMIN_ID,
                    username="admin",
                    role=PrincipalRole.ADMIN,
                    email="admin@example.com",
                ),
            ]
        )
        await session.commit()
    await SqlOtpPolicyRepository(factory).init_default(6, 300)

    yield factory

    await engine.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backends() -> dict[Channel, RecordingBackend]:
    return {channel: RecordingBackend(channel) for channel in Channel}


@pytest.fixture
def code_repo(session_factory) -> SqlOtpCodeRepository:
    return SqlOtpCodeRepository(session_factory)


@pytest.fixture
def otp_service(session_factory, code_repo, backends, clock) -> OtpService:
    return OtpService(
        codes=code_repo,
        policies=SqlOtpPolicyRepository(session_factory),
        directory=SqlPrincipalDirectory(session_factory),
        dispatcher=DeliveryDispatcher(backends),
        clock=clock,
    )
