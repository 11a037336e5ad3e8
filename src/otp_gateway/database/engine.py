"""Database engine and async session factory."""

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from otp_gateway.config import settings
from otp_gateway.database.repository import SqlOtpPolicyRepository
from otp_gateway.models.otp import OtpCode, OtpPolicy  # noqa: F401  (registers tables)
from otp_gateway.models.principal import Base

engine = create_async_engine(settings.database_url, echo=settings.debug)

async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def init_db() -> None:
    """Create all tables that don't yet exist and seed the default policy."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await SqlOtpPolicyRepository(async_session_factory).init_default(
        settings.otp_default_length, settings.otp_default_ttl_seconds
    )
