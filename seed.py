"""Seed script — populates the database with sample principals for testing."""

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession

from otp_gateway.database.engine import async_session_factory, init_db
from otp_gateway.models.principal import Principal, PrincipalRole

SAMPLE_PRINCIPALS = [
    Principal(
        username="admin",
        role=PrincipalRole.ADMIN,
        email="admin@example.com",
    ),
    Principal(
        username="alice",
        role=PrincipalRole.USER,
        email="alice@example.com",
        phone="+15551234567",
        chat_id="100200300",
    ),
    Principal(
        username="bob",
        role=PrincipalRole.USER,
        email="bob@example.com",
        phone="+15559876543",
    ),
]


async def seed() -> None:
    """Insert sample principals into the database."""
    await init_db()
    async with async_session_factory() as session:
        session: AsyncSession
        for principal in SAMPLE_PRINCIPALS:
            session.add(principal)
        await session.commit()
    print(f"✅ Seeded {len(SAMPLE_PRINCIPALS)} principals into the database.")


if __name__ == "__main__":
    asyncio.run(seed())
