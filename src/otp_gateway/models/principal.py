"""SQLAlchemy Principal model."""

import enum
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Enum, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


class PrincipalRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class Principal(Base):
    """An account on whose behalf codes and session tokens are issued.

    Records are owned by the account-management side of the system; the
    OTP core only reads them to find where a code should be delivered.
    """

    __tablename__ = "principals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    role: Mapped[PrincipalRole] = mapped_column(
        Enum(PrincipalRole, name="principal_role", native_enum=False, length=16),
        nullable=False,
        default=PrincipalRole.USER,
    )
    email: Mapped[str | None] = mapped_column(String(256), nullable=True)
    phone: Mapped[str | None] = mapped_column(
        String(32), nullable=True, doc="E.164 phone number for SMS delivery"
    )
    chat_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, doc="Chat-bot conversation id"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    __table_args__ = (Index("ix_principals_username", "username"),)

    def __repr__(self) -> str:
        return f"<Principal id={self.id} username={self.username!r} role={self.role.value}>"
