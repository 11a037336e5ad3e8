"""SQLAlchemy models for one-time codes and the OTP policy singleton."""

import enum
from datetime import UTC, datetime, timedelta

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from otp_gateway.models.principal import Base

POLICY_ROW_ID = 1

_ACTIVE_ONLY = text("status = 'ACTIVE'")


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes, even on backends that store naive values."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


class OtpStatus(str, enum.Enum):
    """Lifecycle states.  ``USED`` and ``EXPIRED`` are terminal."""

    ACTIVE = "ACTIVE"
    USED = "USED"
    EXPIRED = "EXPIRED"


class OtpCode(Base):
    """One issued one-time code."""

    __tablename__ = "otp_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    principal_id: Mapped[int] = mapped_column(
        ForeignKey("principals.id", ondelete="CASCADE"), nullable=False
    )
    operation_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    code: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[OtpStatus] = mapped_column(
        Enum(OtpStatus, name="otp_status", native_enum=False, length=16),
        nullable=False,
        default=OtpStatus.ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (
        Index("ix_otp_codes_code", "code"),
        # At most one ACTIVE row per value; USED and EXPIRED rows may repeat it
        Index(
            "uq_otp_codes_active_code",
            "code",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
        Index("ix_otp_codes_status_created_at", "status", "created_at"),
        Index("ix_otp_codes_principal_id", "principal_id"),
    )

    def expires_at(self, ttl: timedelta) -> datetime:
        return self.created_at + ttl

    def __repr__(self) -> str:
        return (
            f"<OtpCode id={self.id} principal_id={self.principal_id} "
            f"status={self.status.value}>"
        )


class OtpPolicy(Base):
    """Singleton row holding the code length and time-to-live."""

    __tablename__ = "otp_policy"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=POLICY_ROW_ID)
    length: Mapped[int] = mapped_column(Integer, nullable=False)
    ttl_seconds: Mapped[int] = mapped_column(Integer, nullable=False)

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.ttl_seconds)

    def __repr__(self) -> str:
        return f"<OtpPolicy length={self.length} ttl_seconds={self.ttl_seconds}>"
