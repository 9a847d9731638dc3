"""SQLAlchemy ORM models for the local secure store."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Hey future me, this is a tiny key/value table - ONE row per secure key. Today the only key
# is "accessToken"; the UI's "appLanguage" preference lives elsewhere on purpose (it is not
# a secret and must survive logout).
class SecureItemModel(Base):
    """Secure key/value item (e.g. the access token)."""

    __tablename__ = "secure_items"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )
