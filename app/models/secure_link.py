"""Secure link model: the time-boxed capability token behind a signing session."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


class SecureLink(Base):
    """One emailed access token bound to a recipient and a one-time code.

    A link is consumable while ``used`` is false and ``expires_at`` lies in
    the future. ``used`` only ever moves from false to true; ``otp`` never
    changes after creation.
    """
    __tablename__ = "secure_links"
    __table_args__ = (Index("ix_secure_links_used_expires_at", "used", "expires_at"),)

    # 128-bit random token, hex-encoded
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    otp: Mapped[str] = mapped_column(String(6), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    contract = relationship(
        "SignedContract",
        back_populates="link",
        uselist=False,
        passive_deletes=True,
    )
