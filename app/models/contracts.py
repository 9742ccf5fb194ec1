"""Signed contract model: the single signed artifact stored per secure link."""

import enum
from datetime import UTC, datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


class SignatureType(enum.Enum):
    text = "text"
    upload = "upload"
    draw = "draw"


class SignedContract(Base):
    """Record of a signed contract.

    Captures:
    - Which link it was signed through (link_id, unique)
    - Who signed it (interpreter_name)
    - How it was signed (signature_type, signature_data)
    - The rendered document (pdf_content, base64 text)
    - When it was signed (signed_at)
    """
    __tablename__ = "signed_contracts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    link_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("secure_links.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    interpreter_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    signature_type: Mapped[SignatureType] = mapped_column(
        Enum(SignatureType, name="signaturetype"), nullable=False
    )
    # Typed text or an encoded image
    signature_data: Mapped[str] = mapped_column(Text, nullable=False)
    pdf_content: Mapped[str] = mapped_column(Text, nullable=False)

    signed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC), index=True
    )

    link = relationship("SecureLink", back_populates="contract")
