"""Audit log model for the append-only event trail."""

import enum
from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base


class AuditAction(str, enum.Enum):
    secure_link_created = "SECURE_LINK_CREATED"
    external_api_link_created = "EXTERNAL_API_LINK_CREATED"
    external_api_unauthorized = "EXTERNAL_API_UNAUTHORIZED"
    external_api_missing_email = "EXTERNAL_API_MISSING_EMAIL"
    external_api_error = "EXTERNAL_API_ERROR"
    email_sent = "EMAIL_SENT"
    email_send_failed = "EMAIL_SEND_FAILED"
    otp_verify_failed = "OTP_VERIFY_FAILED"
    otp_verified_success = "OTP_VERIFIED_SUCCESS"
    otp_verify_error = "OTP_VERIFY_ERROR"
    contract_save_failed = "CONTRACT_SAVE_FAILED"
    contract_signed_saved = "CONTRACT_SIGNED_SAVED"
    contract_save_error = "CONTRACT_SAVE_ERROR"
    link_marked_used = "LINK_MARKED_USED"
    pdf_downloaded = "PDF_DOWNLOADED"
    pdf_download_failed = "PDF_DOWNLOAD_FAILED"
    pdf_download_error = "PDF_DOWNLOAD_ERROR"
    data_migrated = "DATA_MIGRATED"
    migration_skipped = "MIGRATION_SKIPPED"
    migration_completed = "MIGRATION_COMPLETED"
    migration_error = "MIGRATION_ERROR"
    admin_unauthorized = "ADMIN_UNAUTHORIZED"
    database_cleanup = "DATABASE_CLEANUP"
    audit_log_cleanup = "AUDIT_LOG_CLEANUP"
    links_reconciled = "LINKS_RECONCILED"


class DetailsEncoding(str, enum.Enum):
    json = "json"
    text = "text"


class AuditLog(Base):
    """One lifecycle event or error.

    ``link_id`` is a loose reference (no foreign key) so entries outlive the
    links they describe. ``details_encoding`` is NULL for rows written before
    the column existed; those rows are decoded heuristically.
    """

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    link_id: Mapped[str | None] = mapped_column(String(32), index=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    details: Mapped[str | None] = mapped_column(Text)
    details_encoding: Mapped[str | None] = mapped_column(String(16))
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), index=True
    )
