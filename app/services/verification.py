"""Verification workflow: OTP validation, contract completion and retrieval.

Link states are Pending (created), Verified (OTP matched, nothing persisted)
and Completed (contract stored, link used). Every outcome, success or
failure, is appended to the audit log before the caller sees it.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import (
    AlreadyUsedError,
    ConflictError,
    ExpiredError,
    InvalidCodeError,
    NotFoundError,
    SigningError,
    StorageError,
    ValidationError,
)
from app.metrics import CONTRACTS_SIGNED, OTP_VERIFICATIONS
from app.models.audit import AuditAction
from app.models.contracts import SignatureType, SignedContract
from app.models.secure_link import SecureLink
from app.services.audit import audit_events
from app.services.audit_helpers import RequestContext
from app.services.common import as_utc, is_blank, utcnow, validate_enum
from app.services.contracts import decode_pdf, pdf_filename, signed_contracts
from app.services.secure_links import is_expired, secure_links

logger = logging.getLogger(__name__)

REQUIRED_CONTRACT_FIELDS = (
    "linkId",
    "interpreterName",
    "signatureType",
    "signatureData",
    "pdfBase64",
)


def _reject(
    db: Session,
    error_cls: type[SigningError],
    action: AuditAction,
    link_id: str | None,
    reason: str,
    context: RequestContext | None,
    message: str | None = None,
    **extra: Any,
) -> SigningError:
    audit_events.append(
        db,
        action,
        link_id=link_id,
        details={"reason": reason, **extra},
        context=context,
    )
    return error_cls(message, reason=reason)


def otp_matches(stored: str, supplied: str) -> bool:
    """Exact comparison after trimming surrounding whitespace."""
    return hmac.compare_digest(
        stored.encode("utf-8"), supplied.strip().encode("utf-8")
    )


class Verification:
    @staticmethod
    def _verify(
        db: Session,
        link_id: str | None,
        otp: str | int | None,
        context: RequestContext | None,
        now: datetime | None,
    ) -> SecureLink:
        action = AuditAction.otp_verify_failed
        supplied = None if otp is None else str(otp)
        if is_blank(link_id) or is_blank(supplied):
            raise _reject(
                db, ValidationError, action, link_id or None, "missing_params", context,
                "Link ID and OTP are required",
                linkId=not is_blank(link_id), otp=not is_blank(supplied),
            )

        link = secure_links.find_by_id(db, link_id)
        if link is None:
            raise _reject(
                db, NotFoundError, action, link_id, "link_not_found", context,
                "Invalid or expired link",
            )

        if is_expired(link, now):
            raise _reject(
                db, ExpiredError, action, link_id, "link_expired", context,
                expires_at=as_utc(link.expires_at),
            )

        if secure_links.is_consumed(db, link):
            raise _reject(db, AlreadyUsedError, action, link_id, "link_already_used", context)

        if not otp_matches(link.otp, supplied):
            raise _reject(db, InvalidCodeError, action, link_id, "invalid_otp", context)

        audit_events.append(
            db,
            AuditAction.otp_verified_success,
            link_id=link_id,
            details={"email": link.email},
            context=context,
        )
        return link

    @staticmethod
    def verify(
        db: Session,
        link_id: str | None,
        otp: str | int | None,
        context: RequestContext | None = None,
        now: datetime | None = None,
    ) -> SecureLink:
        """Check an OTP against its link.

        Checks run in a fixed order: missing parameters, unknown link,
        expiry, prior use, then the code itself. The first failing check
        decides the error. Success does not change the link, so a link can
        be verified repeatedly until its contract is signed.

        Raises:
            ValidationError, NotFoundError, ExpiredError, AlreadyUsedError,
            InvalidCodeError: as described above
            StorageError: If the store fails
        """
        try:
            link = Verification._verify(db, link_id, otp, context, now)
        except SigningError as exc:
            OTP_VERIFICATIONS.labels(outcome=exc.reason or exc.code).inc()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            OTP_VERIFICATIONS.labels(outcome="error").inc()
            audit_events.append(
                db, AuditAction.otp_verify_error, details={"error": str(exc)}, context=context
            )
            raise StorageError(reason=str(exc)) from exc
        OTP_VERIFICATIONS.labels(outcome="success").inc()
        return link

    @staticmethod
    def _complete(
        db: Session,
        link_id: str | None,
        interpreter_name: str | None,
        signature_type: str | SignatureType | None,
        signature_data: str | None,
        pdf_base64: str | None,
        context: RequestContext | None,
    ) -> SignedContract:
        action = AuditAction.contract_save_failed
        supplied = dict(
            zip(
                REQUIRED_CONTRACT_FIELDS,
                (link_id, interpreter_name, signature_type, signature_data, pdf_base64),
            )
        )
        missing = [name for name, value in supplied.items() if is_blank(value)]
        if missing:
            raise _reject(
                db, ValidationError, action, link_id or None, "missing_required_fields",
                context, "Missing required fields", missing=missing,
            )

        try:
            signature_kind = validate_enum(signature_type, SignatureType, "signature_type")
        except ValidationError as exc:
            raise _reject(
                db, ValidationError, action, link_id, "invalid_signature_type", context,
                exc.message, signatureType=str(signature_type),
            ) from exc

        if signed_contracts.is_signed(db, link_id):
            raise _reject(db, ConflictError, action, link_id, "already_signed", context)

        if not secure_links.exists(db, link_id):
            raise _reject(
                db, NotFoundError, action, link_id, "link_not_found", context,
                "Invalid or expired link",
            )

        try:
            contract = signed_contracts.create(
                db,
                link_id=link_id,
                interpreter_name=interpreter_name,
                signature_type=signature_kind,
                signature_data=signature_data,
                pdf_content=pdf_base64,
            )
        except ConflictError as exc:
            raise _reject(db, ConflictError, action, link_id, "already_signed", context) from exc

        CONTRACTS_SIGNED.labels(signature_type=signature_kind.value).inc()
        audit_events.append(
            db,
            AuditAction.contract_signed_saved,
            link_id=link_id,
            details={
                "interpreterName": contract.interpreter_name,
                "signatureType": signature_kind.value,
                "pdfSize": len(pdf_base64),
            },
            context=context,
        )
        audit_events.append(
            db,
            AuditAction.link_marked_used,
            link_id=link_id,
            details={"source": "contract_signed"},
            context=context,
        )
        logger.info(
            "Signed contract saved for link %s (%s, %s KB)",
            link_id,
            signature_kind.value,
            round(len(pdf_base64) / 1024),
        )
        return contract

    @staticmethod
    def complete(
        db: Session,
        link_id: str | None,
        interpreter_name: str | None,
        signature_type: str | SignatureType | None,
        signature_data: str | None,
        pdf_base64: str | None,
        context: RequestContext | None = None,
    ) -> SignedContract:
        """Persist the signed contract and consume the link.

        Raises:
            ValidationError: If a field is missing or the signature type is unknown
            ConflictError: If the link already has a contract
            NotFoundError: If the link does not exist
            StorageError: If the store fails
        """
        try:
            return Verification._complete(
                db, link_id, interpreter_name, signature_type,
                signature_data, pdf_base64, context,
            )
        except StorageError as exc:
            audit_events.append(
                db,
                AuditAction.contract_save_error,
                link_id=link_id or None,
                details={"error": exc.reason or exc.message},
                context=context,
            )
            raise StorageError("Failed to save contract", reason=exc.reason) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            audit_events.append(
                db,
                AuditAction.contract_save_error,
                link_id=link_id or None,
                details={"error": str(exc)},
                context=context,
            )
            raise StorageError("Failed to save contract", reason=str(exc)) from exc

    @staticmethod
    def get_contract(db: Session, link_id: str | None) -> SignedContract:
        """Contract metadata lookup for the signing page and dashboard."""
        if is_blank(link_id):
            raise ValidationError("LinkId parameter required", reason="missing_link_id")
        contract = signed_contracts.get_by_link_id(db, link_id)
        if contract is None:
            raise NotFoundError("Contract not found", reason="contract_not_found")
        return contract

    @staticmethod
    def download_pdf(
        db: Session,
        link_id: str | None,
        context: RequestContext | None = None,
    ) -> tuple[bytes, str]:
        """Return the rendered PDF bytes and a download filename."""
        if is_blank(link_id):
            raise ValidationError("LinkId parameter required", reason="missing_link_id")
        action = AuditAction.pdf_download_failed
        try:
            contract = signed_contracts.get_by_link_id(db, link_id)
            if contract is None or not contract.pdf_content:
                raise _reject(
                    db, NotFoundError, action, link_id, "contract_not_found", context,
                    "Contract PDF not found",
                )
            pdf_bytes = decode_pdf(contract.pdf_content)
            if not pdf_bytes:
                raise _reject(
                    db, NotFoundError, action, link_id, "pdf_unreadable", context,
                    "Contract PDF not found",
                )
            filename = pdf_filename(contract)
            audit_events.append(
                db,
                AuditAction.pdf_downloaded,
                link_id=link_id,
                details={"interpreterName": contract.interpreter_name, "size": len(pdf_bytes)},
                context=context,
            )
        except SQLAlchemyError as exc:
            db.rollback()
            audit_events.append(
                db,
                AuditAction.pdf_download_error,
                link_id=link_id,
                details={"error": str(exc)},
                context=context,
            )
            raise StorageError("Failed to download PDF", reason=str(exc)) from exc
        return pdf_bytes, filename

    @staticmethod
    def mark_link_used(
        db: Session,
        link_id: str | None,
        context: RequestContext | None = None,
    ) -> None:
        if is_blank(link_id):
            raise ValidationError("Link ID is required", reason="missing_link_id")
        try:
            found = secure_links.mark_used(db, link_id)
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError(reason=str(exc)) from exc
        if not found:
            raise NotFoundError("Link not found", reason="link_not_found")
        audit_events.append(
            db,
            AuditAction.link_marked_used,
            link_id=link_id,
            details={"source": "api", "markedAt": utcnow()},
            context=context,
        )


verification = Verification()
