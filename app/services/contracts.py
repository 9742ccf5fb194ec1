"""Service for signed contracts (one signed artifact per secure link)."""

from __future__ import annotations

import base64
import binascii
import re
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import ConflictError, StorageError
from app.models.contracts import SignatureType, SignedContract
from app.models.secure_link import SecureLink
from app.services.common import apply_pagination, as_utc, start_of_day, utcnow

_DATA_URL_PREFIX = re.compile(r"^data:[^;,]+;base64,", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def decode_pdf(pdf_content: str | None) -> bytes | None:
    """Decode stored base64 PDF text, tolerating a data-URL prefix."""
    if not pdf_content:
        return None
    payload = _DATA_URL_PREFIX.sub("", pdf_content.strip())
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError):
        return None


def pdf_filename(contract: SignedContract) -> str:
    name = _WHITESPACE.sub("-", (contract.interpreter_name or "interpreter").strip())
    safe_name = re.sub(r"[^A-Za-z0-9._-]", "", name) or "interpreter"
    signed_at = as_utc(contract.signed_at) or utcnow()
    return f"contract-{safe_name}-{signed_at.date().isoformat()}.pdf"


class SignedContracts:
    """Service for storing and reading signed contracts."""

    @staticmethod
    def create(
        db: Session,
        link_id: str,
        interpreter_name: str,
        signature_type: SignatureType,
        signature_data: str,
        pdf_content: str,
    ) -> SignedContract:
        """Store the signed contract and flag its link as used.

        Both writes share one commit, so a contract never exists next to an
        unused link.

        Args:
            db: Database session
            link_id: Secure link the contract was signed through
            interpreter_name: Signer name
            signature_type: How the signature was captured
            signature_data: Typed text or encoded image
            pdf_content: Rendered document, base64 text

        Returns:
            Created SignedContract

        Raises:
            ConflictError: If a contract already exists for the link
            StorageError: If the write fails for any other reason
        """
        contract = SignedContract(
            link_id=link_id,
            interpreter_name=interpreter_name.strip(),
            signature_type=signature_type,
            signature_data=signature_data,
            pdf_content=pdf_content,
            signed_at=utcnow(),
        )
        link = db.get(SecureLink, link_id)
        db.add(contract)
        if link is not None and not link.used:
            link.used = True
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if SignedContracts.is_signed(db, link_id):
                raise ConflictError(reason="already_signed") from exc
            raise StorageError("Failed to save contract", reason=str(exc)) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError("Failed to save contract", reason=str(exc)) from exc
        db.refresh(contract)
        return contract

    @staticmethod
    def get_by_link_id(db: Session, link_id: str) -> SignedContract | None:
        return (
            db.query(SignedContract)
            .filter(SignedContract.link_id == link_id)
            .first()
        )

    @staticmethod
    def is_signed(db: Session, link_id: str) -> bool:
        return (
            db.query(SignedContract.id)
            .filter(SignedContract.link_id == link_id)
            .first()
            is not None
        )

    @staticmethod
    def list_signed(db: Session, limit: int = 50, offset: int = 0) -> list[dict]:
        """Recent contracts with the recipient email of their link.

        The PDF body is left out; only its presence is reported.
        """
        query = (
            db.query(
                SignedContract.id,
                SignedContract.link_id,
                SignedContract.interpreter_name,
                SignedContract.signature_type,
                SignedContract.signed_at,
                SignedContract.pdf_content.isnot(None).label("has_pdf"),
                SecureLink.email,
                SecureLink.created_at.label("link_created_at"),
                SecureLink.expires_at.label("link_expires_at"),
            )
            .join(SecureLink, SecureLink.id == SignedContract.link_id)
            .order_by(SignedContract.signed_at.desc())
        )
        return [
            {
                "id": row.id,
                "link_id": row.link_id,
                "interpreter_name": row.interpreter_name,
                "signature_type": row.signature_type.value,
                "signed_at": as_utc(row.signed_at),
                "has_pdf": bool(row.has_pdf),
                "email": row.email,
                "link_created_at": as_utc(row.link_created_at),
                "link_expires_at": as_utc(row.link_expires_at),
            }
            for row in apply_pagination(query, limit, offset).all()
        ]

    @staticmethod
    def count(db: Session) -> int:
        return db.query(func.count(SignedContract.id)).scalar() or 0

    @staticmethod
    def count_by_type(db: Session) -> dict[str, int]:
        rows = (
            db.query(SignedContract.signature_type, func.count(SignedContract.id))
            .group_by(SignedContract.signature_type)
            .all()
        )
        return {signature_type.value: count for signature_type, count in rows}

    @staticmethod
    def stats(db: Session, now: datetime | None = None) -> dict:
        now = now or utcnow()
        total, today, this_week, this_month = db.query(
            func.count(SignedContract.id),
            func.count(SignedContract.id).filter(
                SignedContract.signed_at >= start_of_day(now)
            ),
            func.count(SignedContract.id).filter(
                SignedContract.signed_at >= now - timedelta(days=7)
            ),
            func.count(SignedContract.id).filter(
                SignedContract.signed_at >= now - timedelta(days=30)
            ),
        ).one()
        return {
            "total": total or 0,
            "today": today or 0,
            "this_week": this_week or 0,
            "this_month": this_month or 0,
            "by_type": SignedContracts.count_by_type(db),
        }


signed_contracts = SignedContracts()
