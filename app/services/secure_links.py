"""Secure link registry: creation, lookup, consumption and retention of links."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import StorageError, ValidationError
from app.models.contracts import SignedContract
from app.models.secure_link import SecureLink
from app.services.common import apply_pagination, as_utc, start_of_day, utcnow

logger = logging.getLogger(__name__)

LINK_ID_BYTES = 16
OTP_MIN = 100000
OTP_MAX = 999999


def generate_link_id() -> str:
    return secrets.token_hex(LINK_ID_BYTES)


def generate_otp() -> str:
    """Six-digit code drawn uniformly from 100000-999999."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def is_expired(link: SecureLink, now: datetime | None = None) -> bool:
    return (now or utcnow()) >= as_utc(link.expires_at)


def is_consumable(link: SecureLink, now: datetime | None = None) -> bool:
    return not link.used and not is_expired(link, now)


class SecureLinks:
    @staticmethod
    def create(
        db: Session,
        email: str,
        ttl: timedelta,
        otp_generator: Callable[[], str] = generate_otp,
        id_generator: Callable[[], str] = generate_link_id,
    ) -> SecureLink:
        """Create and persist a new link.

        Args:
            db: Database session
            email: Recipient address
            ttl: Lifetime of the link, must be positive
            otp_generator: Produces the one-time code
            id_generator: Produces the link token

        Returns:
            The stored SecureLink

        Raises:
            ValidationError: If email is blank or ttl is not positive
            StorageError: If the row cannot be written, including when every
                generated id collides with an existing one
        """
        email = (email or "").strip()
        if not email:
            raise ValidationError("Email is required", reason="missing_email")
        if ttl <= timedelta(0):
            raise ValidationError("Link lifetime must be positive", reason="invalid_ttl")

        attempts = max(1, settings.link_id_max_attempts)
        for attempt in range(1, attempts + 1):
            link_id = id_generator()
            if SecureLinks.exists(db, link_id):
                logger.warning(
                    "Secure link id collision on attempt %s/%s", attempt, attempts
                )
                continue
            now = utcnow()
            link = SecureLink(
                id=link_id,
                email=email,
                otp=otp_generator(),
                expires_at=now + ttl,
                used=False,
                created_at=now,
                updated_at=now,
            )
            db.add(link)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.warning(
                    "Secure link id collision on attempt %s/%s", attempt, attempts
                )
                continue
            except SQLAlchemyError as exc:
                db.rollback()
                raise StorageError("Failed to create secure link", reason=str(exc)) from exc
            db.refresh(link)
            return link
        raise StorageError(
            "Failed to create secure link",
            reason=f"link id collided {attempts} times",
        )

    @staticmethod
    def import_link(
        db: Session,
        link_id: str,
        email: str,
        otp: str,
        expires_at: datetime,
        used: bool = False,
        created_at: datetime | None = None,
    ) -> SecureLink:
        """Insert a link with a caller-supplied identity (legacy imports)."""
        now = utcnow()
        link = SecureLink(
            id=link_id,
            email=email,
            otp=otp,
            expires_at=as_utc(expires_at),
            used=bool(used),
            created_at=as_utc(created_at) or now,
            updated_at=now,
        )
        db.add(link)
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError(f"Failed to import link {link_id}", reason=str(exc)) from exc
        db.refresh(link)
        return link

    @staticmethod
    def find_by_id(db: Session, link_id: str | None) -> SecureLink | None:
        """Plain lookup; expiry and use are left to the caller."""
        if not link_id:
            return None
        return db.get(SecureLink, link_id)

    @staticmethod
    def exists(db: Session, link_id: str) -> bool:
        return (
            db.query(SecureLink.id).filter(SecureLink.id == link_id).first() is not None
        )

    @staticmethod
    def is_consumed(db: Session, link: SecureLink) -> bool:
        """A link is used once flagged or once a contract exists for it."""
        if link.used:
            return True
        return (
            db.query(SignedContract.id)
            .filter(SignedContract.link_id == link.id)
            .first()
            is not None
        )

    @staticmethod
    def mark_used(db: Session, link_id: str) -> bool:
        """Flag a link as used. Returns False when the link does not exist."""
        link = db.get(SecureLink, link_id)
        if not link:
            return False
        if not link.used:
            link.used = True
            db.commit()
        return True

    @staticmethod
    def _expired_query(db: Session, grace_window: timedelta, now: datetime | None):
        now = now or utcnow()
        return db.query(SecureLink).filter(
            and_(
                or_(SecureLink.used.is_(True), SecureLink.expires_at < now),
                SecureLink.created_at < now - grace_window,
            )
        )

    @staticmethod
    def count_expired(db: Session, grace_window: timedelta, now: datetime | None = None) -> int:
        return SecureLinks._expired_query(db, grace_window, now).count()

    @staticmethod
    def delete_expired(db: Session, grace_window: timedelta, now: datetime | None = None) -> int:
        """Delete used or expired links created more than ``grace_window`` ago.

        Signed contracts go with their link through the foreign-key cascade.
        """
        deleted = SecureLinks._expired_query(db, grace_window, now).delete(
            synchronize_session=False
        )
        db.commit()
        return deleted

    @staticmethod
    def list_recent(db: Session, limit: int = 50, offset: int = 0) -> list[SecureLink]:
        query = db.query(SecureLink).order_by(SecureLink.created_at.desc())
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def list_active(db: Session, now: datetime | None = None) -> list[SecureLink]:
        now = now or utcnow()
        return (
            db.query(SecureLink)
            .filter(SecureLink.expires_at > now)
            .filter(SecureLink.used.is_(False))
            .order_by(SecureLink.created_at.desc())
            .all()
        )

    @staticmethod
    def count(db: Session) -> int:
        return db.query(func.count(SecureLink.id)).scalar() or 0

    @staticmethod
    def stats(db: Session, now: datetime | None = None) -> dict[str, int]:
        """Point-in-time aggregate, computed on every call."""
        now = now or utcnow()
        total, used, expired, active, today = db.query(
            func.count(SecureLink.id),
            func.count(SecureLink.id).filter(SecureLink.used.is_(True)),
            func.count(SecureLink.id).filter(SecureLink.expires_at <= now),
            func.count(SecureLink.id).filter(
                and_(SecureLink.expires_at > now, SecureLink.used.is_(False))
            ),
            func.count(SecureLink.id).filter(SecureLink.created_at >= start_of_day(now)),
        ).one()
        return {
            "total": total or 0,
            "used": used or 0,
            "expired": expired or 0,
            "active": active or 0,
            "today": today or 0,
        }


secure_links = SecureLinks()
