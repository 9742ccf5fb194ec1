"""Issuing secure links and emailing them to the recipient."""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from sqlalchemy.orm import Session

from app.config import settings
from app.errors import StorageError, ValidationError
from app.metrics import LINKS_ISSUED
from app.models.audit import AuditAction
from app.models.secure_link import SecureLink
from app.services import email as email_service
from app.services.audit import audit_events
from app.services.audit_helpers import RequestContext
from app.services.common import as_utc, is_blank
from app.services.secure_links import secure_links

logger = logging.getLogger(__name__)


class IssueSource(str, enum.Enum):
    external_api = "external_api"
    dashboard = "dashboard"


_CREATED_ACTION = {
    IssueSource.external_api: AuditAction.external_api_link_created,
    IssueSource.dashboard: AuditAction.secure_link_created,
}
_REJECTED_ACTION = {
    IssueSource.external_api: AuditAction.external_api_missing_email,
    IssueSource.dashboard: AuditAction.email_send_failed,
}
_ERROR_ACTION = {
    IssueSource.external_api: AuditAction.external_api_error,
    IssueSource.dashboard: AuditAction.email_send_failed,
}


@dataclass(frozen=True)
class IssuedLink:
    link: SecureLink
    secure_url: str
    email_sent: bool


def build_secure_url(link_id: str) -> str:
    return f"{settings.base_url.rstrip('/')}/contract/{link_id}"


def resolve_ttl(expires_in: Any) -> timedelta:
    """Convert an ``expiresIn`` value in hours to a lifetime."""
    if expires_in is None:
        return timedelta(hours=settings.default_link_ttl_hours)
    if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
        raise ValidationError("expiresIn must be a number of hours", reason="invalid_expires_in")
    if not math.isfinite(expires_in):
        raise ValidationError("expiresIn must be a finite number", reason="invalid_expires_in")
    if expires_in <= 0 or expires_in > settings.max_link_ttl_hours:
        raise ValidationError(
            f"expiresIn must be between 0 and {settings.max_link_ttl_hours} hours",
            reason="invalid_expires_in",
        )
    return timedelta(hours=expires_in)


class LinkIssuance:
    @staticmethod
    def issue(
        db: Session,
        email: str | None,
        expires_in: Any = None,
        subject: str | None = None,
        message: str | None = None,
        source: IssueSource = IssueSource.dashboard,
        context: RequestContext | None = None,
    ) -> IssuedLink:
        """Create a link and email it with its OTP.

        A failed send keeps the link; ``email_sent`` reports the outcome.

        Raises:
            ValidationError: If email is missing or expiresIn is out of range
            StorageError: If the link cannot be stored
        """
        if is_blank(email):
            audit_events.append(
                db, _REJECTED_ACTION[source], details={"reason": "missing_email"}, context=context
            )
            raise ValidationError("Email is required", reason="missing_email")
        email = email.strip()

        try:
            ttl = resolve_ttl(expires_in)
        except ValidationError as exc:
            audit_events.append(
                db,
                _REJECTED_ACTION[source],
                details={"reason": exc.reason, "email": email, "expiresIn": repr(expires_in)},
                context=context,
            )
            raise

        try:
            link = secure_links.create(db, email=email, ttl=ttl)
        except StorageError as exc:
            audit_events.append(
                db,
                _ERROR_ACTION[source],
                details={"error": exc.reason or exc.message, "email": email},
                context=context,
            )
            raise

        LINKS_ISSUED.labels(source=source.value).inc()
        created_details = {"email": email, "expiresIn": ttl.total_seconds() / 3600}
        if source is IssueSource.external_api:
            created_details.update({"apiKeyUsed": True, "source": source.value})
        audit_events.append(
            db, _CREATED_ACTION[source], link_id=link.id, details=created_details, context=context
        )

        secure_url = build_secure_url(link.id)
        mail_subject, body_html, body_text = email_service.render_secure_link_email(
            secure_url, link.otp, as_utc(link.expires_at), subject=subject, message=message
        )
        email_sent = email_service.send_email(email, mail_subject, body_html, body_text)
        if email_sent:
            audit_events.append(
                db,
                AuditAction.email_sent,
                link_id=link.id,
                details={"email": email, "subject": mail_subject},
                context=context,
            )
        else:
            logger.warning("Secure link %s created but the email to %s was not sent", link.id, email)
            audit_events.append(
                db,
                AuditAction.email_send_failed,
                link_id=link.id,
                details={"reason": "smtp_error", "email": email},
                context=context,
            )
        return IssuedLink(link=link, secure_url=secure_url, email_sent=email_sent)


link_issuance = LinkIssuance()
