"""API and admin key checks for the guarded endpoints."""

from __future__ import annotations

import hmac

from sqlalchemy.orm import Session

from app.config import settings
from app.errors import UnauthorizedError
from app.models.audit import AuditAction
from app.services.audit import audit_events
from app.services.audit_helpers import RequestContext


def key_matches(expected: str | None, provided: str | None) -> bool:
    """Constant-time comparison; an unset expected key never matches."""
    if not expected or not provided:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def _provided_state(provided: str | None) -> str:
    return "provided_but_invalid" if provided else "missing"


class AccessKeys:
    @staticmethod
    def check_api_key(
        db: Session, provided: str | None, context: RequestContext | None = None
    ) -> None:
        if key_matches(settings.api_key, provided):
            return
        audit_events.append(
            db,
            AuditAction.external_api_unauthorized,
            details={"providedKey": _provided_state(provided)},
            context=context,
        )
        raise UnauthorizedError(reason="invalid_api_key")

    @staticmethod
    def check_admin_key(
        db: Session,
        provided: str | None,
        context: RequestContext | None = None,
        resource: str | None = None,
    ) -> None:
        if key_matches(settings.admin_key, provided):
            return
        audit_events.append(
            db,
            AuditAction.admin_unauthorized,
            details={"providedKey": _provided_state(provided), "resource": resource},
            context=context,
        )
        raise UnauthorizedError(reason="invalid_admin_key")


access_keys = AccessKeys()
