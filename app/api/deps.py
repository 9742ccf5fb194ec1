from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from app.db import get_db
from app.services.access import access_keys
from app.services.audit_helpers import RequestContext, request_context
from app.services.migration import InMemoryLinkStore


def require_api_key(
    x_api_key: str | None = Header(default=None),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(request_context),
) -> None:
    """Guard for external issuance; rejected attempts are audited."""
    access_keys.check_api_key(db, x_api_key, context)


def require_admin_key(
    request: Request,
    x_admin_key: str | None = Header(default=None),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(request_context),
) -> None:
    access_keys.check_admin_key(db, x_admin_key, context, resource=request.url.path)


def get_legacy_link_store(request: Request) -> InMemoryLinkStore:
    return request.app.state.legacy_link_store


__all__ = [
    "get_db",
    "get_legacy_link_store",
    "request_context",
    "require_admin_key",
    "require_api_key",
]
