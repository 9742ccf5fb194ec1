from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db, request_context, require_admin_key, require_api_key
from app.schemas.common import SuccessResponse
from app.schemas.links import IssuedLinkRead, LinkIssueRequest, MarkUsedRequest
from app.services import issuance as issuance_service
from app.services import verification as verification_service
from app.services.audit_helpers import RequestContext

router = APIRouter(prefix="/links", tags=["links"])


def _issued(issued: issuance_service.IssuedLink) -> IssuedLinkRead:
    return IssuedLinkRead(
        id=issued.link.id,
        email=issued.link.email,
        otp=issued.link.otp,
        expires_at=issued.link.expires_at,
        secure_url=issued.secure_url,
        email_sent=issued.email_sent,
    )


@router.post(
    "",
    response_model=IssuedLinkRead,
    dependencies=[Depends(require_api_key)],
)
def issue_link(
    payload: LinkIssueRequest,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(request_context),
):
    issued = issuance_service.link_issuance.issue(
        db,
        payload.email,
        expires_in=payload.expires_in,
        subject=payload.subject,
        message=payload.message,
        source=issuance_service.IssueSource.external_api,
        context=context,
    )
    return _issued(issued)


@router.post(
    "/send",
    response_model=IssuedLinkRead,
    dependencies=[Depends(require_admin_key)],
)
def send_link(
    payload: LinkIssueRequest,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(request_context),
):
    issued = issuance_service.link_issuance.issue(
        db,
        payload.email,
        expires_in=payload.expires_in,
        subject=payload.subject,
        message=payload.message,
        source=issuance_service.IssueSource.dashboard,
        context=context,
    )
    return _issued(issued)


@router.post("/mark-used", response_model=SuccessResponse)
def mark_link_used(
    payload: MarkUsedRequest,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(request_context),
):
    verification_service.verification.mark_link_used(db, payload.link_id, context)
    return SuccessResponse()
