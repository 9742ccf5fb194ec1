from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from app.api.deps import get_db, request_context
from app.config import settings
from app.schemas.verification import VerifyRequest, VerifyResponse
from app.services import verification as verification_service
from app.services.audit_helpers import RequestContext

router = APIRouter(tags=["verification"])

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


@router.post("/verify", response_model=VerifyResponse)
@limiter.limit(settings.otp_verify_rate_limit)
def verify_otp(
    request: Request,
    payload: VerifyRequest,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(request_context),
):
    link = verification_service.verification.verify(
        db, payload.link_id, payload.otp, context
    )
    return VerifyResponse(
        link_id=link.id,
        email=link.email,
        created_at=link.created_at,
        expires_at=link.expires_at,
    )
