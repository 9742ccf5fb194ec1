from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from starlette.responses import Response

from app.api.deps import get_db, request_context
from app.schemas.contracts import ContractCreateRequest, ContractRead, ContractSavedResponse
from app.services import verification as verification_service
from app.services.audit_helpers import RequestContext

router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.post("", response_model=ContractSavedResponse)
def save_signed_contract(
    payload: ContractCreateRequest,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(request_context),
):
    contract = verification_service.verification.complete(
        db,
        link_id=payload.link_id,
        interpreter_name=payload.interpreter_name,
        signature_type=payload.signature_type,
        signature_data=payload.signature_data,
        pdf_base64=payload.pdf_base64,
        context=context,
    )
    return ContractSavedResponse(
        contract_id=contract.id,
        link_id=contract.link_id,
        signed_at=contract.signed_at,
    )


@router.get("", response_model=ContractRead)
def get_contract(
    link_id: str | None = Query(default=None, alias="linkId"),
    db: Session = Depends(get_db),
):
    contract = verification_service.verification.get_contract(db, link_id)
    return ContractRead(
        id=contract.id,
        link_id=contract.link_id,
        interpreter_name=contract.interpreter_name,
        signature_type=contract.signature_type,
        signed_at=contract.signed_at,
        has_pdf=bool(contract.pdf_content),
    )


@router.get("/pdf", response_class=Response)
def download_contract_pdf(
    link_id: str | None = Query(default=None, alias="linkId"),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(request_context),
):
    pdf_bytes, filename = verification_service.verification.download_pdf(
        db, link_id, context
    )
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-cache",
        },
    )
