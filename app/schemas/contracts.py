"""Pydantic schemas for signed contracts."""

from datetime import datetime

from pydantic import ConfigDict

from app.models.contracts import SignatureType
from app.schemas.common import CamelModel


class ContractCreateRequest(CamelModel):
    link_id: str | None = None
    interpreter_name: str | None = None
    # Plain string so an unknown type is rejected (and audited) by the service
    signature_type: str | None = None
    signature_data: str | None = None
    pdf_base64: str | None = None


class ContractSavedResponse(CamelModel):
    success: bool = True
    contract_id: int
    link_id: str
    signed_at: datetime


class ContractRead(CamelModel):
    """Contract metadata. The PDF body is never included."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    link_id: str
    interpreter_name: str
    signature_type: SignatureType
    signed_at: datetime
    has_pdf: bool


class ContractListItem(CamelModel):
    id: int
    link_id: str
    interpreter_name: str
    signature_type: SignatureType
    signed_at: datetime
    has_pdf: bool
    email: str
    link_created_at: datetime | None = None
    link_expires_at: datetime | None = None


class ContractStats(CamelModel):
    total: int
    today: int
    this_week: int
    this_month: int
    by_type: dict[str, int]
