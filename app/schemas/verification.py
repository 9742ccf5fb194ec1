from datetime import datetime

from app.schemas.common import CamelModel


class VerifyRequest(CamelModel):
    link_id: str | None = None
    otp: str | int | None = None


class VerifyResponse(CamelModel):
    success: bool = True
    link_id: str
    email: str
    created_at: datetime
    expires_at: datetime
