"""Pydantic schemas for secure link issuance and consumption."""

from datetime import datetime
from typing import Any

from pydantic import ConfigDict, Field

from app.schemas.common import CamelModel


class LinkIssueRequest(CamelModel):
    # Optional so a missing email reaches the service and is audited as such
    email: str | None = Field(default=None, max_length=255)
    # Left untyped so the issuing service validates and audits bad values
    expires_in: Any = Field(default=None, description="Lifetime in hours")
    subject: str | None = Field(default=None, max_length=255)
    message: str | None = None


class IssuedLinkRead(CamelModel):
    success: bool = True
    id: str
    email: str
    otp: str
    expires_at: datetime
    secure_url: str
    email_sent: bool


class MarkUsedRequest(CamelModel):
    link_id: str | None = None


class SecureLinkRead(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    otp: str
    expires_at: datetime
    used: bool
    created_at: datetime
