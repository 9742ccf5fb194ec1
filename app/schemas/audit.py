from datetime import datetime
from typing import Any

from app.schemas.common import CamelModel


class AuditLogRead(CamelModel):
    id: int
    link_id: str | None = None
    action: str
    label: str
    details: Any = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime


class AuditStats(CamelModel):
    total: int
    today: int
    this_week: int
    unique_actions: int
    unique_links: int
