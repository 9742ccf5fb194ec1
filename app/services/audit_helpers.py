from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import Request

UNKNOWN = "unknown"


@dataclass(frozen=True)
class RequestContext:
    """Network metadata recorded alongside every audit entry."""

    ip_address: str = UNKNOWN
    user_agent: str = UNKNOWN


SYSTEM_CONTEXT = RequestContext(ip_address="system", user_agent="system")


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first[:45]
    if request.client and request.client.host:
        return request.client.host[:45]
    return UNKNOWN


def request_context(request: Request) -> RequestContext:
    """FastAPI dependency capturing caller IP and user agent."""
    return RequestContext(
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent") or UNKNOWN,
    )


def format_audit_datetime(value: datetime | None, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    if value is None:
        return "Unknown"
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(fmt)


def humanize_action(action: str | None) -> str:
    if not action:
        return "Activity"
    return action.replace("_", " ").replace("-", " ").title()
