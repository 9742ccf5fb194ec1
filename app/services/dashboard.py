"""Read-only aggregates for the operator dashboard."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.audit import AuditLog
from app.models.contracts import SignedContract
from app.services.audit import audit_events
from app.services.common import as_utc, start_of_day, utcnow
from app.services.contracts import signed_contracts
from app.services.secure_links import secure_links

DAILY_ACTIVITY_DAYS = 7
MONTHLY_CONTRACT_MONTHS = 6
TOP_INTERPRETERS_LIMIT = 10


def _months_back(now: datetime, months: int) -> datetime:
    month_index = now.year * 12 + (now.month - 1) - months
    year, month = divmod(month_index, 12)
    day = min(now.day, 28)
    return now.replace(year=year, month=month + 1, day=day)


def _link_row(link) -> dict[str, Any]:
    return {
        "id": link.id,
        "email": link.email,
        "otp": link.otp,
        "expires_at": as_utc(link.expires_at),
        "used": link.used,
        "created_at": as_utc(link.created_at),
    }


class Dashboard:
    @staticmethod
    def stats(db: Session, now: datetime | None = None) -> dict[str, Any]:
        now = now or utcnow()
        link_stats = secure_links.stats(db, now)
        today_activity = (
            db.query(func.count(AuditLog.id))
            .filter(AuditLog.created_at >= start_of_day(now))
            .scalar()
        )
        return {
            "total_links": link_stats["total"],
            "active_links": link_stats["active"],
            "signed_contracts": signed_contracts.count(db),
            "today_activity": today_activity or 0,
            "signature_types": signed_contracts.count_by_type(db),
        }

    @staticmethod
    def links(db: Session, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
        return [_link_row(link) for link in secure_links.list_recent(db, limit, offset)]

    @staticmethod
    def contracts(db: Session, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
        return signed_contracts.list_signed(db, limit, offset)

    @staticmethod
    def audit_logs(
        db: Session,
        limit: int = 100,
        offset: int = 0,
        action: str | None = None,
        link_id: str | None = None,
    ) -> list[dict[str, Any]]:
        return audit_events.list(db, limit=limit, offset=offset, action=action, link_id=link_id)

    @staticmethod
    def analytics(db: Session, now: datetime | None = None) -> dict[str, Any]:
        """Daily audit activity, monthly signatures and most active signers.

        Day and month buckets are built here rather than in SQL so the same
        code runs on every supported database.
        """
        now = now or utcnow()

        activity_since = now - timedelta(days=DAILY_ACTIVITY_DAYS)
        daily = Counter(
            as_utc(created_at).date().isoformat()
            for (created_at,) in db.query(AuditLog.created_at)
            .filter(AuditLog.created_at >= activity_since)
            .all()
        )

        contracts_since = _months_back(now, MONTHLY_CONTRACT_MONTHS)
        monthly = Counter(
            as_utc(signed_at).strftime("%Y-%m")
            for (signed_at,) in db.query(SignedContract.signed_at)
            .filter(SignedContract.signed_at >= contracts_since)
            .all()
        )

        contract_count = func.count(SignedContract.id).label("contract_count")
        top_rows = (
            db.query(
                SignedContract.interpreter_name,
                contract_count,
                func.max(SignedContract.signed_at).label("last_signed"),
            )
            .group_by(SignedContract.interpreter_name)
            .order_by(contract_count.desc(), SignedContract.interpreter_name)
            .limit(TOP_INTERPRETERS_LIMIT)
            .all()
        )

        return {
            "daily_activity": [
                {"date": day, "count": count} for day, count in sorted(daily.items(), reverse=True)
            ],
            "monthly_contracts": [
                {"month": month, "count": count}
                for month, count in sorted(monthly.items(), reverse=True)
            ],
            "top_interpreters": [
                {
                    "interpreter_name": row.interpreter_name,
                    "contract_count": row.contract_count,
                    "last_signed": as_utc(row.last_signed),
                }
                for row in top_rows
            ],
        }


dashboard = Dashboard()
