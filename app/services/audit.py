"""Event log store: append-only audit trail for the signing workflow."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import AuditWriteError
from app.metrics import AUDIT_WRITE_FAILURES
from app.models.audit import AuditLog
from app.services.audit_details import (
    UNREADABLE_SIGNATURE,
    decode_details,
    encode_details,
    is_repairable,
    to_payload,
)
from app.services.audit_helpers import RequestContext, humanize_action
from app.services.common import apply_pagination, as_utc, start_of_day, utcnow

logger = logging.getLogger(__name__)

REPAIR_BATCH_SIZE = 500


def _action_value(action: Enum | str) -> str:
    if isinstance(action, Enum):
        return str(action.value)
    return str(action)


def serialize_entry(entry: AuditLog) -> dict[str, Any]:
    """Shape a stored row for readers, decoding ``details`` defensively."""
    decoded = decode_details(entry.details, entry.details_encoding)
    return {
        "id": entry.id,
        "link_id": entry.link_id,
        "action": entry.action,
        "label": humanize_action(entry.action),
        "details": to_payload(decoded),
        "ip_address": entry.ip_address,
        "user_agent": entry.user_agent,
        "created_at": as_utc(entry.created_at),
    }


class AuditEvents:
    @staticmethod
    def _persist(
        db: Session,
        action: str,
        link_id: str | None,
        details: Any,
        context: RequestContext | None,
    ) -> AuditLog:
        encoded = encode_details(details)
        entry = AuditLog(
            link_id=link_id or None,
            action=action[:100],
            details=encoded.text,
            details_encoding=encoded.encoding.value if encoded.encoding else None,
            ip_address=context.ip_address[:45] if context else None,
            user_agent=context.user_agent if context else None,
        )
        try:
            db.add(entry)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise AuditWriteError(str(exc)) from exc
        return entry

    @staticmethod
    def append(
        db: Session,
        action: Enum | str,
        *,
        link_id: str | None = None,
        details: Any = None,
        context: RequestContext | None = None,
    ) -> AuditLog | None:
        """Record an event. Persistence failures are logged, never raised."""
        action_value = _action_value(action)
        try:
            return AuditEvents._persist(db, action_value, link_id, details, context)
        except AuditWriteError as exc:
            AUDIT_WRITE_FAILURES.inc()
            logger.warning("Audit write failed for %s (link %s): %s", action_value, link_id, exc)
            return None

    @staticmethod
    def list(
        db: Session,
        limit: int = 100,
        offset: int = 0,
        action: Enum | str | None = None,
        link_id: str | None = None,
    ) -> list[dict[str, Any]]:
        query = db.query(AuditLog)
        if action:
            query = query.filter(AuditLog.action == _action_value(action))
        if link_id:
            query = query.filter(AuditLog.link_id == link_id)
        query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        return [serialize_entry(entry) for entry in apply_pagination(query, limit, offset).all()]

    @staticmethod
    def delete_corrupted(db: Session) -> int:
        """Delete rows carrying the unreadable object signature."""
        deleted = (
            db.query(AuditLog)
            .filter(
                or_(
                    AuditLog.details == UNREADABLE_SIGNATURE,
                    AuditLog.details.like(f"%{UNREADABLE_SIGNATURE}%"),
                )
            )
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted

    @staticmethod
    def repair_corrupted(db: Session) -> int:
        """Null out ``details`` that cannot be decoded into a payload.

        Repaired rows end with NULL details, so a second pass finds nothing.
        """
        candidates = (
            db.query(AuditLog.id, AuditLog.details, AuditLog.details_encoding)
            .filter(AuditLog.details.isnot(None))
            .filter(AuditLog.details != "")
            .order_by(AuditLog.id)
            .all()
        )
        repair_ids = [
            row.id
            for row in candidates
            if is_repairable(decode_details(row.details, row.details_encoding), row.details_encoding)
        ]
        for start in range(0, len(repair_ids), REPAIR_BATCH_SIZE):
            batch = repair_ids[start:start + REPAIR_BATCH_SIZE]
            db.query(AuditLog).filter(AuditLog.id.in_(batch)).update(
                {AuditLog.details: None, AuditLog.details_encoding: None},
                synchronize_session=False,
            )
        db.commit()
        if repair_ids:
            logger.info("Repaired %s audit log rows with unreadable details", len(repair_ids))
        return len(repair_ids)

    @staticmethod
    def _older_than(db: Session, retention_days: int, now: datetime | None):
        cutoff = (now or utcnow()) - timedelta(days=retention_days)
        return db.query(AuditLog).filter(AuditLog.created_at < cutoff)

    @staticmethod
    def count_older_than(db: Session, retention_days: int, now: datetime | None = None) -> int:
        return AuditEvents._older_than(db, retention_days, now).count()

    @staticmethod
    def purge_older_than(db: Session, retention_days: int, now: datetime | None = None) -> int:
        deleted = AuditEvents._older_than(db, retention_days, now).delete(
            synchronize_session=False
        )
        db.commit()
        return deleted

    @staticmethod
    def stats(db: Session, now: datetime | None = None) -> dict[str, int]:
        now = now or utcnow()
        today = start_of_day(now)
        week_ago = now - timedelta(days=7)
        total, today_count, week_count, unique_actions, unique_links = db.query(
            func.count(AuditLog.id),
            func.count(AuditLog.id).filter(AuditLog.created_at >= today),
            func.count(AuditLog.id).filter(AuditLog.created_at >= week_ago),
            func.count(func.distinct(AuditLog.action)),
            func.count(func.distinct(AuditLog.link_id)),
        ).one()
        return {
            "total": total or 0,
            "today": today_count or 0,
            "this_week": week_count or 0,
            "unique_actions": unique_actions or 0,
            "unique_links": unique_links or 0,
        }


audit_events = AuditEvents()
