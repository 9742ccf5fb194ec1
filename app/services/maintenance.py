"""Retention cleanup, audit log repair, used-flag reconciliation and health."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import timedelta
from typing import Any

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import StorageError
from app.models.audit import AuditAction
from app.models.contracts import SignedContract
from app.models.secure_link import SecureLink
from app.services.audit import audit_events
from app.services.audit_helpers import SYSTEM_CONTEXT, RequestContext
from app.services.common import utcnow
from app.services.contracts import signed_contracts
from app.services.secure_links import secure_links

logger = logging.getLogger(__name__)

EMPTY_LINK_STATS = {"total": 0, "used": 0, "expired": 0, "active": 0, "today": 0}
EMPTY_CONTRACT_STATS = {"total": 0, "today": 0, "this_week": 0, "this_month": 0, "by_type": {}}
EMPTY_AUDIT_STATS = {"total": 0, "today": 0, "this_week": 0, "unique_actions": 0, "unique_links": 0}


def _stats_or_default(db: Session, label: str, compute: Callable[[], dict], default: dict) -> dict:
    try:
        return compute()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Health check could not read %s stats: %s", label, exc)
        return dict(default)


class Maintenance:
    @staticmethod
    def cleanup(
        db: Session,
        link_grace_days: int | None = None,
        audit_retention_days: int | None = None,
        dry_run: bool = False,
        context: RequestContext | None = None,
    ) -> dict[str, Any]:
        """Delete links past their grace window and audit entries past retention.

        With ``dry_run`` nothing is deleted and nothing is logged; the counts
        are what a real run would remove right now.
        """
        grace = timedelta(
            days=settings.link_retention_days if link_grace_days is None else link_grace_days
        )
        retention = (
            settings.audit_retention_days if audit_retention_days is None else audit_retention_days
        )
        now = utcnow()
        try:
            if dry_run:
                return {
                    "deleted_links": secure_links.count_expired(db, grace, now),
                    "deleted_logs": audit_events.count_older_than(db, retention, now),
                    "dry_run": True,
                }
            deleted_links = secure_links.delete_expired(db, grace, now)
            deleted_logs = audit_events.purge_older_than(db, retention, now)
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError("Cleanup failed", reason=str(exc)) from exc

        audit_events.append(
            db,
            AuditAction.database_cleanup,
            details={"deletedLinks": deleted_links, "deletedLogs": deleted_logs},
            context=context or SYSTEM_CONTEXT,
        )
        logger.info("Cleanup removed %s links and %s audit entries", deleted_links, deleted_logs)
        return {"deleted_links": deleted_links, "deleted_logs": deleted_logs, "dry_run": False}

    @staticmethod
    def cleanup_audit_logs(db: Session, context: RequestContext | None = None) -> dict[str, int]:
        """Drop rows with the unreadable signature, then null other unreadable details.

        Safe to re-run: a second pass reports zero for both counts.
        """
        try:
            deleted = audit_events.delete_corrupted(db)
            corrected = audit_events.repair_corrupted(db)
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError("Audit log cleanup failed", reason=str(exc)) from exc

        result = {
            "deleted_count": deleted,
            "corrected_count": corrected,
            "total_processed": deleted + corrected,
        }
        audit_events.append(
            db,
            AuditAction.audit_log_cleanup,
            details={
                "deletedCount": deleted,
                "correctedCount": corrected,
                "totalProcessed": deleted + corrected,
            },
            context=context or SYSTEM_CONTEXT,
        )
        return result

    @staticmethod
    def reconcile_used_flags(db: Session, context: RequestContext | None = None) -> int:
        """Flag every link that has a signed contract as used."""
        signed_ids = select(SignedContract.link_id)
        try:
            updated = (
                db.query(SecureLink)
                .filter(SecureLink.used.is_(False))
                .filter(SecureLink.id.in_(signed_ids))
                .update(
                    {SecureLink.used: True, SecureLink.updated_at: utcnow()},
                    synchronize_session=False,
                )
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError("Reconciliation failed", reason=str(exc)) from exc

        if updated:
            logger.info("Reconciled used flag on %s signed links", updated)
            audit_events.append(
                db,
                AuditAction.links_reconciled,
                details={"updatedCount": updated},
                context=context or SYSTEM_CONTEXT,
            )
        return updated

    @staticmethod
    def health_check(db: Session) -> dict[str, Any]:
        try:
            db.execute(text("SELECT 1"))
            connected = True
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Database health check failed: %s", exc)
            connected = False

        return {
            "database_connected": connected,
            "stats": {
                "secure_links": _stats_or_default(
                    db, "secure link", lambda: secure_links.stats(db), EMPTY_LINK_STATS
                ),
                "signed_contracts": _stats_or_default(
                    db, "contract", lambda: signed_contracts.stats(db), EMPTY_CONTRACT_STATS
                ),
                "audit_logs": _stats_or_default(
                    db, "audit log", lambda: audit_events.stats(db), EMPTY_AUDIT_STATS
                ),
            },
            "timestamp": utcnow(),
        }


maintenance = Maintenance()
