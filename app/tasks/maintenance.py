"""Celery tasks for retention cleanup and data repair."""

import logging
import time

from app.celery_app import celery_app
from app.db import SessionLocal
from app.metrics import observe_job
from app.services import maintenance as maintenance_service

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.maintenance.run_cleanup")
def run_cleanup(dry_run: bool = False):
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        result = maintenance_service.maintenance.cleanup(session, dry_run=dry_run)
        logger.info(
            "Database cleanup deleted_links=%s deleted_logs=%s dry_run=%s",
            result["deleted_links"],
            result["deleted_logs"],
            dry_run,
        )
        return result
    except Exception:
        status = "error"
        session.rollback()
        logger.exception("Database cleanup failed.")
        raise
    finally:
        session.close()
        observe_job("database_cleanup", status, time.monotonic() - start)


@celery_app.task(name="app.tasks.maintenance.run_audit_log_cleanup")
def run_audit_log_cleanup():
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        return maintenance_service.maintenance.cleanup_audit_logs(session)
    except Exception:
        status = "error"
        session.rollback()
        logger.exception("Audit log cleanup failed.")
        raise
    finally:
        session.close()
        observe_job("audit_log_cleanup", status, time.monotonic() - start)


@celery_app.task(name="app.tasks.maintenance.run_reconcile_used_flags")
def run_reconcile_used_flags():
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        return {"updated": maintenance_service.maintenance.reconcile_used_flags(session)}
    except Exception:
        status = "error"
        session.rollback()
        raise
    finally:
        session.close()
        observe_job("reconcile_used_flags", status, time.monotonic() - start)
