from fastapi import APIRouter, Body, Depends, Header
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_legacy_link_store, request_context, require_admin_key
from app.schemas.admin import (
    AuditCleanupResult,
    CleanupRequest,
    CleanupResult,
    MigrationResultRead,
    MigrationStatus,
    ReconcileResult,
)
from app.services import maintenance as maintenance_service
from app.services import migration as migration_service
from app.services.audit_helpers import RequestContext
from app.services.common import utcnow
from app.services.migration import InMemoryLinkStore

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/migrate",
    response_model=MigrationStatus,
    dependencies=[Depends(require_admin_key)],
)
def migration_status(
    db: Session = Depends(get_db),
    store: InMemoryLinkStore = Depends(get_legacy_link_store),
):
    status = migration_service.legacy_migration.status(db, store)
    return MigrationStatus(**status, timestamp=utcnow())


@router.post("/migrate", response_model=MigrationResultRead)
def migrate_legacy_links(
    x_admin_key: str | None = Header(default=None),
    db: Session = Depends(get_db),
    store: InMemoryLinkStore = Depends(get_legacy_link_store),
    context: RequestContext = Depends(request_context),
):
    result = migration_service.legacy_migration.migrate(db, store, x_admin_key, context)
    message = (
        "Migration completed"
        if result.total_processed
        else "No data to migrate - legacy store is empty"
    )
    return MigrationResultRead(
        message=message,
        migrated_count=result.migrated_count,
        skipped_count=result.skipped_count,
        error_count=result.error_count,
        errors=result.errors or [],
        legacy_cleared=result.legacy_cleared,
    )


@router.post(
    "/cleanup",
    response_model=CleanupResult,
    dependencies=[Depends(require_admin_key)],
)
def cleanup(
    payload: CleanupRequest | None = Body(default=None),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(request_context),
):
    payload = payload or CleanupRequest()
    return maintenance_service.maintenance.cleanup(
        db,
        link_grace_days=payload.link_grace_days,
        audit_retention_days=payload.audit_retention_days,
        dry_run=payload.dry_run,
        context=context,
    )


@router.post(
    "/cleanup-audit-logs",
    response_model=AuditCleanupResult,
    dependencies=[Depends(require_admin_key)],
)
def cleanup_audit_logs(
    db: Session = Depends(get_db),
    context: RequestContext = Depends(request_context),
):
    result = maintenance_service.maintenance.cleanup_audit_logs(db, context)
    return AuditCleanupResult(message="Audit log cleanup completed", **result)


@router.post(
    "/reconcile",
    response_model=ReconcileResult,
    dependencies=[Depends(require_admin_key)],
)
def reconcile_used_flags(
    db: Session = Depends(get_db),
    context: RequestContext = Depends(request_context),
):
    updated = maintenance_service.maintenance.reconcile_used_flags(db, context)
    return ReconcileResult(updated_count=updated)
