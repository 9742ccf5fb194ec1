from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_admin_key
from app.schemas.audit import AuditLogRead
from app.schemas.common import ListResponse
from app.schemas.contracts import ContractListItem
from app.schemas.dashboard import DashboardAnalytics, DashboardStats
from app.schemas.links import SecureLinkRead
from app.services import dashboard as dashboard_service
from app.services.response import list_response

router = APIRouter(
    prefix="/dashboard",
    tags=["dashboard"],
    dependencies=[Depends(require_admin_key)],
)


@router.get("/stats", response_model=DashboardStats)
def dashboard_stats(db: Session = Depends(get_db)):
    return dashboard_service.dashboard.stats(db)


@router.get("/links", response_model=ListResponse[SecureLinkRead])
def dashboard_links(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = dashboard_service.dashboard.links(db, limit, offset)
    return list_response(items, limit, offset)


@router.get("/contracts", response_model=ListResponse[ContractListItem])
def dashboard_contracts(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = dashboard_service.dashboard.contracts(db, limit, offset)
    return list_response(items, limit, offset)


@router.get("/audit-logs", response_model=ListResponse[AuditLogRead])
def dashboard_audit_logs(
    action: str | None = None,
    link_id: str | None = Query(default=None, alias="linkId"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = dashboard_service.dashboard.audit_logs(
        db, limit=limit, offset=offset, action=action, link_id=link_id
    )
    return list_response(items, limit, offset)


@router.get("/analytics", response_model=DashboardAnalytics)
def dashboard_analytics(db: Session = Depends(get_db)):
    return dashboard_service.dashboard.analytics(db)
