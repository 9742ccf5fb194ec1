import logging

from fastapi import Depends, FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm import Session
from starlette.responses import Response

from app.api.admin import router as admin_router
from app.api.contracts import router as contracts_router
from app.api.dashboard import router as dashboard_router
from app.api.links import router as links_router
from app.api.verification import limiter as verification_limiter
from app.api.verification import router as verification_router
from app.db import get_db
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.observability import ObservabilityMiddleware
from app.schemas.admin import HealthRead
from app.services import maintenance as maintenance_service
from app.services.migration import InMemoryLinkStore

app = FastAPI(title="Contract Signing API")
logger = logging.getLogger(__name__)
app.state.limiter = verification_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
# Links created before the database existed; read only by the migration endpoints
app.state.legacy_link_store = InMemoryLinkStore()

configure_logging()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(links_router)
_include_api_router(verification_router)
_include_api_router(contracts_router)
_include_api_router(admin_router)
_include_api_router(dashboard_router)


@app.get("/health", response_model=HealthRead)
def health_check(db: Session = Depends(get_db)):
    return maintenance_service.maintenance.health_check(db)


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
