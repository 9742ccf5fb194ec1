"""Pydantic schemas for maintenance, migration and health endpoints."""

from datetime import datetime

from pydantic import Field

from app.schemas.audit import AuditStats
from app.schemas.common import CamelModel
from app.schemas.contracts import ContractStats


class StoreCount(CamelModel):
    count: int
    has_data: bool


class MigrationStatus(CamelModel):
    success: bool = True
    legacy: StoreCount
    registry: StoreCount
    needs_migration: bool
    timestamp: datetime


class MigrationResultRead(CamelModel):
    success: bool = True
    message: str
    migrated_count: int
    skipped_count: int
    error_count: int
    errors: list[str] = Field(default_factory=list)
    legacy_cleared: bool


class CleanupRequest(CamelModel):
    dry_run: bool = False
    link_grace_days: int | None = Field(default=None, ge=0)
    audit_retention_days: int | None = Field(default=None, ge=0)


class CleanupResult(CamelModel):
    success: bool = True
    deleted_links: int
    deleted_logs: int
    dry_run: bool = False


class AuditCleanupResult(CamelModel):
    success: bool = True
    message: str
    deleted_count: int
    corrected_count: int
    total_processed: int


class ReconcileResult(CamelModel):
    success: bool = True
    updated_count: int


class LinkStats(CamelModel):
    total: int
    used: int
    expired: int
    active: int
    today: int


class HealthStats(CamelModel):
    secure_links: LinkStats
    signed_contracts: ContractStats
    audit_logs: AuditStats


class HealthRead(CamelModel):
    database_connected: bool
    stats: HealthStats
    timestamp: datetime
