"""Moving links out of the legacy in-process store into the registry.

The in-memory store is only ever read here. Request handling never falls
back to it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import StorageError, ValidationError
from app.models.audit import AuditAction
from app.services.access import access_keys
from app.services.audit import audit_events
from app.services.audit_helpers import SYSTEM_CONTEXT, RequestContext
from app.services.common import as_utc, utcnow
from app.services.secure_links import secure_links

logger = logging.getLogger(__name__)


@dataclass
class LegacyLink:
    id: str
    email: str
    otp: str
    expires_at: datetime
    used: bool = False
    created_at: datetime | None = None


def _parse_datetime(value: Any, field: str) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, (int, float)):
        # Exports carry epoch milliseconds
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    try:
        return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError as exc:
        raise ValidationError(f"Invalid {field}: {value!r}", reason=f"invalid_{field}") from exc


def legacy_link_from_dict(link_id: str, data: dict[str, Any]) -> LegacyLink:
    """Build a LegacyLink from an exported record (camelCase or snake_case keys)."""
    expires_at = _parse_datetime(data.get("expiresAt", data.get("expires_at")), "expires_at")
    if expires_at is None:
        raise ValidationError(f"Missing expiresAt for {link_id}", reason="invalid_expires_at")
    return LegacyLink(
        id=link_id,
        email=str(data.get("email") or ""),
        otp=str(data.get("otp") or ""),
        expires_at=expires_at,
        used=bool(data.get("used", False)),
        created_at=_parse_datetime(data.get("createdAt", data.get("created_at")), "created_at"),
    )


class InMemoryLinkStore:
    """Process-local link map kept only so its contents can be migrated."""

    def __init__(self, links: Iterable[LegacyLink] = ()):
        self._links: dict[str, LegacyLink] = {}
        for link in links:
            self.insert(link)

    def get(self, link_id: str) -> LegacyLink | None:
        return self._links.get(link_id)

    def exists(self, link_id: str) -> bool:
        return link_id in self._links

    def insert(self, link: LegacyLink) -> None:
        self._links[link.id] = link

    def items(self) -> Iterator[tuple[str, LegacyLink]]:
        return iter(list(self._links.items()))

    def clear(self) -> None:
        self._links.clear()

    def __len__(self) -> int:
        return len(self._links)


@dataclass
class MigrationResult:
    migrated_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    errors: list[str] | None = None
    legacy_cleared: bool = False

    @property
    def total_processed(self) -> int:
        return self.migrated_count + self.skipped_count + self.error_count


class LegacyMigration:
    @staticmethod
    def has_legacy_data(store: InMemoryLinkStore) -> dict[str, Any]:
        return {"present": len(store) > 0, "count": len(store)}

    @staticmethod
    def status(db: Session, store: InMemoryLinkStore) -> dict[str, Any]:
        legacy_count = len(store)
        registry_count = secure_links.count(db)
        return {
            "legacy": {"count": legacy_count, "has_data": legacy_count > 0},
            "registry": {"count": registry_count, "has_data": registry_count > 0},
            "needs_migration": legacy_count > 0,
        }

    @staticmethod
    def _migrate_one(
        db: Session, link: LegacyLink, context: RequestContext, result: MigrationResult
    ) -> None:
        if secure_links.exists(db, link.id):
            result.skipped_count += 1
            audit_events.append(
                db,
                AuditAction.migration_skipped,
                link_id=link.id,
                details={"reason": "already_exists", "source": "memory"},
                context=context,
            )
            return
        secure_links.import_link(
            db,
            link_id=link.id,
            email=link.email,
            otp=link.otp,
            expires_at=link.expires_at,
            used=link.used,
            created_at=link.created_at,
        )
        result.migrated_count += 1
        audit_events.append(
            db,
            AuditAction.data_migrated,
            link_id=link.id,
            details={
                "source": "memory",
                "email": link.email,
                "used": link.used,
                "createdAt": link.created_at,
                "migratedAt": utcnow(),
            },
            context=context,
        )

    @staticmethod
    def migrate(
        db: Session,
        store: InMemoryLinkStore,
        admin_credential: str | None,
        context: RequestContext | None = None,
    ) -> MigrationResult:
        """Copy every legacy link into the registry.

        Links already in the registry are skipped. Per-record failures are
        collected without stopping the batch; the legacy store is cleared
        only after a pass with no errors.

        Raises:
            UnauthorizedError: If the admin credential does not match
            StorageError: If the batch cannot run at all
        """
        context = context or SYSTEM_CONTEXT
        access_keys.check_admin_key(db, admin_credential, context, resource="migrate")

        result = MigrationResult(errors=[])
        if len(store) == 0:
            logger.info("No legacy links to migrate")
            return result

        try:
            for link_id, link in store.items():
                try:
                    LegacyMigration._migrate_one(db, link, context, result)
                except StorageError as exc:
                    result.error_count += 1
                    result.errors.append(f"Failed to migrate {link_id}: {exc.reason or exc.message}")
                    logger.warning("Failed to migrate legacy link %s: %s", link_id, exc.reason)
        except SQLAlchemyError as exc:
            db.rollback()
            audit_events.append(
                db, AuditAction.migration_error, details={"error": str(exc)}, context=context
            )
            raise StorageError("Migration failed", reason=str(exc)) from exc

        if result.error_count == 0:
            store.clear()
            result.legacy_cleared = True

        audit_events.append(
            db,
            AuditAction.migration_completed,
            details={
                "migratedCount": result.migrated_count,
                "skippedCount": result.skipped_count,
                "errorCount": result.error_count,
                "totalProcessed": result.total_processed,
                "legacyCleared": result.legacy_cleared,
            },
            context=context,
        )
        logger.info(
            "Legacy migration finished: %s migrated, %s skipped, %s failed",
            result.migrated_count,
            result.skipped_count,
            result.error_count,
        )
        return result


legacy_migration = LegacyMigration()
