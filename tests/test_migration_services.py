from datetime import UTC, datetime, timedelta

import pytest

from app.errors import StorageError, UnauthorizedError, ValidationError
from app.models.audit import AuditAction
from app.models.secure_link import SecureLink
from app.services import migration as migration_service
from app.services.audit import audit_events
from app.services.common import as_utc, utcnow
from tests.conftest import ADMIN_KEY


def _legacy(link_id, email="legacy@example.com", used=False):
    return migration_service.LegacyLink(
        id=link_id,
        email=email,
        otp="111222",
        expires_at=utcnow() + timedelta(days=1),
        used=used,
        created_at=utcnow() - timedelta(days=2),
    )


def test_legacy_link_from_dict_accepts_export_formats():
    link = migration_service.legacy_link_from_dict(
        "a" * 32,
        {
            "email": "x@example.com",
            "otp": 123456,
            "expiresAt": 1767225600000,
            "createdAt": "2025-12-31T00:00:00Z",
            "used": True,
        },
    )
    assert link.otp == "123456"
    assert link.expires_at == datetime(2026, 1, 1, tzinfo=UTC)
    assert link.created_at == datetime(2025, 12, 31, tzinfo=UTC)
    assert link.used is True

    snake = migration_service.legacy_link_from_dict(
        "b" * 32, {"email": "y@example.com", "otp": "1", "expires_at": "2026-01-01T00:00:00"}
    )
    assert snake.expires_at == datetime(2026, 1, 1, tzinfo=UTC)
    assert snake.created_at is None


def test_legacy_link_from_dict_rejects_bad_dates():
    with pytest.raises(ValidationError):
        migration_service.legacy_link_from_dict("c" * 32, {"email": "z@example.com"})
    with pytest.raises(ValidationError):
        migration_service.legacy_link_from_dict(
            "c" * 32, {"email": "z@example.com", "expiresAt": "next tuesday"}
        )


def test_in_memory_store():
    store = migration_service.InMemoryLinkStore([_legacy("a" * 32)])
    assert len(store) == 1
    assert store.exists("a" * 32)
    assert store.get("b" * 32) is None
    store.clear()
    assert len(store) == 0


def test_migrate_requires_admin_key(db_session):
    store = migration_service.InMemoryLinkStore([_legacy("a" * 32)])
    with pytest.raises(UnauthorizedError):
        migration_service.legacy_migration.migrate(db_session, store, "wrong-key")
    assert len(store) == 1
    assert db_session.query(SecureLink).count() == 0
    [entry] = audit_events.list(db_session)
    assert entry["action"] == "ADMIN_UNAUTHORIZED"
    assert entry["details"]["providedKey"] == "provided_but_invalid"


def test_migrate_empty_store(db_session):
    store = migration_service.InMemoryLinkStore()
    result = migration_service.legacy_migration.migrate(db_session, store, ADMIN_KEY)
    assert result.total_processed == 0
    assert result.legacy_cleared is False
    assert audit_events.list(db_session) == []


def test_migrate_imports_new_and_skips_existing(db_session, make_link):
    existing = make_link(email="already@example.com")
    store = migration_service.InMemoryLinkStore(
        [_legacy("a" * 32, used=True), _legacy(existing.id, email="stale@example.com")]
    )

    result = migration_service.legacy_migration.migrate(db_session, store, ADMIN_KEY)

    assert result.migrated_count == 1
    assert result.skipped_count == 1
    assert result.error_count == 0
    assert result.legacy_cleared is True
    assert len(store) == 0

    imported = db_session.get(SecureLink, "a" * 32)
    assert imported.otp == "111222"
    assert imported.used is True
    assert as_utc(imported.created_at) < utcnow() - timedelta(days=1)
    db_session.refresh(existing)
    assert existing.email == "already@example.com"

    assert audit_events.list(db_session, action=AuditAction.data_migrated)[0]["link_id"] == "a" * 32
    skipped = audit_events.list(db_session, action=AuditAction.migration_skipped)[0]
    assert skipped["details"] == {"reason": "already_exists", "source": "memory"}
    completed = audit_events.list(db_session, action=AuditAction.migration_completed)[0]
    assert completed["details"]["totalProcessed"] == 2
    assert completed["ip_address"] == "system"


def test_migrate_is_idempotent_against_registry(db_session):
    links = [_legacy("a" * 32), _legacy("b" * 32)]
    migration_service.legacy_migration.migrate(
        db_session, migration_service.InMemoryLinkStore(links), ADMIN_KEY
    )
    result = migration_service.legacy_migration.migrate(
        db_session, migration_service.InMemoryLinkStore(links), ADMIN_KEY
    )
    assert result.migrated_count == 0
    assert result.skipped_count == 2
    assert db_session.query(SecureLink).count() == 2


def test_migrate_keeps_store_when_a_record_fails(db_session, monkeypatch):
    store = migration_service.InMemoryLinkStore([_legacy("a" * 32), _legacy("b" * 32)])
    real_import = migration_service.secure_links.import_link

    def _import(db, link_id, **kwargs):
        if link_id == "a" * 32:
            raise StorageError(f"Failed to import link {link_id}", reason="constraint")
        return real_import(db, link_id=link_id, **kwargs)

    monkeypatch.setattr(migration_service.secure_links, "import_link", _import)
    result = migration_service.legacy_migration.migrate(db_session, store, ADMIN_KEY)

    assert result.migrated_count == 1
    assert result.error_count == 1
    assert result.errors == [f"Failed to migrate {'a' * 32}: constraint"]
    assert result.legacy_cleared is False
    assert len(store) == 2
    assert db_session.get(SecureLink, "b" * 32) is not None


def test_status_reports_both_stores(db_session, make_link):
    make_link()
    store = migration_service.InMemoryLinkStore([_legacy("a" * 32)])
    status = migration_service.legacy_migration.status(db_session, store)
    assert status == {
        "legacy": {"count": 1, "has_data": True},
        "registry": {"count": 1, "has_data": True},
        "needs_migration": True,
    }
    assert migration_service.legacy_migration.has_legacy_data(store) == {
        "present": True,
        "count": 1,
    }
