import pytest

from app.config import settings
from app.errors import UnauthorizedError
from app.services import access as access_service
from app.services.audit import audit_events
from app.services.audit_helpers import RequestContext
from tests.conftest import ADMIN_KEY, API_KEY


def test_key_matches_requires_both_values():
    assert access_service.key_matches("secret", "secret")
    assert not access_service.key_matches("secret", "Secret")
    assert not access_service.key_matches(None, None)
    assert not access_service.key_matches("", "")
    assert not access_service.key_matches("secret", None)


def test_api_key_does_not_open_admin_endpoints(db_session):
    access_service.access_keys.check_api_key(db_session, API_KEY)
    access_service.access_keys.check_admin_key(db_session, ADMIN_KEY)
    assert settings.api_key != settings.admin_key
    with pytest.raises(UnauthorizedError):
        access_service.access_keys.check_admin_key(db_session, API_KEY)


def test_missing_key_is_audited_without_the_value(db_session):
    context = RequestContext(ip_address="192.0.2.1", user_agent="curl")
    with pytest.raises(UnauthorizedError):
        access_service.access_keys.check_admin_key(
            db_session, None, context, resource="/api/v1/dashboard/stats"
        )
    with pytest.raises(UnauthorizedError):
        access_service.access_keys.check_api_key(db_session, "guess", context)

    entries = audit_events.list(db_session)
    assert [entry["action"] for entry in entries] == [
        "EXTERNAL_API_UNAUTHORIZED",
        "ADMIN_UNAUTHORIZED",
    ]
    assert entries[0]["details"] == {"providedKey": "provided_but_invalid"}
    assert entries[1]["details"] == {
        "providedKey": "missing",
        "resource": "/api/v1/dashboard/stats",
    }
    assert "guess" not in str(entries)


def test_dashboard_rejects_wrong_admin_key(client, api_headers):
    response = client.get("/api/v1/dashboard/stats", headers={"x-admin-key": "wrong"})
    assert response.status_code == 401
    response = client.get("/api/v1/dashboard/stats", headers=api_headers)
    assert response.status_code == 401
