import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("API_KEY", "test-api-key")
os.environ.setdefault("ADMIN_KEY", "test-admin-key")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BASE_URL", "https://sign.example.com")

from datetime import timedelta

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import Base
from app.models import AuditLog, SecureLink, SignedContract  # noqa: F401
from app.services.common import utcnow
from tests.mocks import FakeSMTP

API_KEY = os.environ["API_KEY"]
ADMIN_KEY = os.environ["ADMIN_KEY"]


@pytest.fixture()
def engine():
    # A fresh in-memory database per test; services commit and roll back freely
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def smtp(monkeypatch):
    """Every SMTP connection in a test lands on this fake server."""
    fake_smtp = FakeSMTP()

    def _connect(*args, **kwargs):
        return fake_smtp

    monkeypatch.setattr("smtplib.SMTP", _connect)
    monkeypatch.setattr("smtplib.SMTP_SSL", _connect)
    monkeypatch.setenv("SMTP_HOST", "smtp.test.local")
    monkeypatch.setenv("SMTP_FROM", "noreply@test.local")
    return fake_smtp


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient

    from app.db import get_db
    from app.main import app
    from app.services.migration import InMemoryLinkStore

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.state.legacy_link_store = InMemoryLinkStore()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def admin_headers():
    return {"x-admin-key": ADMIN_KEY}


@pytest.fixture()
def api_headers():
    return {"x-api-key": API_KEY}


@pytest.fixture()
def make_link(db_session):
    """Create a stored link with a known OTP."""
    from app.services.secure_links import secure_links

    def _make(email="interpreter@example.com", otp="123456", ttl=timedelta(hours=1)):
        return secure_links.create(db_session, email, ttl, otp_generator=lambda: otp)

    return _make


@pytest.fixture()
def expired_link(db_session, make_link):
    link = make_link(otp="654321")
    link.expires_at = utcnow() - timedelta(minutes=1)
    db_session.commit()
    return link


PDF_BYTES = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF"


@pytest.fixture()
def pdf_base64():
    import base64

    return base64.b64encode(PDF_BYTES).decode("ascii")
