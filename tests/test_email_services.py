import smtplib
from datetime import UTC, datetime

from app.services import email as email_service
from tests.mocks import FailingSMTP, FakeSMTP

SMTP_ENV = (
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USERNAME",
    "SMTP_USER",
    "SMTP_PASSWORD",
    "SMTP_USE_TLS",
    "SMTP_TLS",
    "SMTP_USE_SSL",
    "SMTP_SSL",
    "SMTP_FROM_EMAIL",
    "SMTP_FROM",
    "SMTP_FROM_NAME",
    "SMTP_TIMEOUT",
)


def _clear_smtp_env(monkeypatch):
    for name in SMTP_ENV:
        monkeypatch.delenv(name, raising=False)


def test_smtp_config_defaults(monkeypatch):
    _clear_smtp_env(monkeypatch)
    config = email_service.get_smtp_config()
    assert config["host"] == "localhost"
    assert config["port"] == 587
    assert config["use_tls"] is True
    assert config["use_ssl"] is False
    assert config["from_email"] == "noreply@example.com"
    assert config["from_name"] == "CGSD Logistics"
    assert config["timeout"] == 30


def test_smtp_config_accepts_alternate_names(monkeypatch):
    _clear_smtp_env(monkeypatch)
    monkeypatch.setenv("SMTP_USER", "mailer@example.com")
    monkeypatch.setenv("SMTP_PASSWORD", "secret")
    monkeypatch.setenv("SMTP_TLS", "false")
    monkeypatch.setenv("SMTP_PORT", "not-a-number")
    config = email_service.get_smtp_config()
    assert config["username"] == "mailer@example.com"
    assert config["from_email"] == "mailer@example.com"
    assert config["use_tls"] is False
    assert config["port"] == 587


def test_send_email_with_login_and_tls(monkeypatch, smtp):
    monkeypatch.setenv("SMTP_USERNAME", "mailer")
    monkeypatch.setenv("SMTP_PASSWORD", "secret")
    monkeypatch.setenv("SMTP_FROM_NAME", "Contracts Desk")

    sent = email_service.send_email(
        "user@example.com", "Hello", "<p>Hi</p>", body_text="Hi"
    )

    assert sent is True
    assert smtp.started_tls is True
    assert smtp.logged_in is True
    [(from_addr, to_addr, raw_message)] = smtp.messages
    assert from_addr == "noreply@test.local"
    assert to_addr == "user@example.com"
    assert "From: Contracts Desk <noreply@test.local>" in raw_message
    assert "text/plain" in raw_message
    assert "text/html" in raw_message


def test_send_email_over_ssl_skips_starttls(monkeypatch):
    ssl_server = FakeSMTP()
    monkeypatch.setenv("SMTP_USE_SSL", "true")
    monkeypatch.setattr(
        "smtplib.SMTP_SSL", lambda *args, **kwargs: ssl_server
    )
    assert email_service.send_email("user@example.com", "Hello", "<p>Hi</p>") is True
    assert ssl_server.started_tls is False
    assert len(ssl_server.messages) == 1


def test_send_email_failure_returns_false(monkeypatch):
    failing = FailingSMTP()
    monkeypatch.setattr("smtplib.SMTP", lambda *args, **kwargs: failing)
    assert email_service.send_email("user@example.com", "Hello", "<p>Hi</p>") is False
    assert failing.connected is False


def test_send_email_closes_connection_when_quit_fails(monkeypatch):
    failing = FailingSMTP()

    def _quit():
        raise smtplib.SMTPServerDisconnected("gone")

    failing.quit = _quit
    monkeypatch.setattr("smtplib.SMTP", lambda *args, **kwargs: failing)
    assert email_service.send_email("user@example.com", "Hello", "<p>Hi</p>") is False
    assert failing.connected is False


def test_send_email_connection_error_returns_false(monkeypatch):
    def _refuse(*args, **kwargs):
        raise ConnectionRefusedError("no server")

    monkeypatch.setattr("smtplib.SMTP", _refuse)
    assert email_service.send_email("user@example.com", "Hello", "<p>Hi</p>") is False


def test_render_secure_link_email_defaults():
    expires_at = datetime(2026, 3, 1, 14, 30, tzinfo=UTC)
    subject, body_html, body_text = email_service.render_secure_link_email(
        "https://sign.example.com/contract/abc", "482913", expires_at
    )
    assert subject == "Contract Signature Required - CGSD Logistics"
    assert "Dear Interpreter," in body_text
    assert "Secure Link: https://sign.example.com/contract/abc" in body_text
    assert "OTP Code: 482913" in body_text
    assert "2026-03-01 14:30 UTC" in body_text
    assert 'href="https://sign.example.com/contract/abc"' in body_html
    assert "482913" in body_html


def test_render_secure_link_email_escapes_custom_message():
    subject, body_html, body_text = email_service.render_secure_link_email(
        "https://sign.example.com/contract/abc",
        "482913",
        datetime(2026, 3, 1, tzinfo=UTC),
        subject="  Please sign  ",
        message="<script>alert(1)</script>\nThanks",
    )
    assert subject == "Please sign"
    assert "<script>" not in body_html
    assert "&lt;script&gt;" in body_html
    assert "&lt;/script&gt;<br>Thanks" in body_html
    assert body_text.startswith("<script>alert(1)</script>\nThanks")
