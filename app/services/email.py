import html
import logging
import os
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from app.config import settings

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "Contract Signature Required - {brand}"
DEFAULT_MESSAGE = (
    "Dear Interpreter,\n\n"
    "Please use the secure link below to access and sign your contract. "
    "You will need the OTP code provided to access the document.\n\n"
    "Thank you,\n"
    "{brand} Team"
)


def _env_value(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value


def _env_int(name: str, default: int) -> int:
    raw = _env_value(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = _env_value(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def get_smtp_config() -> dict:
    """SMTP transport settings, read from the environment on every call."""
    username = _env_value("SMTP_USERNAME") or _env_value("SMTP_USER")
    from_email = (
        _env_value("SMTP_FROM_EMAIL")
        or _env_value("SMTP_FROM")
        or username
        or "noreply@example.com"
    )
    return {
        "host": _env_value("SMTP_HOST") or "localhost",
        "port": _env_int("SMTP_PORT", 587),
        "username": username,
        "password": _env_value("SMTP_PASSWORD"),
        "use_tls": _env_bool("SMTP_USE_TLS", _env_bool("SMTP_TLS", True)),
        "use_ssl": _env_bool("SMTP_USE_SSL", _env_bool("SMTP_SSL", False)),
        "from_email": from_email,
        "from_name": _env_value("SMTP_FROM_NAME") or settings.brand_name,
        "timeout": _env_int("SMTP_TIMEOUT", 30),
    }


def _create_smtp_client(host: str, port: int, use_ssl: bool, timeout: int | None = None):
    if use_ssl:
        if timeout is None:
            return smtplib.SMTP_SSL(host, port)
        return smtplib.SMTP_SSL(host, port, timeout=timeout)
    if timeout is None:
        return smtplib.SMTP(host, port)
    return smtplib.SMTP(host, port, timeout=timeout)


def _close_smtp_client(server) -> None:
    try:
        server.quit()
    except (smtplib.SMTPException, OSError) as exc:
        logger.debug("SMTP quit failed, closing socket: %s", exc)
        server.close()


def send_email(
    to_email: str,
    subject: str,
    body_html: str,
    body_text: str | None = None,
) -> bool:
    """
    Send an email via SMTP.

    Args:
        to_email: Recipient email address
        subject: Email subject
        body_html: HTML body content
        body_text: Plain text alternative (optional)

    Returns:
        True if email was sent successfully, False otherwise
    """
    config = get_smtp_config()

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{config['from_name']} <{config['from_email']}>"
    msg["To"] = to_email

    if body_text:
        msg.attach(MIMEText(body_text, "plain"))
    msg.attach(MIMEText(body_html, "html"))

    try:
        server = _create_smtp_client(
            config["host"],
            config["port"],
            bool(config["use_ssl"]),
            config["timeout"],
        )

        try:
            if config["use_tls"] and not config["use_ssl"]:
                server.starttls()

            if config["username"] and config["password"]:
                server.login(config["username"], config["password"])

            server.sendmail(config["from_email"], to_email, msg.as_string())
        finally:
            _close_smtp_client(server)

        logger.info("Email sent successfully to %s", to_email)
        return True

    except smtplib.SMTPAuthenticationError as exc:
        logger.error("SMTP authentication failed for %s: %s", to_email, exc)
        return False
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("Failed to send email to %s: %s", to_email, exc)
        return False


def _format_expiry(expires_at: datetime) -> str:
    return expires_at.strftime("%Y-%m-%d %H:%M UTC")


def render_secure_link_email(
    secure_url: str,
    otp: str,
    expires_at: datetime,
    subject: str | None = None,
    message: str | None = None,
) -> tuple[str, str, str]:
    """Build subject, HTML and text bodies for a secure link invitation.

    Caller-supplied text is escaped before it reaches the HTML body.
    """
    brand = settings.brand_name
    subject = (subject or "").strip() or DEFAULT_SUBJECT.format(brand=brand)
    message = (message or "").strip() or DEFAULT_MESSAGE.format(brand=brand)
    expires_label = _format_expiry(expires_at)

    body_text = (
        f"{message}\n\n"
        f"Secure Link: {secure_url}\n"
        f"OTP Code: {otp}\n\n"
        f"This link will expire on: {expires_label}\n\n"
        "Important: Keep this OTP code secure and do not share it with anyone.\n\n"
        f"Best regards,\n{brand} Team\n"
    )

    safe_brand = html.escape(brand)
    safe_url = html.escape(secure_url, quote=True)
    safe_message = html.escape(message).replace("\n", "<br>")
    body_html = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <div style="background: #16a34a; padding: 20px; text-align: center;">
    <h1 style="color: white; margin: 0;">{safe_brand}</h1>
  </div>
  <div style="padding: 30px; background: #f9f9f9;">
    <div style="background: white; padding: 20px; border-radius: 8px;">
      <p style="color: #333; line-height: 1.6;">{safe_message}</p>
      <div style="margin: 30px 0; padding: 20px; background: #f0fdf4; border-left: 4px solid #22c55e;">
        <h3 style="color: #16a34a; margin: 0 0 10px 0;">Secure Access Information</h3>
        <p style="margin: 10px 0;"><strong>Secure Link:</strong><br>
        <a href="{safe_url}" style="color: #16a34a;">{safe_url}</a></p>
        <p style="margin: 10px 0;"><strong>OTP Code:</strong>
        <span style="font-family: monospace; font-size: 18px; font-weight: bold;">{html.escape(otp)}</span></p>
        <p style="margin: 10px 0; color: #dc2626;"><strong>Expires:</strong> {expires_label}</p>
      </div>
      <div style="margin: 20px 0; padding: 15px; background: #fef3c7; border-radius: 4px;">
        <p style="margin: 0; color: #92400e;"><strong>Security Notice:</strong>
        Keep this OTP code secure and do not share it with anyone. This link is
        unique to you and will expire after use or at the specified time.</p>
      </div>
    </div>
  </div>
  <div style="background: #22c55e; padding: 15px; text-align: center;">
    <p style="color: white; margin: 0;">Best regards, {safe_brand} Team</p>
  </div>
</div>
"""
    return subject, body_html, body_text
