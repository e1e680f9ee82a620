"""
Send password-reset mail via SMTP (Google Gmail or other).
Set SMTP_USER, SMTP_PASSWORD in .env. Use a Gmail App Password (not your normal password).
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from nexus.config import settings

logger = logging.getLogger(__name__)


def _from_address() -> str:
    if (settings.notify_from or "").strip():
        return settings.notify_from.strip()
    user = (settings.smtp_user or "").strip()
    if user:
        return f"Nexus <{user}>"
    return "Nexus <noreply@localhost>"


def send_password_reset_email(to_email: str, reset_link: str) -> bool:
    """
    Send one password-reset email with the reset link.
    Returns True if sent, False if skipped (SMTP not configured) or failed.
    """
    to_email = (to_email or "").strip()
    if not to_email or not reset_link:
        return False
    user = (settings.smtp_user or "").strip()
    password = (settings.smtp_password or "").strip()
    if not user or not password:
        logger.debug("SMTP_USER or SMTP_PASSWORD not set; skipping password reset email")
        return False
    body = "\n".join(
        [
            "Someone asked to reset the password for your Nexus account.",
            "",
            f"Reset it here: {reset_link}",
            "",
            "If this wasn't you, ignore this email.",
        ]
    )
    msg = MIMEMultipart("alternative")
    msg["Subject"] = "Reset your Nexus password"
    msg["From"] = _from_address()
    msg["To"] = to_email
    msg.attach(MIMEText(body, "plain"))
    msg.attach(MIMEText(f"<pre style='font-family:sans-serif'>{body}</pre>", "html"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            server.starttls()
            server.login(user, password)
            server.sendmail(user, [to_email], msg.as_string())
        logger.info("Password reset email sent to %s", to_email)
        return True
    except Exception as e:
        logger.exception("Failed to send password reset email: %s", e)
        return False
