import logging
import smtplib
from email.message import EmailMessage

import resend

from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


def _build_smtp_client():
    if not settings.SMTP_HOST:
        return None
    host = settings.SMTP_HOST
    port = settings.SMTP_PORT
    if settings.SMTP_USE_SSL:
        return smtplib.SMTP_SSL(host, port)
    client = smtplib.SMTP(host, port)
    if settings.SMTP_USE_TLS:
        client.starttls()
    return client


def _send_via_resend(to_email: str, subject: str, body: str) -> bool:
    api_key = settings.RESEND_API_KEY
    sender = settings.RESEND_FROM or settings.SMTP_FROM
    if not api_key or not sender:
        return False
    try:
        resend.api_key = api_key
        resend.Emails.send(
            {
                "from": sender,
                "to": to_email,
                "subject": subject,
                "html": body,
            }
        )
        logger.info("Email sent via resend to=%s subject=%s", to_email, subject)
        return True
    except Exception:
        logger.exception("Resend delivery failed to=%s", to_email)
        return False


def _send_via_smtp(to_email: str, subject: str, body: str) -> bool:
    if not settings.SMTP_HOST or not settings.SMTP_FROM:
        return False

    msg = EmailMessage()
    msg["From"] = settings.SMTP_FROM
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body, subtype="html")

    client = _build_smtp_client()
    if not client:
        return False

    try:
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            client.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        client.send_message(msg)
        logger.info("Email sent via smtp to=%s subject=%s", to_email, subject)
        return True
    except (smtplib.SMTPException, OSError):
        logger.exception("SMTP delivery failed to=%s", to_email)
        return False
    finally:
        try:
            client.quit()
        except (smtplib.SMTPException, OSError):
            pass


def deliver_email(to_email: str, subject: str, body: str) -> bool:
    """Try Resend, then SMTP. Returns False when nothing could deliver."""
    if _send_via_resend(to_email, subject, body):
        return True
    if _send_via_smtp(to_email, subject, body):
        return True
    logger.warning("No email transport delivered to=%s subject=%s", to_email, subject)
    return False


def send_verification_email(email: str, code: str) -> bool:
    subject = "Verify your email"
    body = (
        "<h2>Verify your email</h2>"
        f"<p>Your Connectify verification code is <strong>{code}</strong>.</p>"
        f"<p>The code expires in {settings.VERIFICATION_TTL_HOURS} hours.</p>"
    )
    return deliver_email(email, subject, body)


def send_welcome_email(email: str, username: str) -> bool:
    subject = "Welcome to Connectify"
    body = (
        f"<h2>Welcome, {username}!</h2>"
        "<p>Your email has been verified. Start sharing your tracks.</p>"
        f'<p><a href="{settings.FRONTEND_URL}">Open Connectify</a></p>'
    )
    return deliver_email(email, subject, body)


def send_password_reset_email(email: str, link: str) -> bool:
    subject = "Reset your password"
    body = (
        "<h2>Reset your password</h2>"
        f'<p><a href="{link}">{link}</a></p>'
        f"<p>This link expires in {settings.RESET_TTL_MINUTES} minutes. "
        "If you didn't request it, ignore this email.</p>"
    )
    return deliver_email(email, subject, body)


def send_reset_success_email(email: str) -> bool:
    subject = "Your password was changed"
    body = (
        "<h2>Password reset successful</h2>"
        "<p>Your password has been updated. If this wasn't you, reset it again right away.</p>"
    )
    return deliver_email(email, subject, body)
