"""
Email Service - outbound mail over SMTP.

Used for stage emails, assessment invites, offer links and onboarding
welcome links. With no smtp_host configured the message is only logged,
which is how local development and the test-suite run.
"""
import logging
import smtplib
from email.mime.text import MIMEText
from typing import Optional

from peopleos.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def send_email(to: str, subject: str, html: str, reply_to: Optional[str] = None) -> bool:
    """
    Send an HTML email.

    Returns:
        True when the message was handed to the SMTP server (or logged),
        False when sending failed. Never raises.
    """
    if not settings.smtp_host:
        logger.info(f"SMTP not configured, skipping email to {to}: {subject}")
        return True

    msg = MIMEText(html, "html", "utf-8")
    msg["Subject"] = subject
    msg["From"] = settings.email_from
    msg["To"] = to
    if reply_to:
        msg["Reply-To"] = reply_to

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
            if settings.smtp_use_tls:
                server.starttls()
            if settings.smtp_username:
                server.login(settings.smtp_username, settings.smtp_password)
            server.send_message(msg)
        logger.info(f"Email sent to {to}: {subject}")
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {to}: {e}")
        return False


def text_to_html(text: str) -> str:
    """Plain template bodies are stored as text; keep their line breaks."""
    return text.replace("\n", "<br>\n")
