"""Outgoing email over SMTP."""

import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from cyclofit.shared.config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    success: bool
    dev: bool = False
    error: Optional[str] = None


def send_email(settings: Settings, to: str, subject: str, html: str, reply_to: Optional[str] = None) -> EmailResult:
    """
    Send an HTML email.

    Outside production, missing SMTP credentials are not an error: the email
    is written to the log instead and reported as a dev delivery.
    Never raises; failures come back as EmailResult(success=False).
    """
    if not settings.SMTP_USER or not settings.SMTP_PASSWORD:
        if not settings.is_production:
            logger.info("Email not sent (SMTP not configured). To: %s Subject: %s\n%s", to, subject, html)
            return EmailResult(success=True, dev=True)
        logger.error("SMTP credentials not configured")
        return EmailResult(success=False, error="SMTP credentials not configured")

    msg = MIMEMultipart()
    msg["From"] = settings.SMTP_USER
    msg["To"] = to
    msg["Subject"] = subject
    if reply_to:
        msg["Reply-To"] = reply_to
    msg.attach(MIMEText(html, "html"))

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
            server.starttls()
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {to}: {str(e)}", exc_info=True)
        return EmailResult(success=False, dev=not settings.is_production, error=str(e))

    logger.info(f"Email '{subject}' sent to {to}")
    return EmailResult(success=True)
