import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
import logging

from ..core.config import settings

logger = logging.getLogger(__name__)


def send_email(to_address: str, subject: str, body: str) -> bool:
    """Send a plain-text email, or just log it when SMTP is not configured."""
    if not settings.smtp_host:
        logger.info(f"Email to {to_address} not sent (SMTP not configured). Subject: {subject}")
        return True

    message = MIMEMultipart()
    message["From"] = settings.smtp_from
    message["To"] = to_address
    message["Subject"] = subject
    message.attach(MIMEText(body, "plain", "utf-8"))

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
            if settings.smtp_use_tls:
                server.starttls()
            if settings.smtp_user:
                server.login(settings.smtp_user, settings.smtp_password or "")
            server.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {to_address}: {e}")
        return False

    logger.info(f"Email sent to {to_address}: {subject}")
    return True
