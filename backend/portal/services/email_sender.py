"""Email Sender - SMTP delivery for outbox notifications"""
import smtplib
from email.message import EmailMessage

from ..config.settings import settings
from ..domain.errors import EmailSendError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class EmailSender:
    """Send one multipart (text + HTML) message over SMTP"""

    def __init__(self, timeout: int = 10):
        self.timeout = timeout

    def send(self, to_email: str, subject: str, text: str, html: str) -> None:
        """
        Deliver a message

        Raises:
            EmailSendError: If SMTP is not configured or the server rejects it
        """
        if not settings.email_configured:
            raise EmailSendError("SMTP is not configured")

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = settings.smtp_from
        msg["To"] = to_email
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=self.timeout) as smtp:
                if settings.smtp_use_tls:
                    smtp.starttls()
                if settings.smtp_user:
                    smtp.login(settings.smtp_user, settings.smtp_password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailSendError(f"SMTP delivery failed: {str(e)[:400]}") from e

        logger.debug(f"Email sent to {to_email}: {subject}")
