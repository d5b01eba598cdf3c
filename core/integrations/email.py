"""Email integration for sign-up verification codes."""

import asyncio
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
import logging

from core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """
    Email service.

    The ``smtp`` backend delivers through an SMTP server in a worker thread;
    the ``console`` backend only logs the message (development and tests).
    """

    def __init__(
        self,
        backend: Optional[str] = None,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
    ):
        """
        Initialize email service.

        Args:
            backend: "smtp" or "console" (defaults to settings.email_backend)
            smtp_host: SMTP server host
            smtp_port: SMTP server port
            smtp_user: SMTP username
            smtp_password: SMTP password
            from_email: Default sender email
            from_name: Default sender name
        """
        self.backend = backend or settings.email_backend
        self.smtp_host = smtp_host or settings.smtp_host or "localhost"
        self.smtp_port = smtp_port or settings.smtp_port
        self.smtp_user = smtp_user or settings.smtp_user
        self.smtp_password = smtp_password or settings.smtp_password
        self.from_email = from_email or settings.from_email
        self.from_name = from_name or "OpenToWork"
        self.outbox: list[dict] = []

    def _build_message(self, to_email: str, subject: str, body: str, html: bool) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg['From'] = f"{self.from_name} <{self.from_email}>"
        msg['To'] = to_email
        msg['Subject'] = subject
        msg.attach(MIMEText(body, 'html' if html else 'plain'))
        return msg

    def send_email(self, to_email: str, subject: str, body: str, html: bool = False) -> None:
        """
        Send an email synchronously.

        Raises:
            smtplib.SMTPException, OSError: Delivery failed
        """
        if self.backend == "console":
            self.outbox.append({"to": to_email, "subject": subject, "body": body})
            logger.info(f"[console email] to={to_email} subject={subject!r}\n{body}")
            return

        msg = self._build_message(to_email, subject, body, html)
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg, from_addr=self.from_email, to_addrs=[to_email])
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            raise

        logger.info(f"Email sent to {to_email}")

    async def send_email_async(self, to_email: str, subject: str, body: str, html: bool = False) -> None:
        await asyncio.to_thread(self.send_email, to_email, subject, body, html)

    async def send_verification_code(self, to_email: str, code: str, ttl_minutes: int) -> None:
        """Mail the sign-up confirmation code."""
        body = (
            f"Your OpenToWork verification code is {code}.\n\n"
            f"It expires in {ttl_minutes} minutes. If you did not sign up, "
            f"you can ignore this email."
        )
        await self.send_email_async(to_email, "Confirm your OpenToWork account", body)
