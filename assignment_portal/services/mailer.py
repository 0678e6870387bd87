"""Submission notification email.

Mail is advisory: failing to build or send a message never aborts a
submission. The outcome is returned as a ``NotificationResult`` and stored on
the submission instead.
"""

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid, parseaddr
from enum import Enum
from html import escape

from assignment_portal.core import config
from assignment_portal.core.deadlines import utcnow

logger = logging.getLogger(__name__)


class NotificationStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class NotificationResult:
    status: NotificationStatus
    message_id: str | None = None
    error: str | None = None

    @classmethod
    def sent(cls, message_id: str) -> "NotificationResult":
        return cls(NotificationStatus.SENT, message_id=message_id)

    @classmethod
    def failed(cls, error: str) -> "NotificationResult":
        return cls(NotificationStatus.FAILED, error=error)

    @classmethod
    def skipped(cls, reason: str) -> "NotificationResult":
        return cls(NotificationStatus.SKIPPED, error=reason)


class SmtpMailer:
    def __init__(
        self,
        host: str,
        port: int,
        *,
        sender: str,
        recipient: str,
        username: str = "",
        password: str = "",
        starttls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.recipient = recipient
        self.username = username
        self.password = password
        self.starttls = starttls
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.host and self.sender and self.recipient)

    def build_message(
        self,
        student_name: str,
        assignment_title: str,
        filename: str,
        content: bytes,
    ) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = f"New Assignment Submission: {assignment_title}"
        message["From"] = self.sender
        message["To"] = self.recipient
        message["Message-ID"] = make_msgid(domain=parseaddr(self.sender)[1].rpartition("@")[2] or None)

        submitted_at = utcnow().strftime("%Y-%m-%d %H:%M:%S UTC")
        message.set_content(
            f"Student: {student_name}\n"
            f"Assignment: {assignment_title}\n"
            f"Filename: {filename}\n"
            f"Submitted at: {submitted_at}\n\n"
            "The PDF submission is attached.\n"
        )
        message.add_alternative(
            "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
            "<h2>New Assignment Submission</h2>"
            f"<p><strong>Student:</strong> {escape(student_name)}</p>"
            f"<p><strong>Assignment:</strong> {escape(assignment_title)}</p>"
            f"<p><strong>Filename:</strong> {escape(filename)}</p>"
            f"<p><strong>Submitted at:</strong> {submitted_at}</p>"
            "<p>Please find the attached PDF submission.</p>"
            "</div>",
            subtype="html",
        )
        message.add_attachment(content, maintype="application", subtype="pdf", filename=filename)
        return message

    def send_submission(
        self,
        student_name: str,
        assignment_title: str,
        filename: str,
        content: bytes,
    ) -> NotificationResult:
        if not self.configured:
            return NotificationResult.skipped("mail transport not configured")

        try:
            message = self.build_message(student_name, assignment_title, filename, content)
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.starttls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except Exception as exc:
            logger.warning("Submission email for %s failed: %s", filename, exc, exc_info=True)
            return NotificationResult.failed(str(exc) or exc.__class__.__name__)

        return NotificationResult.sent(message["Message-ID"])


def build_mailer() -> SmtpMailer:
    mailer = SmtpMailer(
        config.SMTP_HOST,
        config.SMTP_PORT,
        sender=config.EMAIL_FROM,
        recipient=config.EMAIL_TO,
        username=config.SMTP_USERNAME,
        password=config.SMTP_PASSWORD,
        starttls=config.SMTP_STARTTLS,
        timeout=config.SMTP_TIMEOUT_SECONDS,
    )
    if not mailer.configured:
        logger.info("SMTP is not configured; submission emails will be skipped")
    return mailer
