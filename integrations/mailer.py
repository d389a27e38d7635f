"""
Email delivery for job notifications.

Sends plain-text mail over SMTP, optionally with the result spreadsheet
attached.
"""

import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional
import structlog

from exceptions import NotificationError
from models.job import InferenceResult, Job

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MailAttachment:
    filename: str
    mime_type: str
    content: bytes


class MailSender:
    """
    SMTP transport.

    Port 465 style implicit TLS when `secure` is set, otherwise STARTTLS
    whenever the server offers it.
    """

    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        secure: bool = False,
        user: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.secure = secure
        self.user = user
        self.password = password
        self.sender = sender or user
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "MailSender":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            secure=settings.smtp_secure,
            user=settings.smtp_user,
            password=settings.smtp_password,
            sender=settings.sender_address,
        )

    @property
    def configured(self) -> bool:
        return bool(self.host and self.sender)

    def build_message(
        self,
        to: str,
        subject: str,
        body: str,
        attachment: Optional[MailAttachment] = None
    ) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        if attachment is not None:
            maintype, _, subtype = attachment.mime_type.partition("/")
            message.add_attachment(
                attachment.content,
                maintype=maintype or "application",
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )
        return message

    def _connect(self) -> smtplib.SMTP:
        if self.secure:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=ssl.create_default_context())

        smtp = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        smtp.ehlo()
        if smtp.has_extn("starttls"):
            smtp.starttls(context=ssl.create_default_context())
            smtp.ehlo()
        return smtp

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        attachment: Optional[MailAttachment] = None
    ) -> bool:
        """
        Send one email.

        Returns:
            True if sent, False if SMTP is not configured

        Raises:
            NotificationError: If the SMTP exchange fails
        """
        if not self.configured:
            logger.warning("smtp_not_configured_skipping_send", to=to, subject=subject)
            return False

        message = self.build_message(to, subject, body, attachment)

        try:
            logger.info("sending_email", to=to, subject=subject, has_attachment=attachment is not None)
            with self._connect() as smtp:
                if self.user and self.password:
                    smtp.login(self.user, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("email_send_failed", to=to, error=str(e))
            raise NotificationError(
                f"Failed to send email: {e}",
                details={"to": to, "subject": subject}
            )

        logger.info("email_sent", to=to)
        return True


class EmailNotifier:
    """Composes the job emails sent to the requester."""

    def __init__(self, sender: MailSender):
        self.sender = sender

    def job_started(self, job: Job) -> bool:
        body = "\n".join([
            f"Your file {job.filename} was accepted for processing.",
            "",
            f"Job: {job.id}",
            f"Models: {', '.join(job.model_ids)}",
            "",
            "The result will be sent to this address when it is ready.",
        ])
        return self.sender.send(job.email, f"Processing started: {job.filename}", body)

    def job_completed(self, job: Job, result: InferenceResult) -> bool:
        lines = [
            f"Processing of {job.filename} is complete.",
            "",
            f"Job: {job.id}",
        ]
        if result.row_count is not None:
            lines.append(f"Rows processed: {result.row_count}")
        lines += ["", f"The result is attached as {result.filename}."]

        return self.sender.send(
            job.email,
            f"Result ready: {job.filename}",
            "\n".join(lines),
            attachment=MailAttachment(
                filename=result.filename,
                mime_type=result.mime_type,
                content=result.content,
            ),
        )

    def job_failed(self, job: Job, reason: str) -> bool:
        body = "\n".join([
            f"Processing of {job.filename} failed.",
            "",
            f"Job: {job.id}",
            f"Reason: {reason}",
            "",
            "Please try again later or contact support with the job id above.",
        ])
        return self.sender.send(job.email, f"Processing failed: {job.filename}", body)
