"""
Telegram bot integration for operator alerts.

Posts a short message to the operations chat when a prediction job fails,
since the requester only notices a failure by the absence of an email.
"""

from typing import Optional
import requests
import structlog

from exceptions import TelegramError
from models.job import Job

logger = structlog.get_logger(__name__)

API_URL = "https://api.telegram.org"

# Entity delimiters in Telegram's legacy Markdown
MARKDOWN_SPECIAL = ("_", "*", "`", "[")


def escape_markdown(text: str) -> str:
    """Escape user text so it renders literally with parse_mode=Markdown."""
    for char in MARKDOWN_SPECIAL:
        text = text.replace(char, "\\" + char)
    return text


def _code_span(text: str) -> str:
    """Inline code span. Backticks cannot be escaped inside one, so they are dropped."""
    return "`" + str(text).replace("`", "") + "`"


def format_job_failure_message(job: Job) -> str:
    """
    Format a failed job as a Telegram message.

    Args:
        job: Job in FAILED state

    Returns:
        Markdown message text
    """
    lines = [
        "🚨 *Prediction job failed*",
        "",
        f"Job: {_code_span(job.id)}",
        f"File: {escape_markdown(job.filename)}",
        f"Requester: {escape_markdown(job.email)}",
        f"Models: {escape_markdown(', '.join(job.model_ids))}",
    ]

    if job.handle:
        lines.append(f"Handle: {_code_span(job.handle)}")
    if job.error:
        lines.append("")
        lines.append(escape_markdown(job.error))

    timestamp = (job.finished_at or job.created_at).strftime("%Y-%m-%d %H:%M UTC")
    lines.append("")
    lines.append(f"🕐 {timestamp}")

    return "\n".join(lines)


class TelegramAlerter:
    """Sends operator alerts to one chat."""

    def __init__(
        self,
        bot_token: Optional[str],
        chat_id: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: float = 10
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> Optional["TelegramAlerter"]:
        """Alerter for the configured chat, or None when Telegram is not set up."""
        if not settings.telegram_configured:
            logger.info("telegram_not_configured")
            return None
        return cls(settings.telegram_bot_token, settings.telegram_chat_id)

    def send_message(self, message: str, parse_mode: str = "Markdown") -> bool:
        """
        Send message to Telegram.

        Args:
            message: Message text to send
            parse_mode: Telegram parse mode (Markdown or HTML)

        Returns:
            True if sent successfully

        Raises:
            TelegramError: If send fails
        """
        if not self.bot_token or not self.chat_id:
            logger.warning("telegram_not_configured_skipping_send")
            return False

        url = f"{API_URL}/bot{self.bot_token}/sendMessage"

        payload = {
            "chat_id": self.chat_id,
            "text": message,
            "parse_mode": parse_mode,
            "disable_web_page_preview": True,
        }

        try:
            logger.info("sending_telegram_message", chat_id=self.chat_id)

            response = self.session.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()

            result = response.json()

            if not result.get("ok"):
                error_msg = result.get("description", "Unknown error")
                logger.error("telegram_api_error", error=error_msg)
                raise TelegramError(f"Telegram API error: {error_msg}")

            logger.info("telegram_message_sent", message_id=result.get("result", {}).get("message_id"))
            return True

        except requests.exceptions.RequestException as e:
            logger.error("telegram_request_failed", error=str(e))
            raise TelegramError(f"Failed to send Telegram message: {str(e)}")

    def job_failed(self, job: Job) -> bool:
        """Alert the operators about a failed job."""
        return self.send_message(format_job_failure_message(job))
