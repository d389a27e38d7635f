"""
Prediction job pipeline.

create_job() runs inside the request: it validates the models and the
mapping and mints a job id. Nothing in it touches the network.

run() is scheduled as a background task after the response is sent:

    CREATED → DISPATCHED → POLLING* → COMPLETED | FAILED

A completed job sends exactly one result email. A failed job is logged,
optionally emailed to the requester and alerted to operators. Retries
happen only inside individual HTTP calls, never for the job as a whole.
"""

import secrets
from datetime import datetime, timezone
from typing import Callable, Optional
import structlog

from config.catalog import ModelCatalog
from exceptions import (
    AppError,
    FileTooLargeError,
    InvalidJobTransitionError,
    NotificationError,
    TelegramError,
    UnknownModelError,
)
from integrations.inference_client import (
    InferenceClient,
    InlineInferenceClient,
    PullInferenceClient,
)
from integrations.mailer import EmailNotifier
from integrations.telegram import TelegramAlerter
from models.job import (
    InferenceResult,
    Job,
    JobStatus,
    StatusReport,
    is_valid_job_transition,
)
from models.mapping import FieldMapping
from services.file_store_service import EphemeralFileStore
from services.mapping_validator import MappingValidator

logger = structlog.get_logger(__name__)


def describe_error(error: AppError) -> str:
    """One-line failure reason for emails and alerts."""
    detail = error.details.get("detail") if error.details else None
    return f"{error.message}: {detail}" if detail else error.message


class JobPipeline:
    """
    Owns the job lifecycle.

    One instance per process; jobs share nothing but the file store.
    """

    def __init__(
        self,
        settings,
        models: ModelCatalog,
        validator: MappingValidator,
        file_store: EphemeralFileStore,
        client: InferenceClient,
        notifier: EmailNotifier,
        alerter: Optional[TelegramAlerter] = None,
    ):
        self.settings = settings
        self.models = models
        self.validator = validator
        self.file_store = file_store
        self.client = client
        self.notifier = notifier
        self.alerter = alerter

    # ===================
    # SYNCHRONOUS PART
    # ===================

    def check_models(self, model_ids: list[str]) -> list[str]:
        """
        Validate requested model ids.

        Returns:
            Ids de-duplicated, in request order

        Raises:
            UnknownModelError: Empty list or any id not configured
        """
        ids = list(dict.fromkeys(m.strip() for m in model_ids if m and m.strip()))
        if not ids:
            raise UnknownModelError([], self.models.ids)

        unknown = self.models.unknown(ids)
        if unknown:
            raise UnknownModelError(unknown, self.models.ids)
        return ids

    def create_job(
        self,
        email: str,
        content: bytes,
        filename: str,
        mime_type: str,
        mapping: Optional[FieldMapping],
        model_ids: list[str],
        headers: list[str],
    ) -> Job:
        """
        Validate a submission and create its job.

        Args:
            email: Where the result goes
            content: Spreadsheet bytes
            filename: Original filename
            mime_type: Declared MIME type
            mapping: User-confirmed mapping
            model_ids: Selected models
            headers: Header row re-read from `content`

        Returns:
            Job in CREATED state

        Raises:
            UnknownModelError: Bad model selection
            MappingValidationError: Every mapping problem at once
            FileTooLargeError: File too big for inline submission
        """
        ids = self.check_models(model_ids)
        validated = self.validator.validate_or_raise(mapping, headers)

        if isinstance(self.client, InlineInferenceClient) and len(content) > self.settings.inline_max_bytes:
            raise FileTooLargeError(len(content), self.settings.inline_max_bytes)

        job = Job(
            id=secrets.token_urlsafe(16),
            email=email,
            mapping=validated,
            model_ids=ids,
            filename=filename,
            mime_type=mime_type,
        )

        logger.info(
            "job_created",
            job_id=job.id,
            filename=filename,
            size=len(content),
            models=ids,
            mode=getattr(self.client, "mode", None)
        )
        return job

    # ===================
    # BACKGROUND PART
    # ===================

    def file_url(self, token: str) -> str:
        return f"{self.settings.public_base_url.rstrip('/')}/files/{token}"

    def _transition(self, job: Job, new_status: JobStatus) -> None:
        if not is_valid_job_transition(job.status, new_status):
            raise InvalidJobTransitionError(job.id, job.status.value, new_status.value)

        if new_status != job.status:
            logger.info("job_status_changed", job_id=job.id, old=job.status.value, new=new_status.value)
        job.status = new_status
        if job.is_terminal:
            job.finished_at = datetime.now(timezone.utc)

    def _on_poll(self, job: Job, report: StatusReport) -> None:
        job.poll_count += 1
        self._transition(job, JobStatus.POLLING)
        logger.debug("job_polled", job_id=job.id, poll=job.poll_count, status=report.status.value)

    def _notify(self, job: Job, kind: str, send: Callable[[], bool]) -> None:
        """Send a notification; failures are logged and never change job state."""
        try:
            sent = send()
            logger.info("job_notification_done", job_id=job.id, kind=kind, sent=sent)
        except (NotificationError, TelegramError) as e:
            logger.error("job_notification_failed", job_id=job.id, kind=kind, error=e.message)
        except Exception as e:
            logger.error("job_notification_failed", job_id=job.id, kind=kind, error=str(e), exc_info=True)

    def _notify_terminal(self, job: Job, send: Callable[[], bool]) -> None:
        """Result/failure email. At most one per job."""
        if job.notified:
            logger.warning("job_already_notified", job_id=job.id)
            return
        job.notified = True
        self._notify(job, job.status.value.lower(), send)

    def _execute(self, job: Job, content: bytes) -> InferenceResult:
        if isinstance(self.client, PullInferenceClient):
            token = self.file_store.put(content, job.filename, job.mime_type)
            try:
                job.handle = self.client.submit(self.file_url(token), job.mapping, job.model_ids)
                self._transition(job, JobStatus.DISPATCHED)

                report = self.client.wait_for_completion(
                    job.handle,
                    poll_interval=self.settings.inference_poll_interval_seconds,
                    max_wait=self.settings.inference_max_wait_seconds,
                    on_poll=lambda r: self._on_poll(job, r),
                )
                return self.client.fetch_result(report, default_filename=f"result_{job.filename}")
            finally:
                self.file_store.delete(token)

        result = self.client.predict(content, job.filename, job.model_ids, job.mapping)
        self._transition(job, JobStatus.DISPATCHED)
        return result

    def _complete(self, job: Job, result: InferenceResult) -> None:
        self._transition(job, JobStatus.COMPLETED)
        logger.info(
            "job_completed",
            job_id=job.id,
            result_filename=result.filename,
            result_size=len(result.content),
            rows=result.row_count
        )
        self._notify_terminal(job, lambda: self.notifier.job_completed(job, result))

    def _fail(self, job: Job, reason: str) -> None:
        job.error = reason
        self._transition(job, JobStatus.FAILED)
        logger.error("job_failed", job_id=job.id, handle=job.handle, reason=reason)

        if self.settings.notify_on_failure:
            self._notify_terminal(job, lambda: self.notifier.job_failed(job, reason))
        if self.alerter is not None:
            self._notify(job, "ops_alert", lambda: self.alerter.job_failed(job))

    def run(self, job: Job, content: bytes) -> Job:
        """
        Drive a created job to a terminal state.

        Never raises: every outcome ends in COMPLETED or FAILED and is
        reported through logs and notifications only.
        """
        logger.info("job_started", job_id=job.id)

        if self.settings.notify_on_start:
            self._notify(job, "started", lambda: self.notifier.job_started(job))

        try:
            result = self._execute(job, content)
        except AppError as e:
            self._fail(job, describe_error(e))
            return job
        except Exception as e:
            logger.error("job_unexpected_error", job_id=job.id, error=str(e), exc_info=True)
            self._fail(job, "Internal error while processing the file")
            return job

        self._complete(job, result)
        return job
