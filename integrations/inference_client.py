"""
Prediction service HTTP client.

Two integration shapes, one chosen per deployment:

- pull:   POST /run {fileUrl, mapping, modelIds} → {handle}
          GET /status/{handle} → {status, output?, error?}
          The service downloads the spreadsheet from our ephemeral file URL.
- inline: POST /predict {fileBytesEncoded, filename, modelIds, mapping}
          → {ok, resultBytesEncoded, resultFilename, rowCount}
          Blocks until the prediction is done.

Every call goes through the same retry policy: network errors, 429 and 5xx
are retried with capped exponential backoff plus jitter; any other 4xx or a
malformed body fails immediately.
"""

import base64
import binascii
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional
import requests
import structlog

from exceptions import (
    InferenceTransientError,
    InferenceRequestError,
    InferenceResponseError,
    InferenceFailedError,
    InferenceTimeoutError,
)
from models.job import ExternalStatus, InferenceResult, StatusReport
from models.mapping import FieldMapping

logger = structlog.get_logger(__name__)

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Raised by requests for connection resets, DNS failures and timeouts
NETWORK_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.ChunkedEncodingError,
)


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


@dataclass(frozen=True)
class RetryPolicy:
    """Retry/backoff settings shared by every outbound call."""
    max_attempts: int = 4
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.5
    attempt_timeout: float = 30.0

    def delay_for(self, attempt: int, rand: Callable[[float, float], float] = random.uniform) -> float:
        """
        Sleep before `attempt` (1-based). No delay before the first attempt.

        delay(k) = min(max_delay, base_delay * 2^(k-2)) + uniform(0, jitter)
        """
        if attempt < 2:
            return 0.0
        backoff = min(self.max_delay, self.base_delay * (2 ** (attempt - 2)))
        return backoff + (rand(0, self.jitter) if self.jitter > 0 else 0.0)

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.inference_max_attempts,
            base_delay=settings.inference_base_delay_seconds,
            max_delay=settings.inference_max_delay_seconds,
            jitter=settings.inference_jitter_seconds,
            attempt_timeout=settings.inference_attempt_timeout_seconds,
        )


def _decode_payload(encoded: Any, field: str) -> bytes:
    if not isinstance(encoded, str) or not encoded:
        raise InferenceResponseError(f"Response field '{field}' is missing or empty")
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InferenceResponseError(
            f"Response field '{field}' is not valid base64",
            details={"original_error": str(e)}
        )


class InferenceClient:
    """
    Base HTTP client with retry/backoff.

    `sleep`, `rand` and `clock` are injectable so tests run instantly.
    """

    def __init__(
        self,
        base_url: str,
        policy: Optional[RetryPolicy] = None,
        session: Optional[requests.Session] = None,
        api_key: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
        rand: Callable[[float, float], float] = random.uniform,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self.policy = policy or RetryPolicy()
        self.session = session or requests.Session()
        self._sleep = sleep
        self._rand = rand
        self._clock = clock

        if api_key:
            self.session.headers["Authorization"] = f"Bearer {api_key}"

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _is_service_url(self, url: str) -> bool:
        if not url.startswith(("http://", "https://")):
            return True
        return url == self.base_url or url.startswith(self.base_url + "/")

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        timeout: Optional[float] = None,
        deadline: Optional[float] = None,
        **kwargs
    ) -> requests.Response:
        """
        Send one logical request, retrying transient failures.

        Args:
            method: HTTP method
            path: Path relative to base_url, or an absolute URL
            operation: Name used in logs and errors (e.g. "submit")
            timeout: Per-attempt timeout (defaults to policy.attempt_timeout)
            deadline: Clock value after which no further retry is scheduled;
                retries cut short by it set details["budget_exhausted"]

        Raises:
            InferenceRequestError: Non-retryable 4xx (no retry performed)
            InferenceTransientError: Every attempt failed transiently
        """
        url = self._url(path)
        attempts = self.policy.max_attempts
        last_error: Optional[str] = None
        budget_exhausted = False

        for attempt in range(1, attempts + 1):
            if attempt > 1:
                delay = self.policy.delay_for(attempt, self._rand)
                if deadline is not None and self._clock() + delay >= deadline:
                    logger.warning("inference_retry_budget_exhausted", operation=operation, attempt=attempt)
                    budget_exhausted = True
                    break
                logger.warning(
                    "inference_retry_scheduled",
                    operation=operation,
                    attempt=attempt,
                    max_attempts=attempts,
                    delay=round(delay, 2),
                    last_error=last_error
                )
                self._sleep(delay)

            try:
                response = self.session.request(
                    method,
                    url,
                    timeout=timeout or self.policy.attempt_timeout,
                    **kwargs
                )
            except NETWORK_ERRORS as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning("inference_network_error", operation=operation, attempt=attempt, error=last_error)
                continue

            if is_retryable_status(response.status_code):
                last_error = f"HTTP {response.status_code}"
                logger.warning(
                    "inference_retryable_status",
                    operation=operation,
                    attempt=attempt,
                    status_code=response.status_code
                )
                continue

            if response.status_code >= 400:
                logger.error(
                    "inference_request_rejected",
                    operation=operation,
                    status_code=response.status_code,
                    body=response.text[:500]
                )
                raise InferenceRequestError(
                    response.status_code,
                    f"Prediction service rejected {operation} with HTTP {response.status_code}",
                    details={"operation": operation, "body": response.text[:500]}
                )

            logger.debug("inference_request_ok", operation=operation, attempt=attempt, status_code=response.status_code)
            return response

        logger.error("inference_request_failed", operation=operation, attempts=attempts, last_error=last_error)
        raise InferenceTransientError(
            f"Prediction service {operation} failed after retries",
            details={
                "operation": operation,
                "max_attempts": attempts,
                "last_error": last_error,
                "budget_exhausted": budget_exhausted,
            }
        )

    @staticmethod
    def _json(response: requests.Response, operation: str) -> dict:
        try:
            data = response.json()
        except ValueError as e:
            raise InferenceResponseError(
                f"Prediction service returned non-JSON body for {operation}",
                details={"operation": operation, "original_error": str(e)}
            )
        if not isinstance(data, dict):
            raise InferenceResponseError(
                f"Prediction service returned unexpected body for {operation}",
                details={"operation": operation, "type": type(data).__name__}
            )
        return data


class PullInferenceClient(InferenceClient):
    """Submit by URL, poll for status, fetch the result."""

    mode = "pull"

    def submit(self, file_url: str, mapping: FieldMapping, model_ids: list[str]) -> str:
        """
        Start a prediction run.

        Returns:
            Handle for status polling

        Raises:
            InferenceResponseError: If the response carries no handle
        """
        response = self._request(
            "POST",
            "/run",
            operation="submit",
            json={"fileUrl": file_url, "mapping": mapping, "modelIds": model_ids},
        )
        data = self._json(response, "submit")
        handle = data.get("handle") or data.get("id")
        if not handle:
            raise InferenceResponseError("Submit response has no handle", details={"keys": sorted(data)})

        logger.info("inference_submitted", handle=handle, models=model_ids)
        return str(handle)

    def get_status(self, handle: str, deadline: Optional[float] = None) -> StatusReport:
        """Query run status once (with retries)."""
        response = self._request("GET", f"/status/{handle}", operation="status", deadline=deadline)
        data = self._json(response, "status")
        return StatusReport(
            status=ExternalStatus.parse(data.get("status")),
            output=data.get("output"),
            error=data.get("error"),
        )

    def wait_for_completion(
        self,
        handle: str,
        poll_interval: float,
        max_wait: float,
        on_poll: Optional[Callable[[StatusReport], None]] = None,
    ) -> StatusReport:
        """
        Poll until the run reaches a terminal status.

        Args:
            handle: Run handle from submit()
            poll_interval: Seconds between polls
            max_wait: Total wall-clock budget in seconds
            on_poll: Called with every status report

        Returns:
            The COMPLETED status report

        Raises:
            InferenceFailedError: FAILED, TIMED_OUT or CANCELLED reported
            InferenceTimeoutError: Budget spent without a terminal status
        """
        started = self._clock()
        deadline = started + max_wait

        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                waited = self._clock() - started
                logger.error("inference_wait_timeout", handle=handle, waited=round(waited, 1))
                raise InferenceTimeoutError(handle, waited)

            self._sleep(min(poll_interval, remaining))

            try:
                report = self.get_status(handle, deadline=deadline)
            except InferenceTransientError as e:
                if e.details.get("budget_exhausted") or self._clock() >= deadline:
                    raise InferenceTimeoutError(handle, self._clock() - started) from e
                raise

            if on_poll is not None:
                on_poll(report)

            if report.status == ExternalStatus.COMPLETED:
                logger.info("inference_completed", handle=handle)
                return report

            if report.status.is_terminal:
                logger.warning("inference_terminal_failure", handle=handle, status=report.status.value, error=report.error)
                raise InferenceFailedError(report.status.value, report.error)

            if report.status == ExternalStatus.UNKNOWN:
                logger.warning("inference_status_unrecognized", handle=handle)

    def fetch_result(self, report: StatusReport, default_filename: str) -> InferenceResult:
        """
        Turn a COMPLETED report's output into result bytes.

        Output may be a URL string, base64 string, or an object with
        `url` or `content` (alias `data`) plus optional `filename` and
        `rowCount`.

        Raises:
            InferenceResponseError: If output is missing or unusable
        """
        output = report.output
        if isinstance(output, str):
            output = {"url": output} if output.startswith(("http://", "https://")) else {"content": output}

        if not isinstance(output, dict) or not output:
            raise InferenceResponseError("Completed run has no output")

        filename = output.get("filename") or default_filename
        row_count = output.get("rowCount")
        url = output.get("url") or output.get("fileUrl")
        encoded = output.get("content") or output.get("data")

        if url:
            # Session credentials are for the prediction service only
            headers = {} if self._is_service_url(url) else {"Authorization": None}
            response = self._request("GET", url, operation="fetch_result", headers=headers)
            content = response.content
            if not content:
                raise InferenceResponseError("Result download is empty", details={"url": url})
            mime_type = response.headers.get("Content-Type", XLSX_MIME_TYPE).split(";")[0].strip()
            if mime_type in ("", "application/octet-stream"):
                mime_type = XLSX_MIME_TYPE
        elif encoded:
            content = _decode_payload(encoded, "output.content")
            mime_type = output.get("mimeType") or XLSX_MIME_TYPE
        else:
            raise InferenceResponseError("Completed run output has neither url nor content", details={"keys": sorted(output)})

        logger.info("inference_result_fetched", filename=filename, size=len(content))
        return InferenceResult(content=content, filename=filename, mime_type=mime_type, row_count=row_count)


class InlineInferenceClient(InferenceClient):
    """Single blocking call carrying the file in and the result out."""

    mode = "inline"

    def __init__(self, *args, inline_timeout: Optional[float] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.inline_timeout = inline_timeout

    def predict(
        self,
        content: bytes,
        filename: str,
        model_ids: list[str],
        mapping: FieldMapping,
    ) -> InferenceResult:
        """
        Run a prediction and return the result spreadsheet.

        Raises:
            InferenceFailedError: Service answered ok=false
            InferenceResponseError: Result payload missing or undecodable
        """
        response = self._request(
            "POST",
            "/predict",
            operation="predict",
            timeout=self.inline_timeout,
            json={
                "fileBytesEncoded": base64.b64encode(content).decode("ascii"),
                "filename": filename,
                "modelIds": model_ids,
                "mapping": mapping,
            },
        )
        data = self._json(response, "predict")

        if not data.get("ok"):
            raise InferenceFailedError("FAILED", data.get("error") or data.get("message"))

        result = _decode_payload(data.get("resultBytesEncoded"), "resultBytesEncoded")
        result_filename = data.get("resultFilename") or f"result_{filename}"

        logger.info("inference_predict_complete", filename=result_filename, rows=data.get("rowCount"))
        return InferenceResult(
            content=result,
            filename=result_filename,
            row_count=data.get("rowCount"),
        )


def build_inference_client(settings, session: Optional[requests.Session] = None) -> InferenceClient:
    """Create the client for the configured integration mode."""
    policy = RetryPolicy.from_settings(settings)
    if settings.inference_mode == "inline":
        return InlineInferenceClient(
            settings.inference_base_url,
            policy=policy,
            session=session,
            api_key=settings.inference_api_key,
            inline_timeout=settings.inference_inline_timeout_seconds,
        )
    return PullInferenceClient(
        settings.inference_base_url,
        policy=policy,
        session=session,
        api_key=settings.inference_api_key,
    )
