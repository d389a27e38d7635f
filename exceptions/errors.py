"""
Custom exception classes for the application.

Everything raised before a job is accepted reaches the caller as an
error response. Everything raised inside the job pipeline is logged only.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "UNKNOWN_MODEL")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        code: Optional[str] = None,
        status_code: int = 503,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code or f"{service.upper()}_ERROR",
            message=message,
            status_code=status_code,
            details={"service": service, **(details or {})}
        )


class ConfigurationError(AppError):
    """Startup configuration is unusable (500)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="CONFIGURATION_ERROR",
            message=message,
            status_code=500,
            details=details
        )


# ===================
# UPLOAD ERRORS
# ===================

class InvalidFileError(AppError):
    """Uploaded file is missing, of the wrong type, or unparseable (400)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="INVALID_FILE",
            message=message,
            status_code=400,
            details=details
        )


class FileTooLargeError(AppError):
    """Uploaded file exceeds the configured limit (413)."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            code="FILE_TOO_LARGE",
            message=f"File is {size} bytes, limit is {limit}",
            status_code=413,
            details={"size": size, "limit": limit}
        )


# ===================
# MAPPING ERRORS
# ===================

class MappingValidationError(ValidationError):
    """
    Field mapping rejected.

    Carries every problem found, not just the first, so the caller can
    fix them in one pass.
    """

    def __init__(self, errors: list[dict]):
        self.errors = errors
        super().__init__(
            code="MAPPING_INVALID",
            message=f"Mapping validation failed with {len(errors)} errors",
            details={"errors": errors}
        )


class UnknownModelError(ValidationError):
    """Requested model id is not configured."""

    def __init__(self, model_ids: list[str], valid: list[str]):
        super().__init__(
            code="UNKNOWN_MODEL",
            message=(
                "Unknown model: " + ", ".join(model_ids)
                if model_ids else "At least one model is required"
            ),
            details={"provided": model_ids, "valid": valid}
        )


# ===================
# EPHEMERAL FILE ERRORS
# ===================

class StoredFileNotFoundError(NotFoundError):
    """Ephemeral file token unknown or expired."""

    def __init__(self, token: str):
        super().__init__(
            resource="File",
            identifier=token,
            code="FILE_NOT_FOUND"
        )


# ===================
# INFERENCE ERRORS
# ===================

class InferenceTransientError(ExternalServiceError):
    """Network failure, 429 or 5xx that outlasted every retry."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="inference",
            code="INFERENCE_UNAVAILABLE",
            message=message,
            status_code=503,
            details=details
        )


class InferenceRequestError(ExternalServiceError):
    """Non-retryable HTTP status from the prediction service."""

    def __init__(self, status_code: int, message: str, details: Optional[dict] = None):
        super().__init__(
            service="inference",
            code="INFERENCE_REQUEST_REJECTED",
            message=message,
            status_code=502,
            details={"upstream_status": status_code, **(details or {})}
        )


class InferenceResponseError(ExternalServiceError):
    """Successful response that is missing an expected field."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="inference",
            code="INFERENCE_BAD_RESPONSE",
            message=message,
            status_code=502,
            details=details
        )


class InferenceFailedError(ExternalServiceError):
    """Prediction service reported failure, timeout or cancellation."""

    def __init__(self, status: str, detail: Optional[str] = None):
        super().__init__(
            service="inference",
            code="INFERENCE_FAILED",
            message=f"Prediction ended with status {status}",
            status_code=502,
            details={"status": status, "detail": detail}
        )


class InferenceTimeoutError(ExternalServiceError):
    """Job did not reach a terminal status within the wait budget."""

    def __init__(self, handle: str, waited_seconds: float):
        super().__init__(
            service="inference",
            code="INFERENCE_TIMEOUT",
            message=f"Prediction did not finish within {waited_seconds:.0f}s",
            status_code=504,
            details={"handle": handle, "waited_seconds": round(waited_seconds, 1)}
        )


# ===================
# JOB / NOTIFICATION ERRORS
# ===================

class InvalidJobTransitionError(AppError):
    """Job state machine violated."""

    def __init__(self, job_id: str, current_status: str, new_status: str):
        super().__init__(
            code="INVALID_JOB_TRANSITION",
            message=f"Cannot transition from {current_status} to {new_status}",
            status_code=500,
            details={
                "job_id": job_id,
                "current_status": current_status,
                "new_status": new_status,
            }
        )


class NotificationError(AppError):
    """Mail delivery failed."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="NOTIFICATION_ERROR",
            message=message,
            status_code=500,
            details=details
        )


class TelegramError(AppError):
    """Telegram API error."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="TELEGRAM_ERROR",
            message=message,
            status_code=500,
            details=details
        )
