"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ExternalServiceError,
    ConfigurationError,

    # Uploads
    InvalidFileError,
    FileTooLargeError,

    # Mapping
    MappingValidationError,
    UnknownModelError,

    # Ephemeral files
    StoredFileNotFoundError,

    # Inference
    InferenceTransientError,
    InferenceRequestError,
    InferenceResponseError,
    InferenceFailedError,
    InferenceTimeoutError,

    # Jobs / notifications
    InvalidJobTransitionError,
    NotificationError,
    TelegramError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ExternalServiceError",
    "ConfigurationError",

    # Uploads
    "InvalidFileError",
    "FileTooLargeError",

    # Mapping
    "MappingValidationError",
    "UnknownModelError",

    # Ephemeral files
    "StoredFileNotFoundError",

    # Inference
    "InferenceTransientError",
    "InferenceRequestError",
    "InferenceResponseError",
    "InferenceFailedError",
    "InferenceTimeoutError",

    # Jobs / notifications
    "InvalidJobTransitionError",
    "NotificationError",
    "TelegramError",
]
