"""
Pydantic models and dataclasses for validation and serialization.
"""

from models.base import BaseSchema
from models.catalog import FieldDefinition, ModelOption
from models.mapping import (
    FieldMapping,
    RawHeader,
    HeaderCandidate,
    AutoMappingResult,
    MappingIssue,
    MappingValidationResult,
    ColumnInfo,
    CandidateResponse,
    FieldResponse,
    ParseExcelResponse,
    MISSING_MAPPING,
    UNKNOWN_COLUMN,
)
from models.job import (
    Job,
    JobStatus,
    ExternalStatus,
    StatusReport,
    InferenceResult,
    JobAcceptedResponse,
    is_valid_job_transition,
)

__all__ = [
    # Base
    "BaseSchema",

    # Catalog
    "FieldDefinition",
    "ModelOption",

    # Mapping
    "FieldMapping",
    "RawHeader",
    "HeaderCandidate",
    "AutoMappingResult",
    "MappingIssue",
    "MappingValidationResult",
    "ColumnInfo",
    "CandidateResponse",
    "FieldResponse",
    "ParseExcelResponse",
    "MISSING_MAPPING",
    "UNKNOWN_COLUMN",

    # Jobs
    "Job",
    "JobStatus",
    "ExternalStatus",
    "StatusReport",
    "InferenceResult",
    "JobAcceptedResponse",
    "is_valid_job_transition",
]
