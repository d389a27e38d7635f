"""
Business logic services.

Each service handles one area and receives its collaborators explicitly.
"""

from services.mapping_service import HeaderMapper, to_raw_headers
from services.mapping_validator import MappingValidator
from services.file_store_service import EphemeralFileStore, EphemeralFile
from services.job_service import JobPipeline

__all__ = [
    "HeaderMapper",
    "to_raw_headers",
    "MappingValidator",
    "EphemeralFileStore",
    "EphemeralFile",
    "JobPipeline",
]
