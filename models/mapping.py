"""
Header mapping schemas.

Covers the parse/inspect response and mapping validation results.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union
from pydantic import BaseModel, Field

from models.base import BaseSchema


# A field maps to one header, a list of headers (multi-valued field), or nothing.
FieldMapping = dict[str, Union[str, list[str], None]]

MISSING_MAPPING = "MISSING_MAPPING"
UNKNOWN_COLUMN = "UNKNOWN_COLUMN"


@dataclass(frozen=True)
class RawHeader:
    """Header text with its normalized form cached."""
    raw: str
    normalized: str
    index: int


@dataclass(frozen=True)
class HeaderCandidate:
    """Header suggested for a field, with its match strength."""
    header: str
    score: int


@dataclass
class AutoMappingResult:
    """Best-guess mapping. Advisory only, revalidated before job creation."""
    mapping: FieldMapping = field(default_factory=dict)
    missing: list[str] = field(default_factory=list)
    candidates: dict[str, list[HeaderCandidate]] = field(default_factory=dict)


@dataclass(frozen=True)
class MappingIssue:
    """Single validation problem."""
    code: str
    field: str
    column: Optional[str] = None

    def to_dict(self) -> dict:
        issue = {"code": self.code, "field": self.field}
        if self.column is not None:
            issue["column"] = self.column
        return issue


@dataclass
class MappingValidationResult:
    """Validated mapping, or every problem found."""
    mapping: FieldMapping = field(default_factory=dict)
    errors: list[MappingIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return len(self.errors) == 0


# ===================
# API SCHEMAS
# ===================

class ColumnInfo(BaseSchema):
    """Column of the header row."""
    index: int = Field(ge=0, description="0-based column index")
    letter: str = Field(description="Excel column letter (A, B, ... AA)")
    header: str


class CandidateResponse(BaseModel):
    header: str
    score: int


class FieldResponse(BaseModel):
    name: str
    required: bool
    multi: bool
    aliases: list[str]


class ParseExcelResponse(BaseModel):
    """Headers, preview and suggested mapping for an uploaded sheet."""
    file_name: str = Field(serialization_alias="fileName")
    sheets: list[str]
    selected_sheet: str = Field(serialization_alias="selectedSheet")
    header_row: int = Field(ge=1, serialization_alias="headerRow", description="1-based")
    columns: list[ColumnInfo]
    preview: list[dict[str, Any]]
    mapping: FieldMapping
    missing: list[str]
    candidates: dict[str, list[CandidateResponse]]
