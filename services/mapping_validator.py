"""
Mapping validation.

Checks a user-confirmed mapping against the header row of the file that
is actually being submitted. Headers are compared by normalized form so a
round-trip through the UI that changes case or spacing still matches.
"""

from typing import Any, Iterable, Optional
import structlog

from config.catalog import FieldCatalog
from exceptions import MappingValidationError
from models.mapping import (
    FieldMapping,
    MappingIssue,
    MappingValidationResult,
    MISSING_MAPPING,
    UNKNOWN_COLUMN,
)
from utils.text_utils import normalize_header

logger = structlog.get_logger(__name__)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _header_key(value: Any) -> str:
    """
    Lookup key for a header or mapping entry.

    Normalized text, except for headers with no letters or digits
    (e.g. "№", "#"), which only match their exact trimmed text.
    """
    text = str(value).strip()
    return normalize_header(text) or "\0" + text


class MappingValidator:
    """Validates FieldMappings. Collects every error instead of stopping at the first."""

    def __init__(self, catalog: FieldCatalog):
        self.catalog = catalog

    @staticmethod
    def _index_headers(headers: Iterable[Optional[str]]) -> dict[str, str]:
        """lookup key → first raw header with that key."""
        index: dict[str, str] = {}
        for header in headers:
            if _is_blank(header):
                continue
            key = _header_key(header)
            if key not in index:
                index[key] = str(header)
        return index

    def validate(
        self,
        mapping: Optional[FieldMapping],
        headers: Iterable[Optional[str]]
    ) -> MappingValidationResult:
        """
        Validate a mapping against the current header row.

        Args:
            mapping: field → header (or list of headers for multi fields)
            headers: Authoritative header row of the submitted file

        Returns:
            MappingValidationResult; on success `mapping` holds the current
            header text for every entry and lists for multi fields
        """
        mapping = mapping or {}
        known = self._index_headers(headers)
        result = MappingValidationResult()

        for field_def in self.catalog:
            name = field_def.name
            raw_value = mapping.get(name)

            if field_def.multi:
                entries = [v for v in _as_list(raw_value) if not _is_blank(v)]
                if not entries:
                    if field_def.required:
                        result.errors.append(MappingIssue(code=MISSING_MAPPING, field=name))
                    else:
                        result.mapping[name] = []
                    continue

                resolved: list[str] = []
                for entry in entries:
                    header = known.get(_header_key(entry))
                    if header is None:
                        result.errors.append(
                            MappingIssue(code=UNKNOWN_COLUMN, field=name, column=str(entry))
                        )
                    elif header not in resolved:
                        resolved.append(header)
                result.mapping[name] = resolved
                continue

            # Single-valued: a list is accepted when it carries one usable entry
            if isinstance(raw_value, (list, tuple)):
                values = [v for v in raw_value if not _is_blank(v)]
                raw_value = values[0] if values else None

            if _is_blank(raw_value):
                if field_def.required:
                    result.errors.append(MappingIssue(code=MISSING_MAPPING, field=name))
                else:
                    result.mapping[name] = None
                continue

            header = known.get(_header_key(raw_value))
            if header is None:
                result.errors.append(
                    MappingIssue(code=UNKNOWN_COLUMN, field=name, column=str(raw_value))
                )
            else:
                result.mapping[name] = header

        ignored = [key for key in mapping if key not in self.catalog]
        if ignored:
            logger.debug("mapping_unknown_fields_ignored", fields=ignored)

        if not result.ok:
            logger.info(
                "mapping_validation_failed",
                error_count=len(result.errors),
                errors=[e.to_dict() for e in result.errors]
            )

        return result

    def validate_or_raise(
        self,
        mapping: Optional[FieldMapping],
        headers: Iterable[Optional[str]]
    ) -> FieldMapping:
        """
        Same as validate(), raising instead of returning errors.

        Raises:
            MappingValidationError: With every issue found
        """
        result = self.validate(mapping, headers)
        if not result.ok:
            raise MappingValidationError([e.to_dict() for e in result.errors])
        return result.mapping
