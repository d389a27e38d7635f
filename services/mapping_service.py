"""
Header auto-mapping service.

Guesses which sheet column holds each canonical field by comparing
normalized headers against the field's aliases, and ranks alternatives
for the UI to offer when the guess is wrong.

The result is advisory. Job creation always revalidates the mapping.
"""

from typing import Iterable, Optional, Sequence
import structlog

from config.catalog import FieldCatalog
from models.mapping import (
    AutoMappingResult,
    HeaderCandidate,
    RawHeader,
)
from utils.text_utils import normalize_header

logger = structlog.get_logger(__name__)

# Candidate scores
SCORE_EXACT = 3
SCORE_CONTAINS = 2
SCORE_TOKEN = 1


def to_raw_headers(headers: Iterable[Optional[str]]) -> list[RawHeader]:
    """Wrap header strings, caching their normalized form."""
    result = []
    for index, header in enumerate(headers):
        raw = "" if header is None else str(header)
        result.append(RawHeader(raw=raw, normalized=normalize_header(raw), index=index))
    return result


def _contains_any(text: str, needles: Iterable[str]) -> bool:
    return any(needle and needle in text for needle in needles)


class HeaderMapper:
    """
    Auto-mapping engine.

    Works on RawHeader lists so each header is normalized only once
    per request.
    """

    def __init__(self, catalog: FieldCatalog):
        self.catalog = catalog

    def find_one(
        self,
        headers: Sequence[RawHeader],
        aliases: Sequence[str]
    ) -> Optional[str]:
        """
        Pick the header for a single-valued field.

        Exact alias match wins over substring match; within each pass the
        leftmost header wins.

        Returns:
            Raw header text, or None if nothing matches
        """
        if not aliases:
            return None

        alias_set = set(aliases)
        for header in headers:
            if header.normalized and header.normalized in alias_set:
                return header.raw

        for header in headers:
            if header.normalized and _contains_any(header.normalized, aliases):
                return header.raw

        return None

    def find_many(
        self,
        headers: Sequence[RawHeader],
        aliases: Sequence[str]
    ) -> list[str]:
        """
        Collect every header for a multi-valued field.

        Returns:
            Raw headers in sheet order, without duplicates (may be empty)
        """
        if not aliases:
            return []

        alias_set = set(aliases)
        found: list[str] = []
        for header in headers:
            if not header.normalized:
                continue
            matched = header.normalized in alias_set or _contains_any(header.normalized, aliases)
            if matched and header.raw not in found:
                found.append(header.raw)
        return found

    def score(self, header: RawHeader, aliases: Sequence[str]) -> int:
        """
        Match strength of one header against a field's aliases.

        3 = equals an alias, 2 = contains an alias,
        1 = contains a single alias word, 0 = no match.
        """
        text = header.normalized
        if not text:
            return 0
        if text in aliases:
            return SCORE_EXACT
        if _contains_any(text, aliases):
            return SCORE_CONTAINS

        tokens = {token for alias in aliases for token in alias.split(" ") if token}
        if _contains_any(text, tokens):
            return SCORE_TOKEN
        return 0

    def rank_candidates(
        self,
        headers: Sequence[RawHeader],
        aliases: Sequence[str],
        limit: int
    ) -> list[HeaderCandidate]:
        """
        Rank headers for manual disambiguation.

        Sorted by score (highest first), then header text. Zero scores
        are dropped and the list is cut to `limit`.
        """
        best: dict[str, int] = {}
        for header in headers:
            value = self.score(header, aliases)
            if value > 0 and value > best.get(header.raw, 0):
                best[header.raw] = value

        ranked = sorted(best.items(), key=lambda item: (-item[1], item[0]))
        return [HeaderCandidate(header=raw, score=value) for raw, value in ranked[:max(limit, 0)]]

    def auto_map(
        self,
        headers: Iterable[Optional[str]],
        candidate_limits: Optional[dict[str, int]] = None
    ) -> AutoMappingResult:
        """
        Build the best-guess mapping for every configured field.

        Args:
            headers: Header row, in sheet order
            candidate_limits: Per-field override of FieldDefinition.candidate_limit

        Returns:
            AutoMappingResult with mapping (None / [] when unmatched),
            missing required fields, and ranked candidates per field
        """
        raw_headers = to_raw_headers(headers)
        limits = candidate_limits or {}
        result = AutoMappingResult()

        for field_def in self.catalog:
            aliases = self.catalog.aliases(field_def.name)

            if field_def.multi:
                value = self.find_many(raw_headers, aliases)
                unmapped = len(value) == 0
            else:
                value = self.find_one(raw_headers, aliases)
                unmapped = value is None

            result.mapping[field_def.name] = value
            if unmapped and field_def.required:
                result.missing.append(field_def.name)

            limit = limits.get(field_def.name, field_def.candidate_limit)
            result.candidates[field_def.name] = self.rank_candidates(raw_headers, aliases, limit)

        logger.info(
            "auto_mapping_complete",
            header_count=len(raw_headers),
            mapped=[name for name, value in result.mapping.items() if value],
            missing=result.missing
        )
        return result

