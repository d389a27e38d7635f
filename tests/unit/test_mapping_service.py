"""
Unit tests for header auto-mapping.

Run: pytest tests/unit/test_mapping_service.py -v
"""

import pytest

from services.mapping_service import (
    HeaderMapper,
    to_raw_headers,
    SCORE_EXACT,
    SCORE_CONTAINS,
    SCORE_TOKEN,
)


class TestAutoMap:
    """Tests for HeaderMapper.auto_map()"""

    def test_typical_sheet_maps_every_field(self, mapper, sample_headers):
        """All four fields found, nothing missing."""
        result = mapper.auto_map(sample_headers)

        assert result.mapping == {
            "product_images": "Product Images",
            "title": "Title",
            "bullet_points": ["Bullet Point 1", "Bullet Point 2"],
            "description": "Description",
        }
        assert result.missing == []

    def test_missing_field_reported(self, mapper):
        """A field with no matching header is None and listed as missing."""
        result = mapper.auto_map(["Product Images", "Title", "Bullet Point 1"])

        assert result.mapping["description"] is None
        assert result.missing == ["description"]

    def test_multi_field_empty_list_when_unmatched(self, mapper):
        result = mapper.auto_map(["Product Images", "Title", "Description"])

        assert result.mapping["bullet_points"] == []
        assert "bullet_points" in result.missing

    def test_empty_header_row(self, mapper, field_catalog):
        """No headers: every field missing, no candidates."""
        result = mapper.auto_map([])

        assert result.missing == field_catalog.names
        assert all(c == [] for c in result.candidates.values())

    def test_case_and_spacing_ignored(self, mapper):
        result = mapper.auto_map(["  PRODUCT_IMAGES ", "title:", "bullet-point-1", "DESCRIPTION"])

        assert result.mapping["product_images"] == "  PRODUCT_IMAGES "
        assert result.mapping["title"] == "title:"
        assert result.mapping["bullet_points"] == ["bullet-point-1"]
        assert result.missing == []

    def test_every_field_has_mapping_and_candidates(self, mapper, field_catalog, sample_headers):
        result = mapper.auto_map(sample_headers)

        assert list(result.mapping) == field_catalog.names
        assert list(result.candidates) == field_catalog.names

    def test_optional_field_not_missing(self):
        """Unmatched optional fields are not reported as missing."""
        from config.catalog import FieldCatalog

        catalog = FieldCatalog.from_dict({
            "title": {"aliases": ["title"]},
            "brand": {"required": False, "aliases": ["brand"]},
        })
        result = HeaderMapper(catalog).auto_map(["Title"])

        assert result.mapping["brand"] is None
        assert result.missing == []

    def test_candidate_limit_override(self, mapper):
        headers = [f"Bullet Point {i}" for i in range(1, 11)]

        result = mapper.auto_map(headers, candidate_limits={"bullet_points": 3})

        assert len(result.candidates["bullet_points"]) == 3
        assert len(result.mapping["bullet_points"]) == 10

    def test_cyrillic_aliases(self, default_field_catalog):
        """Default catalog recognises Russian headers."""
        mapper = HeaderMapper(default_field_catalog)

        result = mapper.auto_map(["Фото", "Название", "Описание", "Преимущества 1"])

        assert result.mapping["product_images"] == "Фото"
        assert result.mapping["title"] == "Название"
        assert result.mapping["description"] == "Описание"
        assert result.mapping["bullet_points"] == ["Преимущества 1"]
        assert result.missing == []


class TestFindOne:
    """Tests for HeaderMapper.find_one()"""

    def test_exact_beats_contains(self, mapper):
        """Exact match wins even when a containing header comes first."""
        headers = to_raw_headers(["Subtitle", "Title"])

        assert mapper.find_one(headers, ("title",)) == "Title"

    def test_leftmost_contains_wins(self, mapper):
        headers = to_raw_headers(["Title EN", "Title RU"])

        assert mapper.find_one(headers, ("title",)) == "Title EN"

    def test_no_match(self, mapper):
        assert mapper.find_one(to_raw_headers(["Price"]), ("title",)) is None

    def test_no_aliases(self, mapper):
        assert mapper.find_one(to_raw_headers(["Title"]), ()) is None

    def test_blank_headers_skipped(self, mapper):
        headers = to_raw_headers(["", None, "***", "Title"])

        assert mapper.find_one(headers, ("title",)) == "Title"


class TestFindMany:
    """Tests for HeaderMapper.find_many()"""

    def test_sheet_order(self, mapper):
        headers = to_raw_headers(["Bullet Point 2", "Title", "Bullet Point 1"])

        assert mapper.find_many(headers, ("bullet point",)) == ["Bullet Point 2", "Bullet Point 1"]

    def test_duplicates_removed(self, mapper):
        """Same raw header appearing twice is returned once."""
        headers = to_raw_headers(["Bullet Point", "Bullet Point", "Bullet Point 2"])

        assert mapper.find_many(headers, ("bullet point",)) == ["Bullet Point", "Bullet Point 2"]

    def test_no_match_empty_list(self, mapper):
        assert mapper.find_many(to_raw_headers(["Title"]), ("bullet point",)) == []


class TestScoring:
    """Tests for HeaderMapper.score() and rank_candidates()"""

    @pytest.mark.parametrize("header,expected", [
        ("Bullet Point", SCORE_EXACT),
        ("Bullet Point 1", SCORE_CONTAINS),
        ("Point of sale", SCORE_TOKEN),
        ("Price", 0),
        ("", 0),
    ])
    def test_score(self, mapper, header, expected):
        raw = to_raw_headers([header])[0]

        assert mapper.score(raw, ("bullet point",)) == expected

    def test_ranking_order(self, mapper):
        """Score descending, then header text ascending."""
        headers = to_raw_headers(["Short description", "Price", "Long Description", "Description"])

        ranked = mapper.rank_candidates(headers, ("description",), limit=5)

        assert [(c.header, c.score) for c in ranked] == [
            ("Description", 3),
            ("Long Description", 2),
            ("Short description", 2),
        ]

    def test_limit(self, mapper):
        headers = to_raw_headers([f"Description {i}" for i in range(10)])

        assert len(mapper.rank_candidates(headers, ("description",), limit=4)) == 4

    def test_zero_limit(self, mapper):
        headers = to_raw_headers(["Description"])

        assert mapper.rank_candidates(headers, ("description",), limit=0) == []

    def test_duplicate_headers_ranked_once(self, mapper):
        headers = to_raw_headers(["Description", "Description"])

        ranked = mapper.rank_candidates(headers, ("description",), limit=5)

        assert [c.header for c in ranked] == ["Description"]
