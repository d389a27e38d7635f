"""
Unit tests for the Excel header reader.

Run: pytest tests/unit/test_excel_parser.py -v
"""

from datetime import datetime

import pandas as pd
import pytest

from exceptions import FileTooLargeError, InvalidFileError
from parsers.excel_parser import (
    _cell_text,
    build_columns,
    check_upload,
    find_header_row,
    read_headers,
    read_sheet,
    resolve_header_row,
)
from tests.factories import XLSX_MIME_TYPE, make_product_workbook, make_workbook


class TestCheckUpload:
    """Tests for check_upload()"""

    def test_accepts_xlsx(self):
        check_upload("products.xlsx", XLSX_MIME_TYPE, 100, 1000)

    def test_accepts_by_extension(self):
        check_upload("PRODUCTS.XLS", "application/octet-stream", 100, 1000)

    def test_accepts_by_mime_type(self):
        check_upload("upload", XLSX_MIME_TYPE, 100, 1000)

    def test_missing_file(self):
        with pytest.raises(InvalidFileError) as exc_info:
            check_upload(None, None, 0, 1000)

        assert exc_info.value.status_code == 400

    def test_wrong_type(self):
        with pytest.raises(InvalidFileError):
            check_upload("products.csv", "text/csv", 100, 1000)

    def test_too_large(self):
        with pytest.raises(FileTooLargeError) as exc_info:
            check_upload("products.xlsx", XLSX_MIME_TYPE, 1001, 1000)

        assert exc_info.value.status_code == 413

    def test_empty(self):
        with pytest.raises(InvalidFileError):
            check_upload("products.xlsx", XLSX_MIME_TYPE, 0, 1000)


class TestHelpers:
    """Tests for header row and cell helpers"""

    def test_find_header_row_skips_punctuation_rows(self):
        rows = [["---", ""], ["", "***"], ["Title", "Description"]]

        assert find_header_row(rows) == 2

    def test_find_header_row_all_blank(self):
        assert find_header_row([["", ""], ["-"]]) == 0
        assert find_header_row([]) == 0

    @pytest.mark.parametrize("requested,expected", [
        ("3", 2),
        (1, 0),
        ("0", 0),
        ("-2", 0),
        ("abc", 0),
    ])
    def test_resolve_header_row(self, requested, expected):
        rows = [["---"], ["x"], ["Title"]]

        assert resolve_header_row(requested, rows) == expected

    def test_resolve_header_row_auto(self):
        assert resolve_header_row(None, [["---"], ["Title"]]) == 1
        assert resolve_header_row("", [["---"], ["Title"]]) == 1

    def test_build_columns_placeholders(self):
        columns = build_columns(["Title", "  ", "Description"], 4)

        assert [c.header for c in columns] == ["Title", "Column B", "Description", "Column D"]
        assert [c.letter for c in columns] == ["A", "B", "C", "D"]
        assert [c.index for c in columns] == [0, 1, 2, 3]

    @pytest.mark.parametrize("value,expected", [
        (None, ""),
        (float("nan"), ""),
        (pd.NaT, ""),
        (3.0, "3"),
        (3.5, "3.5"),
        (42, "42"),
        (datetime(2024, 1, 2), "2024-01-02"),
        (datetime(2024, 1, 2, 13, 30), "2024-01-02 13:30:00"),
        ("  text ", "  text "),
    ])
    def test_cell_text(self, value, expected):
        assert _cell_text(value) == expected


class TestReadSheet:
    """Tests for read_sheet()"""

    def test_product_sheet(self):
        result = read_sheet(make_product_workbook(), "products.xlsx")

        assert result.file_name == "products.xlsx"
        assert result.sheets == ["Sheet1"]
        assert result.selected_sheet == "Sheet1"
        assert result.header_row == 1
        assert result.headers == [
            "Product Images", "Title", "Bullet Point 1", "Bullet Point 2", "Description"
        ]
        assert len(result.preview) == 2
        assert result.preview[0]["Title"] == "Blue mug"

    def test_blank_header_cell_named_by_letter(self):
        content = make_workbook([
            ["Product Images", None, "Description"],
            ["https://img.test/1.jpg", "Blue mug", "A blue mug"],
        ])

        result = read_sheet(content, "products.xlsx")

        assert result.headers == ["Product Images", "Column B", "Description"]
        assert result.preview[0]["Column B"] == "Blue mug"

    def test_data_wider_than_header(self):
        content = make_workbook([
            ["Title"],
            ["Blue mug", "extra"],
        ])

        assert read_headers(content, "products.xlsx") == ["Title", "Column B"]

    def test_header_row_detected_below_decoration(self):
        content = make_workbook([
            ["---", None],
            ["Title", "Description"],
            ["Blue mug", "A blue mug"],
        ])

        result = read_sheet(content, "products.xlsx")

        assert result.header_row == 2
        assert result.headers == ["Title", "Description"]
        assert result.preview == [{"Title": "Blue mug", "Description": "A blue mug"}]

    def test_explicit_header_row(self):
        content = make_workbook([
            ["Catalogue export", None],
            ["Title", "Description"],
            ["Blue mug", "A blue mug"],
        ])

        assert read_sheet(content, "products.xlsx").headers == ["Catalogue export", "Column B"]
        assert read_sheet(content, "products.xlsx", header_row="2").headers == ["Title", "Description"]

    def test_sheet_selection(self):
        content = make_workbook(sheets={
            "Main": [["Title"], ["Blue mug"]],
            "Other": [["Description"], ["A blue mug"]],
        })

        assert read_sheet(content, "products.xlsx", sheet="Other").headers == ["Description"]

        fallback = read_sheet(content, "products.xlsx", sheet="Missing")
        assert fallback.selected_sheet == "Main"
        assert fallback.sheets == ["Main", "Other"]

    def test_numbers_rendered_as_text(self):
        content = make_workbook([["Title", "Price"], ["Blue mug", 12]])

        result = read_sheet(content, "products.xlsx")

        assert result.preview[0]["Price"] == "12"

    @pytest.mark.parametrize("requested,expected", [(0, 0), (1, 1), (100, 2)])
    def test_preview_rows_clamped(self, requested, expected):
        result = read_sheet(make_product_workbook(), "products.xlsx", preview_rows=requested)

        assert len(result.preview) == expected

    def test_unreadable_file(self):
        with pytest.raises(InvalidFileError) as exc_info:
            read_sheet(b"definitely not a workbook", "products.xlsx")

        assert exc_info.value.code == "INVALID_FILE"
