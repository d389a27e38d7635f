"""
Spreadsheet parsers module.
"""

from parsers.excel_parser import (
    check_upload,
    read_sheet,
    read_headers,
    find_header_row,
    SheetHeaders,
)

__all__ = [
    "check_upload",
    "read_sheet",
    "read_headers",
    "find_header_row",
    "SheetHeaders",
]
