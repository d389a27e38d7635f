"""
Excel header reader for user uploads.

Finds the header row of a sheet, names its columns, and returns a few
preview rows. Cell contents beyond that are not validated.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from io import BytesIO
from typing import Any, Optional
import math
import structlog

import pandas as pd

from exceptions import InvalidFileError, FileTooLargeError
from models.mapping import ColumnInfo
from utils.text_utils import column_letter, normalize_header

logger = structlog.get_logger(__name__)

EXCEL_MIME_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
}
EXCEL_EXTENSIONS = (".xlsx", ".xls")

DEFAULT_PREVIEW_ROWS = 5
MAX_PREVIEW_ROWS = 50

# Rows after the header row scanned to determine the table width
WIDTH_SCAN_ROWS = 30


@dataclass
class SheetHeaders:
    """Header row, columns and preview of one sheet."""
    file_name: str
    sheets: list[str]
    selected_sheet: str
    header_row: int  # 1-based
    columns: list[ColumnInfo] = field(default_factory=list)
    preview: list[dict[str, Any]] = field(default_factory=list)

    @property
    def headers(self) -> list[str]:
        return [c.header for c in self.columns]


def check_upload(
    filename: Optional[str],
    content_type: Optional[str],
    size: int,
    max_bytes: int
) -> None:
    """
    Reject uploads that are not Excel files or are too large.

    Raises:
        InvalidFileError: Missing file or wrong type
        FileTooLargeError: Over max_bytes
    """
    if not filename:
        raise InvalidFileError("No file uploaded (field name must be 'file')")

    is_excel = (
        (content_type or "").lower() in EXCEL_MIME_TYPES
        or filename.lower().endswith(EXCEL_EXTENSIONS)
    )
    if not is_excel:
        raise InvalidFileError(
            "Only Excel files (.xlsx/.xls) are allowed",
            details={"filename": filename, "content_type": content_type}
        )

    if size > max_bytes:
        raise FileTooLargeError(size, max_bytes)

    if size == 0:
        raise InvalidFileError("Uploaded file is empty", details={"filename": filename})


def _engine_for(filename: str) -> str:
    return "xlrd" if filename.lower().endswith(".xls") else "openpyxl"


def _cell_text(value: Any) -> str:
    """Render a cell the way the user sees it."""
    if value is None or value is pd.NaT:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _row_width(row: list[str]) -> int:
    """Index of the last non-empty cell + 1."""
    for i in range(len(row) - 1, -1, -1):
        if row[i].strip():
            return i + 1
    return 0


def find_header_row(rows: list[list[str]]) -> int:
    """
    First row with at least one non-empty cell, after normalization.

    Returns:
        0-based row index (0 when every row is blank)
    """
    for index, row in enumerate(rows):
        if any(normalize_header(cell) for cell in row):
            return index
    return 0


def resolve_header_row(header_row: Optional[Any], rows: list[list[str]]) -> int:
    """
    0-based header row from a 1-based request value, or auto-detected.

    Values below 1 or non-numeric fall back to the first row.
    """
    if header_row is None or header_row == "":
        return find_header_row(rows)
    try:
        requested = int(header_row)
    except (TypeError, ValueError):
        return 0
    return requested - 1 if requested > 0 else 0


def build_columns(header_cells: list[str], width: int) -> list[ColumnInfo]:
    """Name each column; blank header cells become 'Column <letter>'."""
    columns = []
    for index in range(width):
        text = header_cells[index].strip() if index < len(header_cells) else ""
        letter = column_letter(index)
        columns.append(ColumnInfo(
            index=index,
            letter=letter,
            header=text or f"Column {letter}",
        ))
    return columns


def read_sheet(
    content: bytes,
    filename: str,
    sheet: Optional[str] = None,
    header_row: Optional[Any] = None,
    preview_rows: int = DEFAULT_PREVIEW_ROWS,
) -> SheetHeaders:
    """
    Read the header row and a preview from an uploaded workbook.

    Args:
        content: Raw file bytes
        filename: Original filename (selects the reader engine)
        sheet: Sheet name; first sheet when missing or unknown
        header_row: 1-based header row; auto-detected when None
        preview_rows: Rows after the header to return (clamped to 0..50)

    Returns:
        SheetHeaders

    Raises:
        InvalidFileError: If the workbook cannot be read or has no sheets
    """
    logger.info("reading_sheet_headers", filename=filename, size=len(content), sheet=sheet)

    try:
        excel = pd.ExcelFile(BytesIO(content), engine=_engine_for(filename))
    except Exception as e:
        logger.error("excel_read_failed", filename=filename, error=str(e))
        raise InvalidFileError(
            "Failed to read Excel file",
            details={"original_error": str(e)}
        )

    sheet_names = [str(name) for name in excel.sheet_names]
    if not sheet_names:
        raise InvalidFileError("Workbook has no sheets")

    selected = sheet if sheet and sheet in sheet_names else sheet_names[0]

    try:
        df = excel.parse(selected, header=None, dtype=object)
    except Exception as e:
        logger.error("excel_sheet_read_failed", sheet=selected, error=str(e))
        raise InvalidFileError(
            f"Failed to read sheet '{selected}'",
            details={"original_error": str(e)}
        )

    rows = [[_cell_text(v) for v in row] for row in df.itertuples(index=False, name=None)]
    header_index = resolve_header_row(header_row, rows)
    header_cells = rows[header_index] if header_index < len(rows) else []

    width = max(
        [_row_width(header_cells)]
        + [_row_width(r) for r in rows[header_index:header_index + WIDTH_SCAN_ROWS]]
    )
    columns = build_columns(header_cells, width)

    limit = max(0, min(MAX_PREVIEW_ROWS, int(preview_rows)))
    start = header_index + 1
    preview = [
        {col.header: (row[col.index] if col.index < len(row) else "") for col in columns}
        for row in rows[start:start + limit]
    ]

    logger.info(
        "sheet_headers_read",
        sheet=selected,
        header_row=header_index + 1,
        column_count=len(columns),
        preview_count=len(preview)
    )

    return SheetHeaders(
        file_name=filename,
        sheets=sheet_names,
        selected_sheet=selected,
        header_row=header_index + 1,
        columns=columns,
        preview=preview,
    )


def read_headers(
    content: bytes,
    filename: str,
    sheet: Optional[str] = None,
    header_row: Optional[Any] = None,
) -> list[str]:
    """Header names only (authoritative list for mapping validation)."""
    return read_sheet(content, filename, sheet=sheet, header_row=header_row, preview_rows=0).headers
