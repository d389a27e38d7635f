"""
Test data factories.

Builds in-memory workbooks and fake HTTP responses.
"""

import base64
import json
from io import BytesIO
from typing import Any, Optional
from unittest.mock import MagicMock

import pandas as pd

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def make_workbook(
    rows: Optional[list[list[Any]]] = None,
    sheets: Optional[dict[str, list[list[Any]]]] = None,
) -> bytes:
    """
    Create an .xlsx file in memory.

    Usage:
        content = make_workbook([["Title", "Description"], ["Mug", "Blue mug"]])
        content = make_workbook(sheets={"Main": [...], "Other": [...]})
    """
    sheets = sheets or {"Sheet1": rows or []}
    output = BytesIO()

    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        for name, sheet_rows in sheets.items():
            pd.DataFrame(sheet_rows).to_excel(writer, sheet_name=name, header=False, index=False)

    return output.getvalue()


def make_product_workbook() -> bytes:
    """Typical product sheet with every field present."""
    return make_workbook([
        ["Product Images", "Title", "Bullet Point 1", "Bullet Point 2", "Description"],
        ["https://img.test/1.jpg", "Blue mug", "Ceramic", "350 ml", "A blue ceramic mug"],
        ["https://img.test/2.jpg", "Red mug", "Porcelain", "300 ml", "A red porcelain mug"],
    ])


class ResponseFactory:
    """
    Fake `requests.Response` objects.

    Usage:
        session.request.side_effect = [
            ResponseFactory.create(503),
            ResponseFactory.create(200, {"handle": "h-1"}),
        ]
    """

    @classmethod
    def create(
        cls,
        status_code: int = 200,
        body: Any = None,
        content: Optional[bytes] = None,
        headers: Optional[dict] = None,
    ) -> MagicMock:
        response = MagicMock()
        response.status_code = status_code
        response.headers = headers or {}

        if body is not None:
            raw = json.dumps(body).encode("utf-8")
            response.json.return_value = body
        else:
            raw = content or b""
            response.json.side_effect = ValueError("No JSON object could be decoded")

        response.content = content if content is not None else raw
        response.text = raw.decode("utf-8", errors="replace")
        return response

    @classmethod
    def status(cls, status: str, output: Any = None, error: Optional[str] = None) -> MagicMock:
        body = {"status": status}
        if output is not None:
            body["output"] = output
        if error is not None:
            body["error"] = error
        return cls.create(200, body)


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
