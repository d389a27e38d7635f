"""
Spreadsheet inspection routes.

Upload a workbook, get its columns, a preview, and the suggested field
mapping with ranked alternatives.
"""

from typing import Optional
from fastapi import APIRouter, Depends, File, Query, UploadFile
import structlog

from models.catalog import ModelOption
from models.mapping import CandidateResponse, FieldResponse, ParseExcelResponse
from parsers.excel_parser import DEFAULT_PREVIEW_ROWS, check_upload, read_sheet
from routes.dependencies import get_context
from services.app_context import AppContext

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api", tags=["Mapping"])


@router.get("/fields", response_model=list[FieldResponse])
async def list_fields(ctx: AppContext = Depends(get_context)):
    """Configured canonical fields and their aliases."""
    return [
        FieldResponse(
            name=f.name,
            required=f.required,
            multi=f.multi,
            aliases=list(f.aliases),
        )
        for f in ctx.fields
    ]


@router.get("/models", response_model=list[ModelOption])
async def list_models(ctx: AppContext = Depends(get_context)):
    """Selectable prediction models."""
    return list(ctx.models)


@router.post("/parse-excel", response_model=ParseExcelResponse)
async def parse_excel(
    file: Optional[UploadFile] = File(None, description="Excel workbook (.xlsx/.xls)"),
    sheet: Optional[str] = Query(None, description="Sheet name; first sheet by default"),
    header_row: Optional[str] = Query(None, alias="headerRow", description="1-based header row; auto-detected if omitted"),
    preview_rows: int = Query(DEFAULT_PREVIEW_ROWS, alias="previewRows", description="Preview rows to return (0-50)"),
    ctx: AppContext = Depends(get_context),
):
    """
    Upload Excel and get columns, preview and suggested mapping.

    The mapping is a suggestion only; POST /api/jobs validates it again
    against the file actually submitted.
    """
    filename = file.filename if file is not None else None
    content = await file.read() if file is not None else b""
    check_upload(filename, file.content_type if file else None, len(content), ctx.settings.max_upload_bytes)

    sheet_headers = read_sheet(
        content,
        filename,
        sheet=sheet,
        header_row=header_row,
        preview_rows=preview_rows,
    )
    auto = ctx.mapper.auto_map(sheet_headers.headers)

    logger.info(
        "excel_inspected",
        filename=filename,
        sheet=sheet_headers.selected_sheet,
        columns=len(sheet_headers.columns),
        missing=auto.missing
    )

    return ParseExcelResponse(
        file_name=sheet_headers.file_name,
        sheets=sheet_headers.sheets,
        selected_sheet=sheet_headers.selected_sheet,
        header_row=sheet_headers.header_row,
        columns=sheet_headers.columns,
        preview=sheet_headers.preview,
        mapping=auto.mapping,
        missing=auto.missing,
        candidates={
            name: [CandidateResponse(header=c.header, score=c.score) for c in candidates]
            for name, candidates in auto.candidates.items()
        },
    )
