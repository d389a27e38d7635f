"""
Prediction job routes.

POST /api/jobs answers 202 as soon as the submission is validated; the
prediction, polling and result email all run after the response is sent.
"""

import json
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, UploadFile
from pydantic import BaseModel, EmailStr, ValidationError as PydanticValidationError
import structlog

from exceptions import ValidationError
from integrations.inference_client import XLSX_MIME_TYPE
from models.job import JobAcceptedResponse
from models.mapping import FieldMapping
from parsers.excel_parser import check_upload, read_headers
from routes.dependencies import get_context
from services.app_context import AppContext

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api", tags=["Jobs"])


class Recipient(BaseModel):
    email: EmailStr


def parse_mapping(raw: str) -> FieldMapping:
    """
    Decode the mapping form field.

    Raises:
        ValidationError: Not a JSON object
    """
    try:
        mapping = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(
            "Mapping must be a JSON object",
            code="MAPPING_MALFORMED",
            details={"original_error": str(e)}
        )
    if not isinstance(mapping, dict):
        raise ValidationError("Mapping must be a JSON object", code="MAPPING_MALFORMED")
    return mapping


def parse_model_ids(raw: str) -> list[str]:
    """Accept a JSON array or a comma separated list."""
    text = raw.strip()
    if text.startswith("["):
        try:
            values = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(
                "modelIds must be a JSON array or comma separated list",
                code="MODEL_IDS_MALFORMED",
                details={"original_error": str(e)}
            )
        if not isinstance(values, list):
            raise ValidationError("modelIds must be a list", code="MODEL_IDS_MALFORMED")
        return [str(v).strip() for v in values if str(v).strip()]
    return [part.strip() for part in text.split(",") if part.strip()]


def parse_email(raw: str) -> str:
    try:
        return str(Recipient(email=raw.strip()).email)
    except PydanticValidationError:
        raise ValidationError(
            "A valid email address is required",
            code="INVALID_EMAIL",
            details={"provided": raw}
        )


@router.post("/jobs", status_code=202, response_model=JobAcceptedResponse)
async def create_job(
    background_tasks: BackgroundTasks,
    file: Optional[UploadFile] = File(None, description="Excel workbook (.xlsx/.xls)"),
    email: str = Form(..., description="Where to send the result"),
    mapping: str = Form(..., description="JSON object: field → header (list for multi fields)"),
    model_ids: str = Form(..., alias="modelIds", description="JSON array or comma separated model ids"),
    sheet: Optional[str] = Form(None),
    header_row: Optional[str] = Form(None, alias="headerRow"),
    ctx: AppContext = Depends(get_context),
):
    """
    Submit a spreadsheet for prediction.

    Validates the email, the selected models and the mapping (against the
    headers of this very file), then queues the job. The result arrives
    by email.
    """
    filename = file.filename if file is not None else None
    content = await file.read() if file is not None else b""
    check_upload(filename, file.content_type if file else None, len(content), ctx.settings.max_upload_bytes)

    recipient = parse_email(email)
    headers = read_headers(content, filename, sheet=sheet, header_row=header_row)

    job = ctx.pipeline.create_job(
        email=recipient,
        content=content,
        filename=filename,
        mime_type=file.content_type or XLSX_MIME_TYPE,
        mapping=parse_mapping(mapping),
        model_ids=parse_model_ids(model_ids),
        headers=headers,
    )

    background_tasks.add_task(ctx.pipeline.run, job, content)
    logger.info("job_queued", job_id=job.id)

    return JobAcceptedResponse(job_id=job.id)
