"""
Ephemeral file download route.

The prediction service pulls submitted spreadsheets from here in pull
mode. Links stop working when the file expires.
"""

from urllib.parse import quote
from fastapi import APIRouter, Depends
from fastapi.responses import Response
import structlog

from routes.dependencies import get_context
from services.app_context import AppContext

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/files", tags=["Files"])


@router.get("/{token}")
async def download_file(token: str, ctx: AppContext = Depends(get_context)):
    """
    Download a stored file by token.

    Raises:
        StoredFileNotFoundError: Unknown or expired token (404)
    """
    entry = ctx.file_store.get(token)
    logger.info("ephemeral_file_served", filename=entry.filename, size=entry.size)

    return Response(
        content=entry.content,
        media_type=entry.mime_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(entry.filename)}",
            "Cache-Control": "no-store",
        },
    )
