"""
API route modules.

Each module defines routes for one area.
"""

from routes.mapping import router as mapping_router
from routes.jobs import router as jobs_router
from routes.files import router as files_router

__all__ = [
    "mapping_router",
    "jobs_router",
    "files_router",
]
