"""
Excel Mapper — Main Application

FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from config import settings
from exceptions import AppError
from services.app_context import AppContext, build_context


def configure_logging(log_level: str, production: bool) -> None:
    """Configure stdlib logging and structlog once per process."""
    logging.basicConfig(format="%(message)s", level=log_level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer() if production
                else structlog.dev.ConsoleRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(settings.log_level, settings.is_production)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup: Build services (unless injected), start the file sweeper
    Shutdown: Stop the sweeper
    """
    logger.info(
        "application_starting",
        environment=settings.environment,
        debug=settings.debug
    )

    if getattr(app.state, "context", None) is None:
        app.state.context = build_context(settings)

    context: AppContext = app.state.context
    context.start()

    yield

    logger.info("application_shutting_down")
    context.stop()


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        context: Prebuilt services; built from settings at startup when None
    """
    app = FastAPI(
        title="Excel Mapper API",
        description="Maps spreadsheet columns to product fields and runs predictions on them",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ===================
    # ROUTES
    # ===================

    @app.get("/")
    async def root():
        """
        Root endpoint.

        Returns:
            API information and available endpoints
        """
        return {
            "name": "Excel Mapper API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "fields": "/api/fields",
                "models": "/api/models",
                "parse_excel": "/api/parse-excel",
                "jobs": "/api/jobs",
            }
        }

    @app.get("/health")
    async def health_check(request: Request):
        """
        Health check endpoint.

        Returns:
            Basic health status and integration state
        """
        ctx: Optional[AppContext] = request.app.state.context
        return {
            "status": "healthy" if ctx is not None else "starting",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.environment,
            "inference_mode": ctx.settings.inference_mode if ctx else None,
            "stored_files": len(ctx.file_store) if ctx else 0,
        }

    # ===================
    # ERROR HANDLERS
    # ===================

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        """Render application errors in the standard error format."""
        logger.info(
            "request_rejected",
            path=request.url.path,
            code=exc.code,
            status_code=exc.status_code
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Global exception handler.

        Catches unhandled exceptions and returns standard error format.
        """
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            error_type=type(exc).__name__
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "details": str(exc) if settings.debug else None,
                    "timestamp": datetime.now(timezone.utc).isoformat()
                }
            }
        )

    # ===================
    # INCLUDE ROUTERS
    # ===================
    from routes import mapping_router, jobs_router, files_router

    app.include_router(mapping_router)  # Prefix already in router
    app.include_router(jobs_router)  # Prefix already in router
    app.include_router(files_router)  # Prefix already in router

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
