"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from attendease import __version__
from attendease.api.routes import attendance_router, health_router, leaves_router, payroll_router
from attendease.api.schemas import ApiResponse
from attendease.config import get_settings
from attendease.database import dispose_db, init_db
from attendease.exceptions import AppError

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, error: str) -> JSONResponse:
    """JSON envelope with success false."""
    body = ApiResponse[None](success=False, message=message, error=error)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body.model_dump(by_alias=True)),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    init_db()
    yield
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title="AttendEase API",
        description="Attendance, leave and payroll backend",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        """Map typed service errors to their status code."""
        return error_response(exc.status_code, exc.message, exc.kind)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed request bodies and parameters."""
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg', 'Invalid request')}" if location else "Invalid request"
        return error_response(status.HTTP_400_BAD_REQUEST, message, "validation")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Errors raised by dependencies and the router."""
        return error_response(exc.status_code, str(exc.detail), "http_error")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
            "internal_error",
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_router, prefix="/api")
    app.include_router(leaves_router, prefix="/api")
    app.include_router(attendance_router, prefix="/api")

    return app


# Default app instance for uvicorn
app = create_app()
