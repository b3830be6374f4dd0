"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from retitler import __version__
from retitler.api.routes import api_router
from retitler.config import Settings, get_settings
from retitler.core.generator import TitleGenerator
from retitler.core.model_cache import ModelCache
from retitler.core.transport import BackendClient
from retitler.documents.retitle import Retitler
from retitler.documents.store import FileSystemDocumentStore
from retitler.middleware.logging import RequestContextMiddleware, configure_logging
from retitler.utils.errors import (
    ConfigurationError,
    ErrorCode,
    TitleGeneratorError,
    create_error_response,
)

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.CONFIGURATION_ERROR: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.UNSUPPORTED_BACKEND: 404,
    ErrorCode.API_ERROR: 502,
    ErrorCode.GENERATION_ERROR: 502,
    ErrorCode.TIMEOUT: 504,
    ErrorCode.NETWORK_ERROR: 503,
    ErrorCode.FILE_OPERATION_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown events."""
    settings: Settings = app.state.settings

    configure_logging(
        level=settings.logging.level,
        format=settings.logging.format,
    )

    logger.info(
        "Starting retitler",
        extra={
            "version": __version__,
            "backend": settings.backend,
            "host": settings.server.host,
            "port": settings.server.port,
        },
    )

    # A missing key only disables generation, the rest of the API still works
    try:
        settings.validate_required()
    except ConfigurationError as e:
        logger.warning(f"Configuration incomplete: {e.message}", extra={"backend": settings.backend})

    yield

    logger.info("Shutting down retitler")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override for testing.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="retitler",
        description="FastAPI service that generates document titles with LLM backends",
        version=__version__,
        lifespan=lifespan,
    )

    client = BackendClient(
        generation_timeout=settings.title.timeout_seconds,
        catalogue_timeout=settings.models.timeout_seconds,
    )
    generator = TitleGenerator(client, settings.generation_config)
    app.state.settings = settings
    app.state.backend_client = client
    app.state.title_generator = generator
    app.state.model_cache = ModelCache(
        client, settings.generation_config, ttl_seconds=settings.models.ttl_seconds
    )
    app.state.retitler = Retitler(
        FileSystemDocumentStore(settings.documents.root_dir, settings.documents.extensions),
        generator,
        duplicates=settings.duplicates,
        max_attempts=settings.title.max_attempts,
    )

    # Last added = first executed; CORS stays outermost for preflight requests
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors.allowed_origins,
        allow_credentials=True,
        allow_methods=settings.server.cors.allowed_methods,
        allow_headers=settings.server.cors.allowed_headers,
    )

    app.add_exception_handler(TitleGeneratorError, title_generator_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    app.include_router(api_router)

    return app


async def title_generator_error_handler(
    request: Request, exc: TitleGeneratorError
) -> JSONResponse:
    """Map taxonomy errors to HTTP status codes."""
    request_id = getattr(request.state, "request_id", None)
    body = create_error_response(exc, request_id=request_id)
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(exc.code, 500),
        content=body.model_dump(mode="json"),
    )


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle Pydantic validation errors."""
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "errors": exc.errors(include_url=False, include_context=False),
        },
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected errors."""
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "request_id": request_id,
        },
    )


def run() -> None:
    """Serve the app with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "retitler.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
    )
