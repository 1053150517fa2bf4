"""LearnMate API application.

Serves the course catalog and learner enrollments. Watch progress reported
by the playback tracker lands on the enrollment endpoints.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from learnmate.config import Settings, get_settings
from learnmate.core.context import get_request_id
from learnmate.core.database import init_async_cassandra, shutdown_async_cassandra
from learnmate.core.logging import configure_structlog, get_logger
from learnmate.core.middleware import RequestContextMiddleware
from learnmate.core.redis import OutlineCache
from learnmate.courses.router import router as courses_router
from learnmate.courses.service import CatalogService
from learnmate.enrollments.router import router as enrollments_router
from learnmate.enrollments.service import EnrollmentService
from learnmate.health import router as health_router


settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir), file_output=not settings.is_testing)

logger = get_logger(__name__)


# ==============================================================================
# Lifespan
# ==============================================================================


async def _connect_outline_cache():
    """Redis client, or None when the cache is unavailable."""
    try:
        return await OutlineCache.connect()
    except Exception as e:
        logger.warning("outline_cache_disabled", error=str(e))
        return None


async def _start_services(app: FastAPI, settings: Settings) -> None:
    redis_client = await _connect_outline_cache()
    try:
        session = await init_async_cassandra()
    except Exception as e:
        # Readiness reports "degraded" until storage is reachable
        logger.warning("database_init_skipped", error=str(e))
        return

    catalog = CatalogService(
        session=session,
        keyspace=settings.cassandra_keyspace,
        redis=redis_client,
        outline_ttl=settings.catalog_cache_ttl_seconds,
    )
    app.state.catalog_service = catalog
    app.state.enrollment_service = EnrollmentService(
        session=session,
        keyspace=settings.cassandra_keyspace,
        catalog=catalog,
        completion_ratio=settings.playback_completion_ratio,
        early_finish_ratio=settings.playback_early_finish_ratio,
    )
    logger.info("services_initialized", outline_cache=redis_client is not None)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )
    await _start_services(app, settings)

    yield

    logger.info("shutting_down_application")
    await OutlineCache.disconnect()
    await shutdown_async_cassandra()


# ==============================================================================
# Error responses
# ==============================================================================


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> ORJSONResponse:
    """Uniform error body: {error, message, status_code, request_id, ...}."""
    request_id = getattr(request.state, "request_id", None) or get_request_id()
    return ORJSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "message": message,
            "status_code": status_code,
            "request_id": request_id,
            **extra,
        },
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map every error to the uniform body; internals never leak."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )
        server_error = exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR
        return _error_response(
            request,
            exc.status_code,
            "Internal server error" if server_error else str(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        errors = exc.errors()
        logger.warning("validation_error", errors=errors, path=request.url.path)
        return _error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Validation error",
            details=[
                {
                    "field": ".".join(str(loc) for loc in err.get("loc", [])),
                    "message": err.get("msg", "Invalid value"),
                }
                for err in errors
            ],
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred. Please try again later.",
        )


# ==============================================================================
# Application
# ==============================================================================


def create_app() -> FastAPI:
    settings = get_settings()
    docs_enabled = settings.is_development

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="LearnMate course delivery: catalog, enrollments and watch progress",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )

    # Added first so it wraps everything else
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )
    register_exception_handlers(app)

    for router in (health_router, courses_router, enrollments_router):
        app.include_router(router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        return {
            "message": "LearnMate API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
