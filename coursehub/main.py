"""CourseHub API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coursehub.analytics.router import router as analytics_router
from coursehub.analytics.service import AnalyticsService
from coursehub.auth.identity import IdentityProvider, JWTIdentityProvider
from coursehub.config import Settings, get_settings
from coursehub.core.context import get_request_id
from coursehub.core.errors import AuthorizationError, EngineError, http_status_for
from coursehub.core.logging import configure_structlog, get_logger
from coursehub.core.middleware import RequestContextMiddleware
from coursehub.courses.store import CassandraCourseStore, CourseStore, InMemoryCourseStore
from coursehub.enrollments.hooks import CompletionHook
from coursehub.enrollments.repository import (
    CassandraEnrollmentRepository,
    EnrollmentRepository,
    InMemoryEnrollmentRepository,
)
from coursehub.enrollments.router import course_enrollment_router
from coursehub.enrollments.router import router as enrollments_router
from coursehub.enrollments.service import EnrollmentService
from coursehub.entitlements.router import router as entitlements_router
from coursehub.entitlements.service import EntitlementService
from coursehub.health.router import router as health_router
from coursehub.payments.gateway import HTTPPaymentGateway, PaymentGateway
from coursehub.payments.router import router as payments_router
from coursehub.progress.router import router as progress_router
from coursehub.progress.service import ProgressService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


@dataclass
class EngineComponents:
    """Ports the services are built on. Unset ports get default adapters."""

    course_store: CourseStore | None = None
    enrollment_repository: EnrollmentRepository | None = None
    payment_gateway: PaymentGateway | None = None
    identity_provider: IdentityProvider | None = None
    completion_hook: CompletionHook | None = None


async def _open_storage(
    settings: Settings, components: EngineComponents
) -> tuple[CourseStore, EnrollmentRepository]:
    course_store = components.course_store
    repository = components.enrollment_repository

    if settings.storage_backend == "cassandra" and (
        course_store is None or repository is None
    ):
        from coursehub.core.database import init_cassandra

        session = await init_cassandra(settings)
        logger.info("cassandra_storage_selected", keyspace=settings.cassandra_keyspace)
        course_store = course_store or CassandraCourseStore(
            session=session, keyspace=settings.cassandra_keyspace
        )
        repository = repository or CassandraEnrollmentRepository(
            session=session,
            keyspace=settings.cassandra_keyspace,
            max_attempts=settings.lwt_max_attempts,
        )

    return (
        course_store or InMemoryCourseStore(),
        repository or InMemoryEnrollmentRepository(),
    )


async def build_services(
    app: FastAPI, settings: Settings, components: EngineComponents
) -> None:
    """Wire ports and services onto ``app.state``."""
    course_store, repository = await _open_storage(settings, components)
    gateway = components.payment_gateway or HTTPPaymentGateway(settings)

    app.state.course_store = course_store
    app.state.enrollment_repository = repository
    app.state.payment_gateway = gateway
    app.state.identity_provider = components.identity_provider or JWTIdentityProvider(
        settings
    )

    app.state.entitlement_service = EntitlementService(course_store, repository)
    app.state.enrollment_service = EnrollmentService(
        enrollments=repository,
        courses=course_store,
        gateway=gateway,
        completion_hook=components.completion_hook,
        settings=settings,
    )
    app.state.progress_service = ProgressService(repository, course_store, settings)
    app.state.analytics_service = AnalyticsService(repository, course_store)

    logger.info(
        "engine_services_initialized",
        storage_backend=settings.storage_backend,
        course_store=type(course_store).__name__,
        enrollment_repository=type(repository).__name__,
        payment_gateway=type(gateway).__name__,
    )


def _lifespan_for(components: EngineComponents):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        settings = get_settings()
        logger.info(
            "starting_application",
            app_name=settings.app_name,
            version=settings.app_version,
            environment=settings.environment,
        )

        await build_services(app, settings, components)

        yield

        logger.info("shutting_down_application")
        gateway = app.state.payment_gateway
        if isinstance(gateway, HTTPPaymentGateway):
            await gateway.aclose()
        if settings.storage_backend == "cassandra":
            from coursehub.core.database import shutdown_cassandra

            shutdown_cassandra()

    return lifespan


def create_app(components: EngineComponents | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Course entitlement, enrollment, progress and analytics API",
        debug=False,  # Never expose stack traces in responses
        lifespan=_lifespan_for(components or EngineComponents()),
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
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

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError) -> ORJSONResponse:
        """Map engine errors to their HTTP status."""
        status_code = http_status_for(exc)
        log = logger.error if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR else logger.info
        log(
            "engine_error",
            code=exc.code,
            status_code=status_code,
            detail=exc.message,
            path=request.url.path,
            method=request.method,
        )

        content = {
            "error": True,
            "message": exc.message,
            "code": exc.code,
            "status_code": status_code,
            "request_id": _get_request_id_safe(request),
        }
        if isinstance(exc, AuthorizationError):
            content["reason"] = exc.reason

        headers = None
        if status_code == status.HTTP_401_UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}
        return ORJSONResponse(status_code=status_code, content=content, headers=headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": _get_request_id_safe(request),
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "code": "validation_error",
                "status_code": 422,
                "request_id": _get_request_id_safe(request),
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler; details are logged, never returned."""
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": _get_request_id_safe(request),
            },
        )

    app.include_router(health_router)
    app.include_router(enrollments_router)
    app.include_router(course_enrollment_router)
    app.include_router(entitlements_router)
    app.include_router(progress_router)
    app.include_router(payments_router)
    app.include_router(analytics_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "CourseHub API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
