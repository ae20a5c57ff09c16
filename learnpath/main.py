"""learnpath API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from learnpath.auth.context import AuthRequiredError
from learnpath.config import Settings, get_settings
from learnpath.core.context import get_request_id
from learnpath.core.logging import configure_structlog, get_logger
from learnpath.core.middleware import RequestContextMiddleware
from learnpath.courses.router import router_admin, router_courses
from learnpath.courses.service import CourseService
from learnpath.health.router import router as health_router
from learnpath.notifications.router import router as notifications_router
from learnpath.notifications.service import NotificationCenter
from learnpath.player.router import router as player_router
from learnpath.player.service import PlayerRegistry
from learnpath.progress.router import enrollments_router
from learnpath.progress.router import router as progress_router
from learnpath.progress.service import ProgressTracker
from learnpath.quizzes.router import router as quizzes_router
from learnpath.quizzes.service import QuizSessionManager
from learnpath.reviews.router import router as reviews_router
from learnpath.reviews.service import ReviewService
from learnpath.storage import InMemoryStore, LearningStore, StorageError


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


async def init_store(settings: Settings) -> LearningStore:
    """Build the configured learning store."""
    if settings.storage_backend == "cassandra":
        # Only importable with the ``cassandra`` extra installed
        from learnpath.core.database import init_async_cassandra
        from learnpath.storage.cassandra import CassandraStore

        session = await init_async_cassandra(settings)
        return CassandraStore(session, settings.cassandra_keyspace)

    return InMemoryStore()


def init_services(app: FastAPI, store: LearningStore, settings: Settings) -> None:
    """Attach services to ``app.state`` for dependency injection."""
    notifications = NotificationCenter(
        store,
        buffer_size=settings.notification_buffer_size,
        ttl=timedelta(seconds=settings.notification_ttl_seconds),
    )
    tracker = ProgressTracker(store, notifications)
    quiz_sessions = QuizSessionManager(
        store, notifications, tick_seconds=settings.quiz_tick_seconds
    )

    app.state.store = store
    app.state.notifications = notifications
    app.state.progress_tracker = tracker
    app.state.quiz_sessions = quiz_sessions
    app.state.players = PlayerRegistry(
        tracker,
        quiz_sessions,
        video_threshold=settings.video_completion_threshold,
    )
    app.state.course_service = CourseService(store)
    app.state.review_service = ReviewService(store, notifications)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        storage_backend=settings.storage_backend,
    )

    # A store attached before startup (tests) takes precedence
    store = getattr(app.state, "store", None) or await init_store(settings)
    init_services(app, store, settings)
    logger.info("services_initialized", store=type(store).__name__)

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await app.state.quiz_sessions.close_all()
    if settings.storage_backend == "cassandra":
        from learnpath.core.database import shutdown_async_cassandra

        await shutdown_async_cassandra()


def create_app(store: LearningStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Never expose stack traces in responses; handlers below log full details
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Course progress tracking and timed quizzes API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )
    if store is not None:
        app.state.store = store

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
    )

    def _error_body(request: Request, status_code: int, message: str) -> dict:
        return {
            "error": True,
            "message": message,
            "status_code": status_code,
            "request_id": getattr(request.state, "request_id", None)
            or get_request_id(),
        }

    def _error_response(
        request: Request, status_code: int, message: str
    ) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=status_code,
            content=_error_body(request, status_code, message),
        )

    # Global exception handlers (never expose stack traces)
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
        message = (
            str(exc.detail)
            if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            else "Internal server error"
        )
        response = _error_response(request, exc.status_code, message)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors (field errors are safe to expose)."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        return ORJSONResponse(
            status_code=status_code,
            content={
                **_error_body(request, status_code, "Validation error"),
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(AuthRequiredError)
    async def auth_required_handler(
        request: Request, exc: AuthRequiredError
    ) -> ORJSONResponse:
        logger.warning("auth_required", path=request.url.path, detail=exc.message)
        return _error_response(request, status.HTTP_401_UNAUTHORIZED, exc.message)

    @app.exception_handler(StorageError)
    async def storage_exception_handler(
        request: Request, exc: StorageError
    ) -> ORJSONResponse:
        """Storage failures that were not handled at the call site."""
        logger.error(
            "storage_unavailable",
            code=exc.code,
            error_message=exc.message,
            path=request.url.path,
            method=request.method,
        )
        return _error_response(
            request,
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Storage is temporarily unavailable. Please try again later.",
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions."""
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred. Please try again later.",
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(router_courses)
    app.include_router(router_admin)
    app.include_router(enrollments_router)
    app.include_router(progress_router)
    app.include_router(quizzes_router)
    app.include_router(reviews_router)
    app.include_router(player_router)
    app.include_router(notifications_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "learnpath API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
