"""
FastAPI application factory.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import Settings, settings
from app.core.cache import RedisCache
from app.core.database import DatabaseManager
from app.core.error_tracking import ErrorTracker
from app.core.exceptions import AppException, ValidationFailedError, error_body, error_response
from app.core.logging_config import get_logger, setup_logging
from app.core.metrics import app_info
from app.core.middleware import RequestContextMiddleware
from app.core.orgname_cache import OrgnameCache
from app.core.performance import track_http_metrics
from app.core.subdomain import SubdomainResolverMiddleware
from app.features.auth.client import IdentityProviderClient
from app.features.payments.gateway import build_payment_gateway

# Setup logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    app.state.db.init()
    if settings.is_development:
        await app.state.db.create_all()

    try:
        await app.state.redis.init()
    except Exception as e:
        # Rate limiting and the plan cache degrade gracefully without Redis
        logger.warning("redis_unavailable", error=str(e))
        await app.state.redis.close()

    app.state.orgname_cache.start()

    app_info.info({
        "version": settings.app_version,
        "environment": settings.environment,
        "payment_gateway": app.state.payment_gateway.name,
    })

    logger.info("application_ready")

    yield

    logger.info("application_shutting_down")
    await app.state.orgname_cache.close()
    await app.state.identity_client.close()
    await app.state.redis.close()
    await app.state.db.close()
    logger.info("application_shutdown_complete")


def build_state(app: FastAPI, config: Settings) -> None:
    """Construct the long-lived components; the lifespan connects them."""
    app.state.db = DatabaseManager(
        config.database_url,
        echo=config.db_echo,
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        connect_timeout=config.db_connect_timeout,
    )
    app.state.redis = RedisCache(str(config.redis_url), default_ttl=config.redis_cache_ttl)
    app.state.orgname_cache = OrgnameCache(
        ttl_seconds=config.orgname_cache_ttl_seconds,
        max_size=config.orgname_cache_max_size,
        sweep_interval=config.orgname_cache_sweep_seconds,
    )
    app.state.identity_client = IdentityProviderClient(config)
    app.state.payment_gateway = build_payment_gateway(config)
    app.state.error_tracker = ErrorTracker.from_settings(config)


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error with the same JSON body."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("application_error", path=request.url.path, error=exc.message)
        else:
            logger.info(
                "request_rejected",
                path=request.url.path,
                status_code=exc.status_code,
                error=exc.message,
            )
        return error_response(exc, request.url.path)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail), exc.status_code, request.url.path),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path")),
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        logger.warning("validation_error", path=request.url.path, errors=errors)

        failure = ValidationFailedError()
        return JSONResponse(
            status_code=failure.status_code,
            content=error_body(failure.message, failure.status_code, request.url.path, errors=errors),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler with error tracking."""
        request_id = getattr(request.state, "request_id", "unknown")

        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )

        request.app.state.error_tracker.capture_exception(
            exc,
            context={
                "request": {
                    "request_id": request_id,
                    "path": request.url.path,
                    "method": request.method,
                },
            },
        )

        if settings.is_production:
            message = "An internal error occurred. Please contact support."
        else:
            message = str(exc) or "Internal Server Error"

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(
                message,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                request.url.path,
                data={"request_id": request_id},
            ),
        )


def create_application(config: Settings = settings) -> FastAPI:
    """Application factory."""

    app = FastAPI(
        title=config.app_name,
        version=config.app_version,
        description="Multi-tenant organization onboarding with subdomain routing and subscriptions",
        docs_url=None if config.is_production else "/docs",
        redoc_url=None if config.is_production else "/redoc",
        lifespan=lifespan,
    )

    build_state(app, config)

    # Middleware: the last one added is the outermost
    app.add_middleware(SubdomainResolverMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_origin_regex=config.cors_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Performance monitoring (outermost - tracks everything)
    @app.middleware("http")
    async def performance_middleware(request: Request, call_next):
        return await track_http_metrics(request, call_next)

    register_exception_handlers(app)

    from app.api.health_router import router as health_router
    from app.api.metrics_router import router as metrics_router
    from app.api.v1.router import v1_router
    from app.features.site.router import router as site_router

    # Health endpoints (no prefix)
    app.include_router(health_router)

    if config.metrics_enabled:
        app.include_router(metrics_router)

    # API routers
    app.include_router(v1_router, prefix="/api")

    # Tenant-scoped routes, served on organization subdomains
    app.include_router(site_router)

    @app.get("/", tags=["Root"])
    async def root() -> dict:
        return {
            "message": f"Welcome to {config.app_name}",
            "version": config.app_version,
            "environment": config.environment,
            "docs": "Disabled in production" if config.is_production else "/docs",
            "health": "/health",
        }

    logger.info("application_configured")
    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload and settings.is_development,
        log_level=settings.log_level.lower(),
        access_log=False,  # We handle logging ourselves
    )
