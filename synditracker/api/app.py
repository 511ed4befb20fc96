"""
FastAPI application factory.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from synditracker.api.dependencies import HubServices
from synditracker.api.routes import admin, health, ingest
from synditracker.config.settings import VERSION, get_settings
from synditracker.errors import HubError, RateLimitError

logger = structlog.get_logger(__name__)


def create_app(services: HubServices | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        services: Prepared service container. When given, the lifespan
            neither connects nor closes anything (tests pass fakes here).

    Returns:
        Configured FastAPI application
    """
    settings = services.settings if services is not None else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Synditracker hub starting up", version=VERSION)
        owned = services is None
        if owned:
            app.state.services = HubServices.build(settings)
            await app.state.services.start()

        yield

        logger.info("Synditracker hub shutting down")
        if owned:
            await app.state.services.stop()

    app = FastAPI(
        title="Synditracker Hub",
        description="""
Central hub collecting syndication events from agent sites.

## Authentication

- `POST /log` requires an `X-Site-Key` header issued by the hub.
- `/admin/*` requires `X-API-KEY` when `ADMIN_API_KEYS` is set.
- `/health` is open.
        """,
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "ingest", "description": "Syndication event intake"},
            {"name": "health", "description": "Service health checks"},
            {"name": "admin", "description": "Keys, alert settings, logs, and alerts"},
        ],
    )
    if services is not None:
        app.state.services = services

    cors_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # Request logging and correlation ID
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Correlation-ID")
            or str(uuid.uuid4())
        )
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time
            response.headers["X-Request-ID"] = request_id

            logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )
            return response
        finally:
            structlog.contextvars.clear_contextvars()

    @app.exception_handler(HubError)
    async def hub_error_handler(request: Request, exc: HubError):
        headers = None
        if isinstance(exc, RateLimitError):
            headers = {"Retry-After": str(exc.retry_after)}
        if exc.status_code >= 500:
            logger.error("Request failed", path=request.url.path, error=exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.message},
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"message": "Internal server error"},
        )

    app.include_router(ingest.router, tags=["ingest"])
    app.include_router(health.router, tags=["health"])
    app.include_router(admin.router, tags=["admin"])

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": "Synditracker Hub",
            "version": VERSION,
            "docs": "/docs",
        }

    return app
