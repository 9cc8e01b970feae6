"""Fulfillment API main application module.

This module builds the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fulfillment.api import (
    admin_router,
    carts_router,
    health_router,
    orders_router,
    payments_router,
    returns_router,
)
from fulfillment.api.middleware import setup_middleware, store_unavailable_response
from fulfillment.domain.exceptions import StoreUnavailableError
from fulfillment.infrastructure.config import Settings, get_settings
from fulfillment.infrastructure.database import Database
from fulfillment.infrastructure.logging import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Builds the database handle that every request-scoped service
    receives, and disposes of its connection pool on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)
    logger.info(
        "Starting fulfillment API",
        version=settings.api_version,
        debug=settings.debug,
    )

    db = Database.from_settings(settings)
    if settings.database_create_tables:
        await db.create_all()
    app.state.db = db

    yield

    logger.info("Shutting down fulfillment API")
    await db.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Settings to use; read from the environment when omitted.

    Returns:
        Configured application.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Fulfillment API",
        description="Cart, checkout, payment and return workflows",
        version=settings.api_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings

    # CORS middleware (must be added before custom middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Setup custom middleware (request ID, API key auth, error handling)
    setup_middleware(app)

    app.include_router(health_router, tags=["Health"])
    app.include_router(carts_router)
    app.include_router(orders_router)
    app.include_router(payments_router)
    app.include_router(returns_router)
    app.include_router(admin_router)

    _register_exception_handlers(app)
    return app


# ============================================================================
# Custom Exception Handlers
# ============================================================================


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with consistent format."""
        request_id = getattr(request.state, "request_id", None)

        detail = exc.detail
        if isinstance(detail, dict):
            error_code = detail.get("error_code", "ERROR")
            message = detail.get("message", str(detail))
            details = detail.get("details", {})
        else:
            error_code = "ERROR"
            message = str(detail)
            details = {}

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error_code": error_code,
                "message": message,
                "details": details,
                "request_id": request_id,
            },
            headers=exc.headers,
        )

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
        """Surface store outages as a retryable 503."""
        logger.warning(
            "Store unavailable",
            path=request.url.path,
            method=request.method,
            error=exc.message,
        )
        return store_unavailable_response(getattr(request.state, "request_id", None))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions with consistent format."""
        request_id = getattr(request.state, "request_id", None)

        logger.exception(
            "Unhandled exception in handler",
            path=request.url.path,
            method=request.method,
            error=str(exc),
        )

        return JSONResponse(
            status_code=500,
            content={
                "error_code": "INTERNAL_ERROR",
                "message": "An internal error occurred",
                "details": {},
                "request_id": request_id,
            },
        )


app = create_app()
