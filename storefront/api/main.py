"""
Main FastAPI application.

Storefront backend API with:
- CORS configuration
- Error handling
- Request ID tracking
- Structured logging
- Prometheus metrics
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront import __version__
from storefront.config import get_settings
from storefront.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InvalidCartError,
    InvalidProductError,
    OrderNotFoundError,
    ProductNotFoundError,
    StorefrontError,
)
from storefront.database.connection import close_db, init_db
from storefront.monitoring.logging import setup_logging

from .routes import (
    admin_router,
    catalog_router,
    checkout_router,
    monitoring_router,
    newsletter_router,
    orders_router,
    webhook_router,
)

# Setup logging first
setup_logging()
logger = structlog.get_logger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
    """
    Create tables on startup and dispose of the engine on shutdown.

    Startup fails when the database is unreachable.
    """
    if not settings.get_admin_uids():
        logger.warning("no_admin_uids_configured")

    logger.info(
        "application_startup",
        env=settings.app_env,
        stripe_test_mode=settings.is_test_mode,
        currency=settings.currency,
        database=settings.database_url.split("://", 1)[0],
    )

    try:
        await init_db()
    except Exception as e:
        logger.error("database_initialization_failed", error=str(e))
        raise

    yield

    try:
        await close_db()
    except Exception as e:
        logger.error("database_shutdown_error", error=str(e))
    logger.info("application_shutdown")


app = FastAPI(
    title="Storefront API",
    description=(
        "Backend for a small online store: catalog, Stripe Checkout, "
        "webhook-driven order reconciliation, newsletter and admin tools."
    ),
    version=__version__,
    lifespan=lifespan,
    # Interactive docs are not served in production.
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


REQUEST_ID_HEADER = "X-Request-ID"


@app.middleware("http")
async def request_context_middleware(request: Request, call_next: Any) -> Response:
    """
    Bind a request id and route to the log context for the whole request.

    An incoming ``X-Request-ID`` (set by the storefront front end or a proxy)
    is reused so one id follows a checkout across services; otherwise a new
    one is generated.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    start_time = time.perf_counter()

    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            "request_failed",
            error=str(e),
            duration_seconds=time.perf_counter() - start_time,
        )
        raise
    else:
        response.headers[REQUEST_ID_HEADER] = request_id
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            "request_completed",
            status_code=response.status_code,
            duration_seconds=time.perf_counter() - start_time,
            client_host=request.client.host if request.client else None,
        )
        return response
    finally:
        structlog.contextvars.clear_contextvars()


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed requests are client errors (400), same as domain validation."""
    logger.info("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request.", "errors": jsonable_errors(exc)},
    )


DOMAIN_ERROR_STATUS = (
    ((InvalidCartError, InvalidProductError), status.HTTP_400_BAD_REQUEST),
    ((AuthenticationError, AuthorizationError), status.HTTP_403_FORBIDDEN),
    ((OrderNotFoundError, ProductNotFoundError), status.HTTP_404_NOT_FOUND),
)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Domain errors a route did not translate itself."""
    for classes, code in DOMAIN_ERROR_STATUS:
        if isinstance(exc, classes):
            return JSONResponse(status_code=code, content={"detail": str(exc)})

    logger.error("unhandled_domain_error", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected error occurred. Please try again later."},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.
    """
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


app.include_router(checkout_router)
app.include_router(webhook_router)
app.include_router(catalog_router)
app.include_router(orders_router)
app.include_router(newsletter_router)
app.include_router(admin_router)
app.include_router(monitoring_router)


@app.get("/", tags=["root"])
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": __version__,
        "status": "operational",
        "environment": settings.app_env,
        "test_mode": settings.is_test_mode,
        "docs": app.docs_url,
        "health": "/health",
        "metrics": "/metrics",
    }


def run() -> None:
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "storefront.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=settings.api_workers if not settings.debug else 1,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
