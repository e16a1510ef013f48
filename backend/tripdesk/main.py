"""
TripDesk Travel Marketplace -- FastAPI Application
Operators publish packages, agents work leads and build itineraries.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import logging.config
from datetime import datetime
import time

from slowapi.errors import RateLimitExceeded

from tripdesk.core.config import settings
from tripdesk.core.exceptions import TripDeskError
from tripdesk.core.rate_limiting import limiter, rate_limit_handler
from tripdesk.db.database import init_db
from tripdesk.api import (
    health,
    routes_analytics,
    routes_bookings,
    routes_dashboard,
    routes_itineraries,
    routes_itinerary_creation,
    routes_leads,
    routes_operators,
    routes_packages,
)

# Configure logging
logging_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "detailed": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
        },
        "json": {
            "()": "tripdesk.core.monitoring.JSONFormatter",
        },
    },
    "handlers": {
        "default": {
            "formatter": "json" if settings.log_format == "json" else "detailed",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "tripdesk": {"handlers": ["default"], "level": settings.log_level},
        "uvicorn": {"handlers": ["default"], "level": "INFO"},
        "sqlalchemy": {"handlers": ["default"], "level": "WARNING"},
    },
}

logging.config.dictConfig(logging_config)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment} | Workers: {settings.api_workers}")

    init_db()
    logger.info("Application startup complete -- ready to serve")

    yield

    logger.info("Application shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="TripDesk -- packages, leads, itineraries and bookings for operators and travel agents.",
    docs_url="/docs" if settings.debug else None,
    redoc_url=None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

# GZip compression (min 500 bytes)
app.add_middleware(GZipMiddleware, minimum_size=500)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


# Combined request logging + security headers middleware (single pass)
@app.middleware("http")
async def request_middleware(request: Request, call_next):
    """Log requests with timing and add security headers."""
    start = time.perf_counter()
    request_id = request.headers.get("X-Request-ID", "")

    response = await call_next(request)

    elapsed = time.perf_counter() - start
    response.headers["X-Process-Time"] = f"{elapsed:.3f}"

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    if request_id:
        response.headers["X-Request-ID"] = request_id

    logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {elapsed:.3f}s")
    return response


@app.exception_handler(TripDeskError)
async def tripdesk_error_handler(request: Request, exc: TripDeskError):
    """Service errors become {success: false, error} with the error's status code."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters, in the same result shape."""
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return JSONResponse(
        status_code=422,
        content={"success": False, "error": "; ".join(problems) or "Invalid request"},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions gracefully."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": str(exc) if settings.debug else "An unexpected error occurred",
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


# Include routers
for module in (
    health,
    routes_packages,
    routes_leads,
    routes_itinerary_creation,
    routes_itineraries,
    routes_bookings,
    routes_analytics,
    routes_dashboard,
    routes_operators,
):
    app.include_router(module.router, prefix=settings.api_prefix)


# Root endpoint
@app.get("/")
async def root():
    """Root -- API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "health": f"{settings.api_prefix}/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tripdesk.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
