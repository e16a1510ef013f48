"""
Rate Limiting & Throttling
Per-IP request throttling with slowapi.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse
import logging

from tripdesk.core.config import settings

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


# Rate limit definitions
READ_LIMIT = "240/minute"
WRITE_LIMIT = "60/minute"
SEARCH_LIMIT = "100/minute"
RECOMMENDATION_LIMIT = "30/minute"
TRACKING_LIMIT = "600/minute"
HEALTH_LIMIT = "1000/minute"


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 in the standard result shape when a limit is exceeded."""
    client_host = request.client.host if request.client else "unknown"
    logger.warning(f"Rate limit exceeded for {client_host}: {request.url.path}")

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "Rate limit exceeded. Please slow down.",
            "retry_after": 60,
        },
        headers={"Retry-After": "60"},
    )
