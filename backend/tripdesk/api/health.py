"""
Health check routes.
Readiness / liveness probes for load balancers and orchestrators.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from datetime import datetime
import time
import logging

from tripdesk.db.database import get_db
from tripdesk.db.repositories import PackageRepository
from tripdesk.core.config import settings
from tripdesk.core.rate_limiting import limiter, HEALTH_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])

# Track startup time for uptime reporting
_STARTUP_TIME = time.time()


@router.get("/")
@limiter.limit(HEALTH_LIMIT)
async def health_check(request: Request, db: Session = Depends(get_db)):
    """Database connectivity, package count and uptime."""
    health = {
        "status": "healthy",
        "version": settings.app_version,
        "database": "unavailable",
        "packages": 0,
        "uptime_seconds": int(time.time() - _STARTUP_TIME),
        "timestamp": datetime.utcnow().isoformat(),
    }

    try:
        health["packages"] = PackageRepository(db).count_packages()
        health["database"] = "available"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        health["status"] = "degraded"

    return health


@router.get("/ready")
@limiter.limit(HEALTH_LIMIT)
async def readiness_check(request: Request, db: Session = Depends(get_db)):
    """Ready only when the database answers."""
    try:
        db.execute(text("SELECT 1"))
        return {"ready": True, "timestamp": datetime.utcnow().isoformat()}
    except SQLAlchemyError as e:
        logger.error(f"Readiness check failed: {e}")
        return {"ready": False, "error": "database unavailable", "timestamp": datetime.utcnow().isoformat()}


@router.get("/live")
async def liveness_check():
    """Liveness probe. Returns 200 if service is running."""
    return {"alive": True, "uptime_seconds": int(time.time() - _STARTUP_TIME), "timestamp": datetime.utcnow().isoformat()}
