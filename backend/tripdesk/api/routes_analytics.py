"""
Package Analytics API Routes
View tracking, customer ratings and per-package / per-operator counters.
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import List, Optional
import logging

from tripdesk.core.rate_limiting import limiter, READ_LIMIT, TRACKING_LIMIT, WRITE_LIMIT
from tripdesk.db.database import get_db
from tripdesk.services.analytics_service import AnalyticsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


class ViewEvent(BaseModel):
    user_id: Optional[str] = None
    session_id: Optional[str] = Field(None, max_length=128)
    referrer: Optional[str] = None


class RatingCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    customer_id: Optional[str] = None
    booking_id: Optional[int] = None
    review_text: Optional[str] = None


@router.post("/packages/{package_id}/views")
@limiter.limit(TRACKING_LIMIT)
def track_view(request: Request, package_id: int, payload: Optional[ViewEvent] = None,
               db: Session = Depends(get_db)):
    """Record a package view. Client address and user agent come from the request."""
    event = payload or ViewEvent()
    AnalyticsService(db).track_view(
        package_id,
        user_id=event.user_id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        session_id=event.session_id,
        referrer=event.referrer or request.headers.get("referer"),
    )
    return {"success": True}


@router.post("/packages/{package_id}/ratings", status_code=201)
@limiter.limit(WRITE_LIMIT)
def add_rating(request: Request, package_id: int, payload: RatingCreate, db: Session = Depends(get_db)):
    return AnalyticsService(db).add_rating(
        package_id,
        payload.rating,
        customer_id=payload.customer_id,
        booking_id=payload.booking_id,
        review_text=payload.review_text,
    )


@router.post("/packages/{package_id}/refresh")
@limiter.limit(WRITE_LIMIT)
def refresh_package_analytics(request: Request, package_id: int, db: Session = Depends(get_db)):
    return AnalyticsService(db).refresh_package_analytics(package_id)


@router.get("/packages")
@limiter.limit(READ_LIMIT)
def get_multiple_package_analytics(request: Request, ids: List[int] = Query(...),
                                   db: Session = Depends(get_db)):
    return AnalyticsService(db).get_multiple_package_analytics(ids)


@router.get("/packages/{package_id}")
@limiter.limit(READ_LIMIT)
def get_package_analytics(request: Request, package_id: int, db: Session = Depends(get_db)):
    return AnalyticsService(db).get_package_analytics(package_id)


@router.get("/packages/{package_id}/views")
@limiter.limit(READ_LIMIT)
def get_package_views(request: Request, package_id: int, limit: int = Query(50, ge=1, le=500),
                      db: Session = Depends(get_db)):
    return AnalyticsService(db).get_package_views(package_id, limit)


@router.get("/packages/{package_id}/bookings")
@limiter.limit(READ_LIMIT)
def get_package_bookings(request: Request, package_id: int, limit: int = Query(50, ge=1, le=500),
                         db: Session = Depends(get_db)):
    return AnalyticsService(db).get_package_bookings(package_id, limit)


@router.get("/packages/{package_id}/ratings")
@limiter.limit(READ_LIMIT)
def get_package_ratings(request: Request, package_id: int, limit: int = Query(50, ge=1, le=500),
                        db: Session = Depends(get_db)):
    return AnalyticsService(db).get_package_ratings(package_id, limit)


@router.get("/operators/{tour_operator_id}")
@limiter.limit(READ_LIMIT)
def get_operator_analytics_summary(request: Request, tour_operator_id: int, db: Session = Depends(get_db)):
    return AnalyticsService(db).get_operator_analytics_summary(tour_operator_id)
