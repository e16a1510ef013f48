"""
Dashboard API Routes
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional
import logging

from tripdesk.core.rate_limiting import limiter, READ_LIMIT
from tripdesk.db.database import get_db
from tripdesk.services.dashboard_service import DashboardService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/operator")
@limiter.limit(READ_LIMIT)
def get_operator_dashboard(
    request: Request,
    tour_operator_id: Optional[int] = Query(None, description="Omit for marketplace-wide figures"),
    months: int = Query(6, ge=1, le=24),
    db: Session = Depends(get_db),
):
    return DashboardService(db).get_dashboard_overview(tour_operator_id, months)


@router.get("/operator/trends")
@limiter.limit(READ_LIMIT)
def get_monthly_trends(
    request: Request,
    tour_operator_id: Optional[int] = Query(None),
    months: int = Query(6, ge=1, le=24),
    db: Session = Depends(get_db),
):
    return DashboardService(db).get_monthly_trends(months, tour_operator_id)


@router.get("/agents/{agent_id}")
@limiter.limit(READ_LIMIT)
def get_agent_dashboard(request: Request, agent_id: str, db: Session = Depends(get_db)):
    return DashboardService(db).get_agent_dashboard(agent_id)
