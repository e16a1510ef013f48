"""
Lead API Routes
Agent leads, package recommendations per lead, and the leads marketplace.
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date
import logging

from tripdesk.core.rate_limiting import (
    limiter, READ_LIMIT, RECOMMENDATION_LIMIT, SEARCH_LIMIT, WRITE_LIMIT,
)
from tripdesk.db.database import get_db
from tripdesk.services.lead_service import LeadService
from tripdesk.services.recommender import PackageRecommender

logger = logging.getLogger(__name__)

router = APIRouter(tags=["leads"])


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------

class LeadCreate(BaseModel):
    agent_id: str = Field(..., min_length=1, max_length=64)
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: str = Field(..., min_length=3, max_length=255)
    customer_phone: Optional[str] = Field(None, max_length=50)
    destination: str = Field(..., min_length=1, max_length=255)
    budget: float = Field(0.0, ge=0)
    trip_type: str
    travelers: int = Field(1, ge=1)
    duration: int = Field(1, ge=1, description="Trip length in days")
    preferred_start_date: Optional[date] = None
    preferred_end_date: Optional[date] = None
    preferences: List[str] = []
    source: Optional[str] = None
    notes: Optional[str] = None


class StatusUpdate(BaseModel):
    status: str


class MarketplaceLeadCreate(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: str = Field(..., min_length=3, max_length=255)
    customer_phone: Optional[str] = Field(None, max_length=50)
    destination: str = Field(..., min_length=1, max_length=255)
    trip_type: str
    budget: float = Field(0.0, ge=0)
    duration: int = Field(1, ge=1)
    travelers: int = Field(1, ge=1)
    preferred_start_date: Optional[date] = None
    preferred_end_date: Optional[date] = None
    preferences: List[str] = []
    lead_price: float = Field(0.0, ge=0)
    commission_rate: float = Field(10.0, ge=0, le=100)


class PurchaseRequest(BaseModel):
    agent_id: str = Field(..., min_length=1, max_length=64)


# ---------------------------------------------------------------------------
# Agent leads
# ---------------------------------------------------------------------------

@router.post("/leads", status_code=201)
@limiter.limit(WRITE_LIMIT)
def create_lead(request: Request, payload: LeadCreate, db: Session = Depends(get_db)):
    return LeadService(db).create_lead(payload.model_dump())


@router.get("/leads")
@limiter.limit(READ_LIMIT)
def get_leads(request: Request, agent_id: str = Query(..., min_length=1),
              status: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return LeadService(db).get_leads(agent_id, status)


@router.get("/leads/{lead_id}")
@limiter.limit(READ_LIMIT)
def get_lead(request: Request, lead_id: int, db: Session = Depends(get_db)):
    return LeadService(db).get_lead(lead_id)


@router.patch("/leads/{lead_id}/status")
@limiter.limit(WRITE_LIMIT)
def update_lead_status(request: Request, lead_id: int, payload: StatusUpdate,
                       db: Session = Depends(get_db)):
    return LeadService(db).update_lead_status(lead_id, payload.status)


@router.post("/leads/{lead_id}/recommendations")
@limiter.limit(RECOMMENDATION_LIMIT)
def generate_recommendations(request: Request, lead_id: int, db: Session = Depends(get_db)):
    """Score ACTIVE packages for the lead's destination and store the best."""
    return PackageRecommender(db).generate(lead_id)


@router.get("/leads/{lead_id}/recommendations")
@limiter.limit(READ_LIMIT)
def get_recommendations(request: Request, lead_id: int, db: Session = Depends(get_db)):
    return PackageRecommender(db).get_for_lead(lead_id)


# ---------------------------------------------------------------------------
# Marketplace
# ---------------------------------------------------------------------------

@router.get("/marketplace/leads")
@limiter.limit(SEARCH_LIMIT)
def get_marketplace_leads(
    request: Request,
    destination: Optional[str] = Query(None, description="Case-insensitive substring"),
    trip_type: Optional[str] = Query(None),
    min_budget: Optional[float] = Query(None, ge=0),
    max_budget: Optional[float] = Query(None, ge=0),
    db: Session = Depends(get_db),
):
    return LeadService(db).get_marketplace_leads(destination, trip_type, min_budget, max_budget)


@router.post("/marketplace/leads", status_code=201)
@limiter.limit(WRITE_LIMIT)
def create_marketplace_lead(request: Request, payload: MarketplaceLeadCreate,
                            db: Session = Depends(get_db)):
    return LeadService(db).create_marketplace_lead(payload.model_dump())


@router.post("/marketplace/leads/{marketplace_lead_id}/purchase", status_code=201)
@limiter.limit(WRITE_LIMIT)
def purchase_lead(request: Request, marketplace_lead_id: int, payload: PurchaseRequest,
                  db: Session = Depends(get_db)):
    return LeadService(db).purchase_lead(marketplace_lead_id, payload.agent_id)


@router.get("/marketplace/purchased")
@limiter.limit(READ_LIMIT)
def get_purchased_leads(request: Request, agent_id: str = Query(..., min_length=1),
                        db: Session = Depends(get_db)):
    return LeadService(db).get_purchased_leads(agent_id)
