"""
Itinerary API Routes
Agent-facing itinerary records: create, list, status changes, sending and
custom line items.
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional
import datetime as dt
import logging

from tripdesk.core.rate_limiting import limiter, READ_LIMIT, WRITE_LIMIT
from tripdesk.db.database import get_db
from tripdesk.db.serializers import itinerary_to_dict
from tripdesk.services.itinerary_service import ItineraryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/itineraries", tags=["itineraries"])


class DayIn(BaseModel):
    date: Optional[dt.date] = None
    location: Optional[str] = None
    accommodation: Optional[str] = None
    meals: List[str] = []
    transportation: Optional[str] = None
    notes: Optional[str] = None
    activities: List[Dict[str, Any]] = []


class SelectedPackageIn(BaseModel):
    package_id: int
    package_name: Optional[str] = None
    quantity: int = Field(1, ge=1)
    price: Optional[float] = Field(None, ge=0)
    total_price: Optional[float] = Field(None, ge=0)


class ItineraryCreate(BaseModel):
    lead_id: int
    agent_id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    notes: Optional[str] = None
    total_cost: float = Field(0.0, ge=0)
    agent_commission: float = Field(0.0, ge=0)
    customer_price: float = Field(0.0, ge=0)
    days: List[DayIn] = []
    selected_packages: List[SelectedPackageIn] = []


class StatusUpdate(BaseModel):
    status: str


class SendRequest(BaseModel):
    method: Literal["email", "whatsapp"]


class CustomItemIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: str = "OTHER"
    cost: float = Field(0.0, ge=0)
    supplier: Optional[str] = None
    notes: Optional[str] = None


@router.post("", status_code=201)
@limiter.limit(WRITE_LIMIT)
def create_itinerary(request: Request, payload: ItineraryCreate, db: Session = Depends(get_db)):
    itinerary = ItineraryService(db).create_itinerary(payload.model_dump())
    return itinerary_to_dict(itinerary)


@router.get("")
@limiter.limit(READ_LIMIT)
def get_itineraries(request: Request, agent_id: str = Query(..., min_length=1),
                    status: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return ItineraryService(db).get_itineraries(agent_id, status)


@router.get("/{itinerary_id}")
@limiter.limit(READ_LIMIT)
def get_itinerary(request: Request, itinerary_id: int, db: Session = Depends(get_db)):
    """Itinerary with days, day activities, packages and custom items."""
    return ItineraryService(db).get_itinerary(itinerary_id)


@router.patch("/{itinerary_id}/status")
@limiter.limit(WRITE_LIMIT)
def update_itinerary_status(request: Request, itinerary_id: int, payload: StatusUpdate,
                            db: Session = Depends(get_db)):
    return ItineraryService(db).update_itinerary_status(itinerary_id, payload.status)


@router.post("/{itinerary_id}/send")
@limiter.limit(WRITE_LIMIT)
def send_itinerary(request: Request, itinerary_id: int, payload: SendRequest,
                   db: Session = Depends(get_db)):
    return ItineraryService(db).send_itinerary(itinerary_id, payload.method)


@router.post("/{itinerary_id}/custom-items", status_code=201)
@limiter.limit(WRITE_LIMIT)
def add_custom_item(request: Request, itinerary_id: int, payload: CustomItemIn,
                    db: Session = Depends(get_db)):
    return ItineraryService(db).add_custom_item(itinerary_id, payload.model_dump())
