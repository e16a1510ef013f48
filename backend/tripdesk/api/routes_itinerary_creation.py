"""
Itinerary Builder API Routes
Multi-step itinerary creation: sessions, package search with lead
recommendations, day planning, budget tracking, validation and finalize.

Flow: PACKAGE_SELECTION -> DAY_PLANNING -> DETAILS -> REVIEW
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional
import logging

from tripdesk.core.rate_limiting import limiter, READ_LIMIT, SEARCH_LIMIT, WRITE_LIMIT
from tripdesk.db.database import get_db
from tripdesk.services.itinerary_creation_service import ItineraryCreationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/itinerary-builder", tags=["itinerary-builder"])


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------

class SessionCreate(BaseModel):
    lead_id: int
    agent_id: str = Field(..., min_length=1, max_length=64)


class SessionUpdate(BaseModel):
    status: Optional[str] = None
    selected_packages: Optional[List[Dict[str, Any]]] = None
    day_assignments: Optional[List[Dict[str, Any]]] = None


class PackageSearch(BaseModel):
    lead_id: Optional[int] = None
    search_term: Optional[str] = None
    package_types: Optional[List[str]] = None
    destinations: Optional[List[str]] = None
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    min_duration: Optional[int] = Field(None, ge=0)
    max_duration: Optional[int] = Field(None, ge=0)
    operators: Optional[List[int]] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    sort_by: Literal["relevance", "price", "rating", "duration", "name"] = "relevance"
    sort_order: Literal["asc", "desc"] = "desc"


class PackageRef(BaseModel):
    package_id: int


class QuantityUpdate(BaseModel):
    quantity: int


class DayAssignment(BaseModel):
    package_id: int
    day_id: str = Field(..., min_length=1)


class ActivityIn(BaseModel):
    activity_name: str = Field(..., min_length=1, max_length=255)
    activity_type: str = "CUSTOM"
    time_slot: str = ""
    duration_hours: float = Field(0.0, ge=0)
    cost: float = Field(0.0, ge=0)
    location: str = ""
    notes: Optional[str] = None


class ActivityReorder(BaseModel):
    activity_ids: List[str]


class StepChange(BaseModel):
    action: Literal["next", "previous", "go_to"]
    step: Optional[str] = None


class FinalizeRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    notes: Optional[str] = None


class DayActivities(BaseModel):
    activities: List[Dict[str, Any]]


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@router.post("/sessions", status_code=201)
@limiter.limit(WRITE_LIMIT)
def create_session(request: Request, payload: SessionCreate, db: Session = Depends(get_db)):
    return ItineraryCreationService(db).create_session(payload.lead_id, payload.agent_id)


@router.get("/sessions/{session_id}")
@limiter.limit(READ_LIMIT)
def get_session(request: Request, session_id: int, db: Session = Depends(get_db)):
    return ItineraryCreationService(db).get_session(session_id)


@router.patch("/sessions/{session_id}")
@limiter.limit(WRITE_LIMIT)
def update_session(request: Request, session_id: int, payload: SessionUpdate,
                   db: Session = Depends(get_db)):
    return ItineraryCreationService(db).update_session(
        session_id,
        status=payload.status,
        selected_packages=payload.selected_packages,
        day_assignments=payload.day_assignments,
    )


# ---------------------------------------------------------------------------
# Package search
# ---------------------------------------------------------------------------

@router.post("/packages/search")
@limiter.limit(SEARCH_LIMIT)
def search_packages(request: Request, payload: PackageSearch, db: Session = Depends(get_db)):
    """Active packages, each flagged with the lead's stored recommendation."""
    filters = payload.model_dump(exclude={"lead_id"})
    return ItineraryCreationService(db).search_packages(filters, payload.lead_id)


# ---------------------------------------------------------------------------
# Package selection
# ---------------------------------------------------------------------------

@router.post("/sessions/{session_id}/packages")
@limiter.limit(WRITE_LIMIT)
def add_package(request: Request, session_id: int, payload: PackageRef,
                db: Session = Depends(get_db)):
    return ItineraryCreationService(db).add_package(session_id, payload.package_id)


@router.delete("/sessions/{session_id}/packages/{package_id}")
@limiter.limit(WRITE_LIMIT)
def remove_package(request: Request, session_id: int, package_id: int,
                   db: Session = Depends(get_db)):
    return ItineraryCreationService(db).remove_package(session_id, package_id)


@router.patch("/sessions/{session_id}/packages/{package_id}")
@limiter.limit(WRITE_LIMIT)
def update_package_quantity(request: Request, session_id: int, package_id: int,
                            payload: QuantityUpdate, db: Session = Depends(get_db)):
    return ItineraryCreationService(db).update_package_quantity(session_id, package_id, payload.quantity)


# ---------------------------------------------------------------------------
# Day planning
# ---------------------------------------------------------------------------

@router.post("/sessions/{session_id}/days")
@limiter.limit(WRITE_LIMIT)
def build_days(request: Request, session_id: int, db: Session = Depends(get_db)):
    return ItineraryCreationService(db).build_days(session_id)


@router.post("/sessions/{session_id}/assignments")
@limiter.limit(WRITE_LIMIT)
def assign_package_to_day(request: Request, session_id: int, payload: DayAssignment,
                          db: Session = Depends(get_db)):
    return ItineraryCreationService(db).assign_package_to_day(session_id, payload.package_id, payload.day_id)


@router.post("/sessions/{session_id}/assignments/remove")
@limiter.limit(WRITE_LIMIT)
def remove_package_from_day(request: Request, session_id: int, payload: DayAssignment,
                            db: Session = Depends(get_db)):
    return ItineraryCreationService(db).remove_package_from_day(session_id, payload.package_id, payload.day_id)


@router.post("/sessions/{session_id}/days/{day_id}/activities")
@limiter.limit(WRITE_LIMIT)
def add_custom_activity(request: Request, session_id: int, day_id: str, payload: ActivityIn,
                        db: Session = Depends(get_db)):
    return ItineraryCreationService(db).add_custom_activity(session_id, day_id, payload.model_dump())


@router.put("/sessions/{session_id}/days/{day_id}/activities/order")
@limiter.limit(WRITE_LIMIT)
def reorder_activities(request: Request, session_id: int, day_id: str, payload: ActivityReorder,
                       db: Session = Depends(get_db)):
    return ItineraryCreationService(db).reorder_activities(session_id, day_id, payload.activity_ids)


@router.patch("/sessions/{session_id}/activities/{activity_id}")
@limiter.limit(WRITE_LIMIT)
def update_activity(request: Request, session_id: int, activity_id: str,
                    payload: Dict[str, Any], db: Session = Depends(get_db)):
    return ItineraryCreationService(db).update_activity(session_id, activity_id, payload)


@router.delete("/sessions/{session_id}/activities/{activity_id}")
@limiter.limit(WRITE_LIMIT)
def remove_activity(request: Request, session_id: int, activity_id: str,
                    db: Session = Depends(get_db)):
    return ItineraryCreationService(db).remove_activity(session_id, activity_id)


# ---------------------------------------------------------------------------
# Steps, budget, validation, finalize
# ---------------------------------------------------------------------------

@router.post("/sessions/{session_id}/step")
@limiter.limit(WRITE_LIMIT)
def change_step(request: Request, session_id: int, payload: StepChange,
                db: Session = Depends(get_db)):
    return ItineraryCreationService(db).change_step(session_id, payload.action, payload.step)


@router.get("/sessions/{session_id}/budget")
@limiter.limit(READ_LIMIT)
def get_budget(request: Request, session_id: int, db: Session = Depends(get_db)):
    return ItineraryCreationService(db).get_budget(session_id)


@router.get("/sessions/{session_id}/validation")
@limiter.limit(READ_LIMIT)
def validate_session(request: Request, session_id: int, db: Session = Depends(get_db)):
    return ItineraryCreationService(db).validate_session(session_id)


@router.post("/sessions/{session_id}/finalize", status_code=201)
@limiter.limit(WRITE_LIMIT)
def finalize_session(request: Request, session_id: int, payload: Optional[FinalizeRequest] = None,
                     db: Session = Depends(get_db)):
    details = payload.model_dump(exclude_none=True) if payload else {}
    return ItineraryCreationService(db).finalize_session(session_id, details)


# ---------------------------------------------------------------------------
# Stored itinerary days and lead data
# ---------------------------------------------------------------------------

@router.get("/days/{day_id}/activities")
@limiter.limit(READ_LIMIT)
def get_day_activities(request: Request, day_id: int, db: Session = Depends(get_db)):
    return ItineraryCreationService(db).get_day_activities(day_id)


@router.put("/days/{day_id}/activities")
@limiter.limit(WRITE_LIMIT)
def save_day_activities(request: Request, day_id: int, payload: DayActivities,
                        db: Session = Depends(get_db)):
    return ItineraryCreationService(db).save_day_activities(day_id, payload.activities)


@router.get("/leads/{lead_id}")
@limiter.limit(READ_LIMIT)
def get_lead_data(request: Request, lead_id: int, db: Session = Depends(get_db)):
    return ItineraryCreationService(db).get_lead_data(lead_id)
