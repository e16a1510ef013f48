"""
Booking API Routes
Customer bookings, agent-to-operator booking requests and agent commissions.
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Literal, Optional
from datetime import date
import logging

from tripdesk.core.rate_limiting import limiter, READ_LIMIT, WRITE_LIMIT
from tripdesk.db.database import get_db
from tripdesk.services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings"])


class BookingCreate(BaseModel):
    package_id: int
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: str = Field(..., min_length=3, max_length=255)
    customer_phone: Optional[str] = Field(None, max_length=50)
    customer_id: Optional[str] = None
    travel_agent_id: Optional[str] = None
    number_of_people: int = Field(1, ge=1)
    total_amount: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    booking_date: Optional[date] = None
    payment_method: Optional[str] = None
    special_requests: Optional[str] = None
    notes: Optional[str] = None


class BookingUpdate(BaseModel):
    customer_name: Optional[str] = Field(None, min_length=1, max_length=255)
    customer_phone: Optional[str] = None
    number_of_people: Optional[int] = Field(None, ge=1)
    total_amount: Optional[float] = Field(None, ge=0)
    booking_date: Optional[date] = None
    status: Optional[str] = None
    payment_status: Optional[str] = None
    payment_method: Optional[str] = None
    special_requests: Optional[str] = None
    notes: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class BookingRequestCreate(BaseModel):
    itinerary_id: int
    package_id: int
    agent_id: Optional[str] = None
    quantity: int = Field(1, ge=1)
    requested_start: Optional[date] = None
    requested_end: Optional[date] = None
    special_requests: Optional[str] = None


class BookingRequestResponse(BaseModel):
    status: Literal["CONFIRMED", "DECLINED"]
    message: Optional[str] = None
    confirmed_price: Optional[float] = None


class CommissionUpdate(BaseModel):
    status: str
    notes: Optional[str] = None


# ---------------------------------------------------------------------------
# Customer bookings
# ---------------------------------------------------------------------------

@router.post("/bookings", status_code=201)
@limiter.limit(WRITE_LIMIT)
def create_booking(request: Request, payload: BookingCreate, db: Session = Depends(get_db)):
    return BookingService(db).create_booking(payload.model_dump())


@router.get("/bookings")
@limiter.limit(READ_LIMIT)
def get_bookings(
    request: Request,
    customer_email: Optional[str] = Query(None),
    customer_id: Optional[str] = Query(None),
    travel_agent_id: Optional[str] = Query(None),
    package_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return BookingService(db).get_bookings(
        customer_email=customer_email,
        customer_id=customer_id,
        travel_agent_id=travel_agent_id,
        package_id=package_id,
        status=status,
        limit=limit,
        offset=offset,
    )


@router.get("/bookings/{booking_id}")
@limiter.limit(READ_LIMIT)
def get_booking(request: Request, booking_id: int, db: Session = Depends(get_db)):
    return BookingService(db).get_booking(booking_id)


@router.patch("/bookings/{booking_id}")
@limiter.limit(WRITE_LIMIT)
def update_booking(request: Request, booking_id: int, payload: BookingUpdate,
                   db: Session = Depends(get_db)):
    return BookingService(db).update_booking(booking_id, payload.model_dump(exclude_unset=True))


@router.post("/bookings/{booking_id}/cancel")
@limiter.limit(WRITE_LIMIT)
def cancel_booking(request: Request, booking_id: int, payload: Optional[CancelRequest] = None,
                   db: Session = Depends(get_db)):
    reason = payload.reason if payload else None
    return BookingService(db).cancel_booking(booking_id, reason)


@router.post("/bookings/{booking_id}/confirm")
@limiter.limit(WRITE_LIMIT)
def confirm_booking(request: Request, booking_id: int, db: Session = Depends(get_db)):
    return BookingService(db).confirm_booking(booking_id)


@router.post("/bookings/{booking_id}/complete")
@limiter.limit(WRITE_LIMIT)
def complete_booking(request: Request, booking_id: int, db: Session = Depends(get_db)):
    return BookingService(db).complete_booking(booking_id)


# ---------------------------------------------------------------------------
# Booking requests
# ---------------------------------------------------------------------------

@router.post("/booking-requests", status_code=201)
@limiter.limit(WRITE_LIMIT)
def create_booking_request(request: Request, payload: BookingRequestCreate,
                           db: Session = Depends(get_db)):
    return BookingService(db).create_booking_request(payload.model_dump())


@router.get("/booking-requests")
@limiter.limit(READ_LIMIT)
def get_booking_requests(
    request: Request,
    agent_id: Optional[str] = Query(None),
    operator_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return BookingService(db).get_booking_requests(agent_id, operator_id, status)


@router.post("/booking-requests/{request_id}/respond")
@limiter.limit(WRITE_LIMIT)
def respond_to_booking_request(request: Request, request_id: int, payload: BookingRequestResponse,
                               db: Session = Depends(get_db)):
    return BookingService(db).respond_to_booking_request(
        request_id, payload.status, payload.message, payload.confirmed_price,
    )


# ---------------------------------------------------------------------------
# Commissions
# ---------------------------------------------------------------------------

@router.get("/commissions")
@limiter.limit(READ_LIMIT)
def get_commissions(request: Request, agent_id: str = Query(..., min_length=1),
                    status: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return BookingService(db).get_commissions(agent_id, status)


@router.patch("/commissions/{commission_id}")
@limiter.limit(WRITE_LIMIT)
def update_commission_status(request: Request, commission_id: int, payload: CommissionUpdate,
                             db: Session = Depends(get_db)):
    return BookingService(db).update_commission_status(commission_id, payload.status, payload.notes)
