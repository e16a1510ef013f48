"""
Booking Service
Customer bookings, agent booking requests toward operators, and the agent
commissions a confirmed request produces.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
from sqlalchemy.orm import Session
import logging
import secrets
import string

from tripdesk.core.config import settings
from tripdesk.core.exceptions import ConflictError, ValidationError
from tripdesk.db.models import (
    BOOKING_STATUSES, COMMISSION_STATUSES, PAYMENT_STATUSES, Booking, BookingRequest,
    Commission, Itinerary, ItineraryPackage, Package,
)
from tripdesk.db.repositories import check_choice, commit_or_raise, get_or_404
from tripdesk.db.serializers import model_to_dict
from tripdesk.services.analytics_service import AnalyticsService

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "TD-"
REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
REFERENCE_LENGTH = 8

BOOKING_FIELDS = {
    "customer_id", "customer_name", "customer_email", "customer_phone", "travel_agent_id",
    "number_of_people", "total_amount", "currency", "booking_date", "status",
    "payment_status", "payment_method", "special_requests", "notes",
}
RESPONSE_STATUSES = ("CONFIRMED", "DECLINED")


def generate_booking_reference() -> str:
    """TD- followed by 8 random upper-case letters / digits."""
    return REFERENCE_PREFIX + "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_LENGTH))


class BookingService:

    def __init__(self, db: Session):
        self.db = db
        self.analytics = AnalyticsService(db)

    # ------------------------------------------------------------------
    # Customer bookings
    # ------------------------------------------------------------------
    def _unused_reference(self) -> str:
        while True:
            reference = generate_booking_reference()
            exists = self.db.query(Booking.id).filter(Booking.booking_reference == reference).first()
            if exists is None:
                return reference

    def create_booking(self, data: Dict[str, Any]) -> Dict[str, Any]:
        package = get_or_404(self.db, Package, data.get("package_id"), "Package")
        check_choice(data.get("status"), BOOKING_STATUSES, "status")
        check_choice(data.get("payment_status"), PAYMENT_STATUSES, "payment_status")
        people = data.get("number_of_people") or 1
        if people < 1:
            raise ValidationError("number_of_people must be at least 1",
                                  {"field": "number_of_people", "value": people})

        values = {k: v for k, v in data.items() if k in BOOKING_FIELDS and v is not None}
        values.setdefault("total_amount", round((package.price_adult or 0.0) * people, 2))
        values.setdefault("currency", package.currency or "USD")
        values.setdefault("status", "PENDING")
        values.setdefault("payment_status", "PENDING")

        booking = Booking(package_id=package.id, booking_reference=self._unused_reference(), **values)
        self.db.add(booking)
        self.db.flush()
        self.analytics.refresh_package_analytics(package.id, commit=False)
        commit_or_raise(self.db, "create booking")
        self.db.refresh(booking)
        logger.info(f"Booking {booking.booking_reference} created for package {package.id}")
        return model_to_dict(booking)

    def get_booking(self, booking_id: int) -> Dict[str, Any]:
        booking = get_or_404(self.db, Booking, booking_id, "Booking")
        data = model_to_dict(booking)
        data["package"] = {"id": booking.package.id, "title": booking.package.title} if booking.package else None
        return data

    def get_bookings(
        self,
        customer_email: Optional[str] = None,
        customer_id: Optional[str] = None,
        travel_agent_id: Optional[str] = None,
        package_id: Optional[int] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        query = self.db.query(Booking)
        if customer_email:
            query = query.filter(Booking.customer_email == customer_email)
        if customer_id:
            query = query.filter(Booking.customer_id == customer_id)
        if travel_agent_id:
            query = query.filter(Booking.travel_agent_id == travel_agent_id)
        if package_id is not None:
            query = query.filter(Booking.package_id == package_id)
        if status:
            query = query.filter(Booking.status == status)
        rows = query.order_by(Booking.created_at.desc(), Booking.id.desc()).limit(limit).offset(offset).all()
        return [model_to_dict(r) for r in rows]

    def update_booking(self, booking_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        booking = get_or_404(self.db, Booking, booking_id, "Booking")
        check_choice(changes.get("status"), BOOKING_STATUSES, "status")
        check_choice(changes.get("payment_status"), PAYMENT_STATUSES, "payment_status")
        for key, value in changes.items():
            if key in BOOKING_FIELDS:
                setattr(booking, key, value)
        self.db.flush()
        self.analytics.refresh_package_analytics(booking.package_id, commit=False)
        commit_or_raise(self.db, "update booking")
        self.db.refresh(booking)
        logger.info(f"Booking {booking.booking_reference} updated: {sorted(changes.keys())}")
        return model_to_dict(booking)

    def cancel_booking(self, booking_id: int, reason: Optional[str] = None) -> Dict[str, Any]:
        note = f"Cancelled: {reason}" if reason else "Booking cancelled"
        return self.update_booking(booking_id, {"status": "CANCELLED", "notes": note})

    def confirm_booking(self, booking_id: int) -> Dict[str, Any]:
        return self.update_booking(booking_id, {"status": "CONFIRMED"})

    def complete_booking(self, booking_id: int) -> Dict[str, Any]:
        return self.update_booking(booking_id, {"status": "COMPLETED"})

    # ------------------------------------------------------------------
    # Booking requests (agent -> operator)
    # ------------------------------------------------------------------
    def create_booking_request(self, data: Dict[str, Any]) -> Dict[str, Any]:
        itinerary = get_or_404(self.db, Itinerary, data.get("itinerary_id"), "Itinerary")
        package = get_or_404(self.db, Package, data.get("package_id"), "Package")
        quantity = data.get("quantity") or 1
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", {"field": "quantity", "value": quantity})
        start, end = data.get("requested_start"), data.get("requested_end")
        if start and end and end < start:
            raise ValidationError("requested_end is before requested_start", {"field": "requested_end"})

        request = BookingRequest(
            itinerary_id=itinerary.id,
            package_id=package.id,
            operator_id=package.tour_operator_id,
            agent_id=data.get("agent_id") or itinerary.agent_id,
            quantity=quantity,
            requested_start=start,
            requested_end=end,
            special_requests=data.get("special_requests"),
            status="PENDING",
        )
        self.db.add(request)
        self.db.flush()

        line = self._itinerary_line(itinerary.id, package.id)
        if line is not None:
            line.booking_request_id = request.id

        commit_or_raise(self.db, "create booking request")
        self.db.refresh(request)
        logger.info(f"Booking request {request.id}: itinerary {itinerary.id}, package {package.id}")
        return model_to_dict(request)

    def get_booking_requests(self, agent_id: Optional[str] = None,
                             operator_id: Optional[int] = None,
                             status: Optional[str] = None) -> List[Dict[str, Any]]:
        query = self.db.query(BookingRequest)
        if agent_id:
            query = query.filter(BookingRequest.agent_id == agent_id)
        if operator_id is not None:
            query = query.filter(BookingRequest.operator_id == operator_id)
        if status:
            query = query.filter(BookingRequest.status == status)
        rows = query.order_by(BookingRequest.created_at.desc(), BookingRequest.id.desc()).all()
        return [model_to_dict(r) for r in rows]

    def respond_to_booking_request(
        self,
        request_id: int,
        status: str,
        message: Optional[str] = None,
        confirmed_price: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Operator answer to a PENDING request.
        CONFIRMED also confirms the itinerary line and opens a PENDING
        commission for the agent; DECLINED declines the line.
        """
        check_choice(status, RESPONSE_STATUSES, "status")
        request = get_or_404(self.db, BookingRequest, request_id, "Booking request")
        if request.status != "PENDING":
            raise ConflictError(f"Booking request already {request.status.lower()}",
                                {"request_id": request_id, "status": request.status})

        if confirmed_price is not None and confirmed_price < 0:
            raise ValidationError("confirmed_price must not be negative",
                                  {"field": "confirmed_price", "value": confirmed_price})

        line = self._itinerary_line(request.itinerary_id, request.package_id)
        request.status = status
        request.response_message = message

        if status == "CONFIRMED":
            if confirmed_price is None:
                confirmed_price = line.total_price if line is not None else 0.0
            request.confirmed_price = confirmed_price
            percentage = settings.default_commission_percentage
            self.db.add(Commission(
                agent_id=request.agent_id,
                itinerary_id=request.itinerary_id,
                booking_request_id=request.id,
                amount=round(confirmed_price * percentage / 100, 2),
                percentage=percentage,
                status="PENDING",
            ))

        if line is not None:
            line.status = status
            line.booking_request_id = request.id

        commit_or_raise(self.db, "respond to booking request")
        self.db.refresh(request)
        logger.info(f"Booking request {request_id} -> {status}")
        return model_to_dict(request)

    def _itinerary_line(self, itinerary_id: int, package_id: int) -> Optional[ItineraryPackage]:
        return self.db.query(ItineraryPackage).filter(
            ItineraryPackage.itinerary_id == itinerary_id,
            ItineraryPackage.package_id == package_id,
        ).order_by(ItineraryPackage.id.asc()).first()

    # ------------------------------------------------------------------
    # Commissions
    # ------------------------------------------------------------------
    def get_commissions(self, agent_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        query = self.db.query(Commission).filter(Commission.agent_id == agent_id)
        if status:
            query = query.filter(Commission.status == status)
        rows = query.order_by(Commission.created_at.desc(), Commission.id.desc()).all()
        return [model_to_dict(r) for r in rows]

    def update_commission_status(self, commission_id: int, status: str,
                                 notes: Optional[str] = None) -> Dict[str, Any]:
        check_choice(status, COMMISSION_STATUSES, "status")
        commission = get_or_404(self.db, Commission, commission_id, "Commission")
        commission.status = status
        if status == "PAID":
            commission.paid_at = datetime.utcnow()
        if notes is not None:
            commission.notes = notes
        commit_or_raise(self.db, "update commission")
        self.db.refresh(commission)
        return model_to_dict(commission)
