"""
Dashboard Service
Aggregates for the operator and agent dashboards. Everything is computed
from live tables on each call.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from tripdesk.core.config import settings
from tripdesk.core.monitoring import track_performance
from tripdesk.db.models import Booking, Commission, Itinerary, Lead, Package
from tripdesk.db.serializers import itinerary_to_dict, model_to_dict
from tripdesk.services.package_service import PackageService

logger = logging.getLogger(__name__)

REVENUE_STATUSES = ("CONFIRMED", "COMPLETED")
CONVERTED_LEAD_STATUSES = ("BOOKED", "COMPLETED")
RECENT_LIMIT = 5


def month_keys(months: int, now: Optional[datetime] = None) -> List[str]:
    """The last `months` calendar months as YYYY-MM, oldest first."""
    now = now or datetime.utcnow()
    year, month = now.year, now.month
    keys = []
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


class DashboardService:

    def __init__(self, db: Session):
        self.db = db

    def _bookings_query(self, tour_operator_id: Optional[int] = None):
        query = self.db.query(Booking)
        if tour_operator_id is not None:
            query = query.join(Package, Booking.package_id == Package.id) \
                .filter(Package.tour_operator_id == tour_operator_id)
        return query

    # ------------------------------------------------------------------
    # Operator
    # ------------------------------------------------------------------
    @track_performance("Operator dashboard")
    def get_dashboard_overview(self, tour_operator_id: Optional[int] = None,
                               months: int = 6) -> Dict[str, Any]:
        return {
            "package_stats": PackageService(self.db).get_package_stats(tour_operator_id),
            "booking_stats": self.get_booking_stats(tour_operator_id),
            "recent_activity": self.get_recent_activity(tour_operator_id),
            "top_packages": self.get_top_packages(tour_operator_id),
            "monthly_trends": self.get_monthly_trends(months, tour_operator_id),
        }

    def get_booking_stats(self, tour_operator_id: Optional[int] = None) -> Dict[str, Any]:
        rows = self._bookings_query(tour_operator_id) \
            .with_entities(Booking.status, Booking.total_amount).all()
        earning = [amount or 0.0 for status, amount in rows if status in REVENUE_STATUSES]
        revenue = round(sum(earning), 2)
        return {
            "total_bookings": len(rows),
            "confirmed_bookings": sum(1 for status, _ in rows if status == "CONFIRMED"),
            "pending_bookings": sum(1 for status, _ in rows if status == "PENDING"),
            "cancelled_bookings": sum(1 for status, _ in rows if status == "CANCELLED"),
            "total_revenue": revenue,
            "average_booking_value": round(revenue / len(earning), 2) if earning else 0.0,
        }

    def get_recent_activity(self, tour_operator_id: Optional[int] = None,
                            limit: int = RECENT_LIMIT) -> List[Dict[str, Any]]:
        bookings = self._bookings_query(tour_operator_id) \
            .order_by(Booking.created_at.desc(), Booking.id.desc()).limit(limit).all()
        activity = []
        for booking in bookings:
            activity.append({
                "type": f"BOOKING_{booking.status}",
                "title": f"Booking {booking.booking_reference}",
                "description": f"{booking.customer_name} - {booking.package.title if booking.package else ''}",
                "timestamp": booking.created_at.isoformat() if booking.created_at else None,
                "booking_id": booking.id,
                "package_id": booking.package_id,
            })
        return activity

    def get_top_packages(self, tour_operator_id: Optional[int] = None,
                         limit: int = RECENT_LIMIT) -> List[Dict[str, Any]]:
        """Packages ranked by non-cancelled bookings, then revenue."""
        bookings = func.count(Booking.id).label("bookings")
        revenue = func.coalesce(func.sum(Booking.total_amount), 0.0).label("revenue")
        query = self.db.query(Package.id, Package.title, Package.rating, bookings, revenue) \
            .join(Booking, Booking.package_id == Package.id) \
            .filter(Booking.status != "CANCELLED")
        if tour_operator_id is not None:
            query = query.filter(Package.tour_operator_id == tour_operator_id)
        rows = query.group_by(Package.id, Package.title, Package.rating) \
            .order_by(bookings.desc(), revenue.desc(), Package.id.asc()) \
            .limit(limit).all()
        return [
            {"id": pid, "name": title, "rating": rating or 0.0,
             "bookings": count, "revenue": round(total or 0.0, 2)}
            for pid, title, rating, count, total in rows
        ]

    def get_monthly_trends(self, months: int = 6, tour_operator_id: Optional[int] = None,
                           now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Bookings and revenue per month, zero-filled for months without activity."""
        keys = month_keys(months, now)
        trends = {key: {"month": key, "revenue": 0.0, "bookings": 0} for key in keys}
        rows = self._bookings_query(tour_operator_id) \
            .with_entities(Booking.created_at, Booking.status, Booking.total_amount).all()
        for created_at, status, amount in rows:
            key = created_at.strftime("%Y-%m") if created_at else None
            if key not in trends:
                continue
            trends[key]["bookings"] += 1
            if status in REVENUE_STATUSES:
                trends[key]["revenue"] = round(trends[key]["revenue"] + (amount or 0.0), 2)
        return [trends[key] for key in keys]

    # ------------------------------------------------------------------
    # Agent
    # ------------------------------------------------------------------
    @track_performance("Agent dashboard")
    def get_agent_dashboard(self, agent_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        month_start = datetime(now.year, now.month, 1)

        lead_statuses = [s for (s,) in self.db.query(Lead.status).filter(Lead.agent_id == agent_id).all()]
        total_leads = len(lead_statuses)
        converted = sum(1 for s in lead_statuses if s in CONVERTED_LEAD_STATUSES)

        itinerary_statuses = [s for (s,) in self.db.query(Itinerary.status)
                              .filter(Itinerary.agent_id == agent_id).all()]

        monthly_commission = self.db.query(func.coalesce(func.sum(Commission.amount), 0.0)) \
            .filter(Commission.agent_id == agent_id, Commission.created_at >= month_start).scalar()
        total_revenue = self.db.query(func.coalesce(func.sum(Booking.total_amount), 0.0)) \
            .filter(Booking.travel_agent_id == agent_id, Booking.status.in_(REVENUE_STATUSES)).scalar()

        recent_leads = self.db.query(Lead).filter(Lead.agent_id == agent_id) \
            .order_by(Lead.created_at.desc(), Lead.id.desc()).limit(RECENT_LIMIT).all()
        recent_itineraries = self.db.query(Itinerary).filter(Itinerary.agent_id == agent_id) \
            .order_by(Itinerary.created_at.desc(), Itinerary.id.desc()).limit(RECENT_LIMIT).all()

        return {
            "stats": {
                "total_leads": total_leads,
                "active_leads": sum(1 for s in lead_statuses if s in settings.active_lead_statuses),
                "total_itineraries": len(itinerary_statuses),
                "booked_itineraries": sum(1 for s in itinerary_statuses if s == "BOOKED"),
                "monthly_commission": round(monthly_commission or 0.0, 2),
                "total_revenue": round(total_revenue or 0.0, 2),
                "conversion_rate": round(converted / total_leads * 100, 1) if total_leads else 0.0,
            },
            "recent_leads": [model_to_dict(lead) for lead in recent_leads],
            "recent_itineraries": [itinerary_to_dict(i, include_children=False) for i in recent_itineraries],
            "top_packages": self.get_top_packages(),
        }
