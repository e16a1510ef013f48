"""
Package Analytics Service
Views, ratings and the denormalised per-package counters in
package_analytics.

`refresh_package_analytics` recomputes every counter from the source
tables (views, non-cancelled bookings, ratings) and mirrors customer ratings
back onto the package row, so counters never drift for long.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from tripdesk.core.exceptions import ValidationError
from tripdesk.db.models import Booking, Package, PackageAnalytics, PackageRating, PackageView
from tripdesk.db.repositories import commit_or_raise, get_or_404
from tripdesk.db.serializers import model_to_dict

logger = logging.getLogger(__name__)

EXCLUDED_BOOKING_STATUSES = ("CANCELLED",)


def _empty_analytics(package_id: int) -> Dict[str, Any]:
    return {
        "package_id": package_id,
        "total_views": 0,
        "total_bookings": 0,
        "total_revenue": 0.0,
        "average_rating": 0.0,
        "total_ratings": 0,
        "last_viewed_at": None,
        "last_booking_at": None,
        "last_updated_at": None,
    }


class AnalyticsService:

    def __init__(self, db: Session):
        self.db = db

    def _row(self, package_id: int) -> PackageAnalytics:
        row = self.db.query(PackageAnalytics).filter(PackageAnalytics.package_id == package_id).first()
        if row is None:
            row = PackageAnalytics(package_id=package_id, total_views=0, total_bookings=0,
                                   total_revenue=0.0, average_rating=0.0, total_ratings=0)
            self.db.add(row)
        return row

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------
    def track_view(
        self,
        package_id: int,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        session_id: Optional[str] = None,
        referrer: Optional[str] = None,
    ) -> None:
        get_or_404(self.db, Package, package_id, "Package")
        now = datetime.utcnow()
        self.db.add(PackageView(
            package_id=package_id,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            session_id=session_id,
            referrer=referrer,
            viewed_at=now,
        ))
        row = self._row(package_id)
        row.total_views = (row.total_views or 0) + 1
        row.last_viewed_at = now
        row.last_updated_at = now
        commit_or_raise(self.db, "track package view")

    def add_rating(
        self,
        package_id: int,
        rating: int,
        customer_id: Optional[str] = None,
        booking_id: Optional[int] = None,
        review_text: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5", {"field": "rating", "value": rating})
        get_or_404(self.db, Package, package_id, "Package")

        verified = False
        if booking_id is not None:
            booking = get_or_404(self.db, Booking, booking_id, "Booking")
            if booking.package_id != package_id:
                raise ValidationError("Booking does not belong to this package",
                                      {"field": "booking_id", "value": booking_id})
            verified = True

        entry = PackageRating(
            package_id=package_id,
            customer_id=customer_id,
            booking_id=booking_id,
            rating=rating,
            review_text=review_text,
            is_verified=verified,
        )
        self.db.add(entry)
        self.db.flush()
        self._recompute(package_id)
        commit_or_raise(self.db, "add rating")
        self.db.refresh(entry)
        return model_to_dict(entry)

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------
    def _recompute(self, package_id: int) -> PackageAnalytics:
        views, last_viewed = self.db.query(func.count(PackageView.id), func.max(PackageView.viewed_at)) \
            .filter(PackageView.package_id == package_id).one()
        bookings, revenue, last_booking = self.db.query(
            func.count(Booking.id), func.sum(Booking.total_amount), func.max(Booking.created_at)
        ).filter(Booking.package_id == package_id,
                 Booking.status.notin_(EXCLUDED_BOOKING_STATUSES)).one()
        ratings, average = self.db.query(func.count(PackageRating.id), func.avg(PackageRating.rating)) \
            .filter(PackageRating.package_id == package_id).one()

        row = self._row(package_id)
        row.total_views = views or 0
        row.last_viewed_at = last_viewed
        row.total_bookings = bookings or 0
        row.total_revenue = round(revenue or 0.0, 2)
        row.last_booking_at = last_booking
        row.total_ratings = ratings or 0
        row.average_rating = round(average or 0.0, 2)
        row.last_updated_at = datetime.utcnow()

        # Operator-entered ratings stay until customers have rated the package
        if row.total_ratings:
            package = self.db.get(Package, package_id)
            package.rating = row.average_rating
            package.review_count = row.total_ratings
        return row

    def refresh_package_analytics(self, package_id: int, commit: bool = True) -> Dict[str, Any]:
        get_or_404(self.db, Package, package_id, "Package")
        self.db.flush()
        row = self._recompute(package_id)
        if commit:
            commit_or_raise(self.db, "refresh package analytics")
        logger.debug(f"Refreshed analytics for package {package_id}")
        return model_to_dict(row)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_package_analytics(self, package_id: int) -> Dict[str, Any]:
        get_or_404(self.db, Package, package_id, "Package")
        row = self.db.query(PackageAnalytics).filter(PackageAnalytics.package_id == package_id).first()
        return model_to_dict(row) if row else _empty_analytics(package_id)

    def get_multiple_package_analytics(self, package_ids: List[int]) -> List[Dict[str, Any]]:
        if not package_ids:
            return []
        rows = self.db.query(PackageAnalytics) \
            .filter(PackageAnalytics.package_id.in_(package_ids)) \
            .order_by(PackageAnalytics.package_id.asc()).all()
        return [model_to_dict(r) for r in rows]

    def get_package_views(self, package_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        rows = self.db.query(PackageView).filter(PackageView.package_id == package_id) \
            .order_by(PackageView.viewed_at.desc(), PackageView.id.desc()).limit(limit).all()
        return [model_to_dict(r) for r in rows]

    def get_package_bookings(self, package_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        rows = self.db.query(Booking).filter(Booking.package_id == package_id) \
            .order_by(Booking.created_at.desc(), Booking.id.desc()).limit(limit).all()
        return [model_to_dict(r) for r in rows]

    def get_package_ratings(self, package_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        rows = self.db.query(PackageRating).filter(PackageRating.package_id == package_id) \
            .order_by(PackageRating.created_at.desc(), PackageRating.id.desc()).limit(limit).all()
        return [model_to_dict(r) for r in rows]

    def get_operator_analytics_summary(self, tour_operator_id: int) -> Dict[str, Any]:
        package_ids = [pid for (pid,) in self.db.query(Package.id)
                       .filter(Package.tour_operator_id == tour_operator_id).all()]
        rows = self.db.query(PackageAnalytics) \
            .filter(PackageAnalytics.package_id.in_(package_ids)).all() if package_ids else []
        return {
            "total_views": sum(r.total_views or 0 for r in rows),
            "total_bookings": sum(r.total_bookings or 0 for r in rows),
            "total_revenue": round(sum(r.total_revenue or 0.0 for r in rows), 2),
            "average_rating": round(sum(r.average_rating or 0.0 for r in rows) / len(rows), 2) if rows else 0.0,
            "total_packages": len(package_ids),
        }
