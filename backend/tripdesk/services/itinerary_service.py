"""
Itinerary Service
Agent-side itinerary records: creation with days and packages, status
changes, sending to the client, and custom (non-package) line items.
"""

from typing import Any, Dict, List, Optional
from datetime import date, datetime
from sqlalchemy.orm import Session
import logging

from tripdesk.core.exceptions import ValidationError
from tripdesk.db.models import (
    ACTIVITY_TYPES, CUSTOM_ITEM_TYPES, ITINERARY_STATUSES, CustomItineraryItem, Itinerary,
    ItineraryDay, ItineraryDayActivity, ItineraryPackage, Lead, Package,
)
from tripdesk.db.repositories import check_choice, commit_or_raise, get_or_404
from tripdesk.db.serializers import itinerary_to_dict, model_to_dict

logger = logging.getLogger(__name__)

SEND_METHODS = ("email", "whatsapp")


def _as_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


class ItineraryService:

    def __init__(self, db: Session):
        self.db = db

    def create_itinerary(self, data: Dict[str, Any], commit: bool = True) -> Itinerary:
        """
        Create a DRAFT itinerary with its days (and their activities) and
        selected packages. With commit=False the caller owns the transaction.
        """
        lead = get_or_404(self.db, Lead, data.get("lead_id"), "Lead")
        if not (data.get("title") or "").strip():
            raise ValidationError("Itinerary title is required", {"field": "title"})
        start, end = _as_date(data.get("start_date")), _as_date(data.get("end_date"))
        if start and end and end < start:
            raise ValidationError("end_date is before start_date", {"field": "end_date"})

        days = data.get("days") or []
        itinerary = Itinerary(
            lead_id=lead.id,
            agent_id=data.get("agent_id") or lead.agent_id,
            title=data["title"].strip(),
            description=data.get("description"),
            start_date=start,
            end_date=end,
            duration_days=len(days),
            total_cost=data.get("total_cost") or 0.0,
            agent_commission=data.get("agent_commission") or 0.0,
            customer_price=data.get("customer_price") or 0.0,
            notes=data.get("notes"),
            status="DRAFT",
        )
        self.db.add(itinerary)
        self.db.flush()

        for index, day_data in enumerate(days):
            day = ItineraryDay(
                itinerary_id=itinerary.id,
                day_number=index + 1,
                date=_as_date(day_data.get("date")),
                location=day_data.get("location"),
                accommodation=day_data.get("accommodation"),
                meals=list(day_data.get("meals") or []),
                transportation=day_data.get("transportation"),
                notes=day_data.get("notes"),
            )
            for order, act in enumerate(day_data.get("activities") or []):
                day.activities.append(self.activity_row(act, order))
            itinerary.days.append(day)

        for selection in data.get("selected_packages") or []:
            itinerary.packages.append(self._package_row(selection))

        if commit:
            commit_or_raise(self.db, "create itinerary")
            self.db.refresh(itinerary)
            logger.info(f"Created itinerary {itinerary.id} for lead {lead.id} "
                        f"({len(days)} days, {len(itinerary.packages)} packages)")
        return itinerary

    def activity_row(self, act: Dict[str, Any], order: int) -> ItineraryDayActivity:
        activity_type = act.get("activity_type") or "CUSTOM"
        check_choice(activity_type, ACTIVITY_TYPES, "activity_type")
        package_id = act.get("package_id")
        return ItineraryDayActivity(
            package_id=int(package_id) if package_id is not None else None,
            activity_name=act.get("activity_name") or "Activity",
            activity_type=activity_type,
            time_slot=act.get("time_slot") or "",
            duration_hours=act.get("duration_hours") or 0.0,
            cost=act.get("cost") or 0.0,
            location=act.get("location") or "",
            notes=act.get("notes"),
            order_index=order,
        )

    def _package_row(self, selection: Dict[str, Any]) -> ItineraryPackage:
        package = get_or_404(self.db, Package, selection.get("package_id"), "Package")
        quantity = selection.get("quantity") or 1
        unit_price = selection.get("price", selection.get("unit_price"))
        if unit_price is None:
            unit_price = package.price_adult or 0.0
        return ItineraryPackage(
            package_id=package.id,
            package_name=selection.get("package_name") or package.title,
            operator_id=package.tour_operator_id,
            operator_name=package.tour_operator.company_name if package.tour_operator else None,
            quantity=quantity,
            unit_price=unit_price,
            total_price=selection.get("total_price") or round(unit_price * quantity, 2),
            status="PENDING",
        )

    def get_itineraries(self, agent_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        query = self.db.query(Itinerary).filter(Itinerary.agent_id == agent_id)
        if status:
            query = query.filter(Itinerary.status == status)
        rows = query.order_by(Itinerary.created_at.desc(), Itinerary.id.desc()).all()
        return [itinerary_to_dict(i, include_children=False) for i in rows]

    def get_itinerary(self, itinerary_id: int) -> Dict[str, Any]:
        return itinerary_to_dict(get_or_404(self.db, Itinerary, itinerary_id, "Itinerary"))

    def update_itinerary_status(self, itinerary_id: int, status: str) -> Dict[str, Any]:
        check_choice(status, ITINERARY_STATUSES, "status")
        itinerary = get_or_404(self.db, Itinerary, itinerary_id, "Itinerary")
        itinerary.status = status
        commit_or_raise(self.db, "update itinerary status")
        logger.info(f"Itinerary {itinerary_id} -> {status}")
        return itinerary_to_dict(itinerary, include_children=False)

    def send_itinerary(self, itinerary_id: int, method: str) -> Dict[str, Any]:
        """Mark the itinerary SENT through one channel. Delivery itself happens elsewhere."""
        if method not in SEND_METHODS:
            raise ValidationError(f"Unsupported send method: {method}", {"field": "method", "value": method})
        itinerary = get_or_404(self.db, Itinerary, itinerary_id, "Itinerary")

        now = datetime.utcnow()
        itinerary.status = "SENT"
        itinerary.sent_at = now
        if method == "email":
            itinerary.sent_via_email = True
            itinerary.email_sent_at = now
        else:
            itinerary.sent_via_whatsapp = True
            itinerary.whatsapp_sent_at = now

        commit_or_raise(self.db, f"send itinerary via {method}")
        logger.info(f"Itinerary {itinerary_id} sent via {method}")
        return itinerary_to_dict(itinerary, include_children=False)

    def add_custom_item(self, itinerary_id: int, item: Dict[str, Any]) -> Dict[str, Any]:
        itinerary = get_or_404(self.db, Itinerary, itinerary_id, "Itinerary")
        item_type = item.get("type") or "OTHER"
        check_choice(item_type, CUSTOM_ITEM_TYPES, "type")
        if not (item.get("name") or "").strip():
            raise ValidationError("Item name is required", {"field": "name"})

        row = CustomItineraryItem(
            itinerary_id=itinerary.id,
            name=item["name"].strip(),
            description=item.get("description") or "",
            type=item_type,
            cost=item.get("cost") or 0.0,
            supplier=item.get("supplier"),
            notes=item.get("notes"),
        )
        self.db.add(row)
        commit_or_raise(self.db, "add custom item")
        self.db.refresh(row)
        return model_to_dict(row)
