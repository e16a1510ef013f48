"""
Itinerary Creation Service
Persistence around the multi-step builder: sessions, the enhanced package
search used during package selection, day activity storage, and
finalizing a session into an Itinerary.

State transitions themselves live in `services.itinerary_planner`; this
module loads the session, applies one transition and stores the result.
"""

from copy import deepcopy
from typing import Any, Callable, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
import logging

from tripdesk.core.config import settings
from tripdesk.core.exceptions import ConflictError, ValidationError
from tripdesk.db.models import (
    SESSION_STEPS, ItineraryCreationSession, ItineraryDay, ItineraryDayActivity, Lead,
    PackageRecommendation,
)
from tripdesk.db.repositories import PackageRepository, check_choice, commit_or_raise, get_or_404
from tripdesk.db.serializers import itinerary_to_dict, model_to_dict, package_to_dict
from tripdesk.services import itinerary_planner as planner
from tripdesk.services.itinerary_service import ItineraryService

logger = logging.getLogger(__name__)

SEARCH_SORT_KEYS = {
    "relevance": "rating",
    "price": "price",
    "rating": "rating",
    "duration": "duration",
    "name": "title",
}


def session_to_dict(session: ItineraryCreationSession) -> Dict[str, Any]:
    data = model_to_dict(session)
    data["selected_packages"] = data.get("selected_packages") or []
    data["day_assignments"] = data.get("day_assignments") or []
    return data


class ItineraryCreationService:

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    def create_session(self, lead_id: int, agent_id: str) -> Dict[str, Any]:
        lead = get_or_404(self.db, Lead, lead_id, "Lead")
        session = ItineraryCreationSession(
            lead_id=lead.id,
            agent_id=agent_id,
            status="PACKAGE_SELECTION",
            selected_packages=[],
            day_assignments=[],
        )
        self.db.add(session)
        commit_or_raise(self.db, "create session")
        self.db.refresh(session)
        logger.info(f"Itinerary session {session.id} started for lead {lead_id} by {agent_id}")
        return session_to_dict(session)

    def get_session(self, session_id: int) -> Dict[str, Any]:
        return session_to_dict(self._load(session_id))

    def update_session(
        self,
        session_id: int,
        status: Optional[str] = None,
        selected_packages: Optional[List[Dict[str, Any]]] = None,
        day_assignments: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        check_choice(status, SESSION_STEPS, "status")
        session = self._load(session_id)
        if status is not None:
            session.status = status
        if selected_packages is not None:
            session.selected_packages = selected_packages
        if day_assignments is not None:
            session.day_assignments = day_assignments
        commit_or_raise(self.db, "update session")
        self.db.refresh(session)
        return session_to_dict(session)

    def _load(self, session_id: int) -> ItineraryCreationSession:
        return get_or_404(self.db, ItineraryCreationSession, session_id, "Session")

    def _apply(self, session_id: int,
               transition: Callable[[List, List], Tuple[List, List]]) -> Dict[str, Any]:
        """Run one planner transition on (selected, days) and store both lists."""
        session = self._load(session_id)
        selected, days = transition(deepcopy(session.selected_packages or []),
                                    deepcopy(session.day_assignments or []))
        session.selected_packages = selected
        session.day_assignments = days
        commit_or_raise(self.db, "update session")
        self.db.refresh(session)
        return session_to_dict(session)

    # ------------------------------------------------------------------
    # Planner actions on a stored session
    # ------------------------------------------------------------------
    def add_package(self, session_id: int, package_id: int) -> Dict[str, Any]:
        package = package_to_dict(PackageRepository(self.db).get_by_id(package_id))
        if package["status"] != "ACTIVE":
            raise ValidationError("Only active packages can be added", {"package_id": package_id})
        return self._apply(session_id, lambda s, d: (planner.add_package(s, package), d))

    def remove_package(self, session_id: int, package_id: int) -> Dict[str, Any]:
        return self._apply(session_id, lambda s, d: planner.remove_package(s, d, package_id))

    def update_package_quantity(self, session_id: int, package_id: int, quantity: int) -> Dict[str, Any]:
        return self._apply(session_id, lambda s, d: planner.update_package_quantity(s, d, package_id, quantity))

    def build_days(self, session_id: int) -> Dict[str, Any]:
        """(Re)build empty days from the lead. Existing day plans are discarded."""
        session = self._load(session_id)
        lead = get_or_404(self.db, Lead, session.lead_id, "Lead")
        days = planner.build_days(lead)

        def transition(selected, _days):
            for item in selected:
                item["assigned_to_days"] = []
            return selected, days

        return self._apply(session_id, transition)

    def assign_package_to_day(self, session_id: int, package_id: int, day_id: str) -> Dict[str, Any]:
        return self._apply(session_id, lambda s, d: planner.assign_package_to_day(s, d, package_id, day_id))

    def remove_package_from_day(self, session_id: int, package_id: int, day_id: str) -> Dict[str, Any]:
        return self._apply(session_id, lambda s, d: planner.remove_package_from_day(s, d, package_id, day_id))

    def add_custom_activity(self, session_id: int, day_id: str, activity: Dict[str, Any]) -> Dict[str, Any]:
        return self._apply(session_id, lambda s, d: (s, planner.add_custom_activity(d, day_id, activity)))

    def update_activity(self, session_id: int, activity_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        return self._apply(session_id, lambda s, d: (s, planner.update_activity(d, activity_id, updates)))

    def remove_activity(self, session_id: int, activity_id: str) -> Dict[str, Any]:
        return self._apply(session_id, lambda s, d: (s, planner.remove_activity(d, activity_id)))

    def reorder_activities(self, session_id: int, day_id: str, activity_ids: List[str]) -> Dict[str, Any]:
        return self._apply(session_id, lambda s, d: (s, planner.reorder_activities(d, day_id, activity_ids)))

    def change_step(self, session_id: int, action: str, step: Optional[str] = None) -> Dict[str, Any]:
        session = self._load(session_id)
        if action == "next":
            new_status = planner.next_step(session.status)
        elif action == "previous":
            new_status = planner.previous_step(session.status)
        elif action == "go_to":
            new_status = planner.go_to_step(step)
        else:
            raise ValidationError(f"Unknown step action: {action}", {"field": "action", "value": action})
        return self.update_session(session_id, status=new_status)

    def get_budget(self, session_id: int) -> Dict[str, Any]:
        session = self._load(session_id)
        lead = get_or_404(self.db, Lead, session.lead_id, "Lead")
        return planner.budget_tracker(lead.budget, session.selected_packages or [], session.day_assignments or [])

    def validate_session(self, session_id: int) -> Dict[str, Any]:
        session = self._load(session_id)
        lead = get_or_404(self.db, Lead, session.lead_id, "Lead")
        return planner.validate(lead.budget, session.selected_packages or [], session.day_assignments or [])

    # ------------------------------------------------------------------
    # Enhanced search
    # ------------------------------------------------------------------
    def search_packages(self, filters: Optional[Dict[str, Any]] = None,
                        lead_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """ACTIVE packages with the lead's stored recommendation attached."""
        filters = filters or {}
        repo = PackageRepository(self.db)
        query = repo.filtered_query(
            status="ACTIVE",
            search_text=filters.get("search_term"),
            types=filters.get("package_types"),
            destinations_any=filters.get("destinations"),
            min_price=filters.get("min_price"),
            max_price=filters.get("max_price"),
            min_duration=filters.get("min_duration"),
            max_duration=filters.get("max_duration"),
            operator_ids=filters.get("operators"),
            min_rating=filters.get("rating"),
        )
        sort_key = SEARCH_SORT_KEYS.get(filters.get("sort_by") or "relevance", "rating")
        packages = repo.sorted(query, sort_key, filters.get("sort_order") or "desc").all()

        recommendations: Dict[int, PackageRecommendation] = {}
        if lead_id is not None:
            rows = self.db.query(PackageRecommendation) \
                .filter(PackageRecommendation.lead_id == lead_id).all()
            recommendations = {r.package_id: r for r in rows}

        results = []
        for pkg in packages:
            item = package_to_dict(pkg)
            rec = recommendations.get(pkg.id)
            item["is_recommended"] = rec is not None
            item["recommendation_score"] = rec.recommendation_score if rec else None
            item["recommendation_reason"] = rec.reason if rec else None
            results.append(item)
        return results

    # ------------------------------------------------------------------
    # Stored itinerary days
    # ------------------------------------------------------------------
    def save_day_activities(self, day_id: int, activities: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Replace every activity of a stored itinerary day."""
        day = get_or_404(self.db, ItineraryDay, day_id, "Itinerary day")
        builder = ItineraryService(self.db)
        ordered = sorted(enumerate(activities), key=lambda x: (x[1].get("order_index", x[0]), x[0]))
        day.activities.clear()
        self.db.flush()
        for order, (_, act) in enumerate(ordered):
            day.activities.append(builder.activity_row(act, order))
        commit_or_raise(self.db, "save day activities")
        return self.get_day_activities(day_id)

    def get_day_activities(self, day_id: int) -> List[Dict[str, Any]]:
        get_or_404(self.db, ItineraryDay, day_id, "Itinerary day")
        rows = self.db.query(ItineraryDayActivity) \
            .filter(ItineraryDayActivity.itinerary_day_id == day_id) \
            .order_by(ItineraryDayActivity.order_index.asc(), ItineraryDayActivity.id.asc()) \
            .all()
        return [model_to_dict(a) for a in rows]

    def get_lead_data(self, lead_id: int) -> Dict[str, Any]:
        return model_to_dict(get_or_404(self.db, Lead, lead_id, "Lead"))

    # ------------------------------------------------------------------
    # Finalize
    # ------------------------------------------------------------------
    def finalize_session(self, session_id: int, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        details = details or {}
        session = self._load(session_id)
        if session.itinerary_id is not None:
            raise ConflictError("Session already finalized",
                                {"session_id": session_id, "itinerary_id": session.itinerary_id})
        lead = get_or_404(self.db, Lead, session.lead_id, "Lead")
        selected = session.selected_packages or []
        days = session.day_assignments or []

        result = planner.validate(lead.budget, selected, days)
        if not result["is_valid"]:
            raise ValidationError("; ".join(result["errors"]),
                                  {"session_id": session_id, "errors": result["errors"]})

        budget = planner.budget_tracker(lead.budget, selected, days)
        total = budget["used"]
        commission = round(total * settings.default_commission_percentage / 100, 2)

        itinerary = ItineraryService(self.db).create_itinerary({
            "lead_id": lead.id,
            "agent_id": session.agent_id,
            "title": details.get("title") or f"{lead.destination} trip for {lead.customer_name}",
            "description": details.get("description"),
            "notes": details.get("notes"),
            "start_date": days[0].get("date"),
            "end_date": days[-1].get("date"),
            "days": days,
            "selected_packages": selected,
            "total_cost": total,
            "agent_commission": commission,
            "customer_price": round(total + commission, 2),
        }, commit=False)

        session.itinerary_id = itinerary.id
        session.status = "REVIEW"
        commit_or_raise(self.db, "finalize itinerary")
        self.db.refresh(itinerary)
        logger.info(f"Session {session_id} finalized into itinerary {itinerary.id} "
                    f"(total {total}, commission {commission})")
        return itinerary_to_dict(itinerary)
