"""
Package Recommendation Scoring
Ranks candidate packages for a lead with a fixed weighted sum.

Scoring (base 0.5, clamped to 1.0):
  + 0.20  package destinations include the lead destination
  + 0.15  package is recommended for the lead's trip type
  + 0.10  adult price fits within a share of the lead budget
  + 0.10  package rating >= 4.0
  + 0.05  package duration (days) fits the trip duration

Candidates are ACTIVE packages for the lead destination; the top results
are persisted to package_recommendations, one row per (lead, package).
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
import logging

from tripdesk.core.config import settings
from tripdesk.core.exceptions import DatabaseError
from tripdesk.core.monitoring import track_performance
from tripdesk.db.models import Lead, Package, PackageRecommendation
from tripdesk.db.repositories import PackageRepository, commit_or_raise, get_or_404
from tripdesk.db.serializers import model_to_dict

logger = logging.getLogger(__name__)

BASE_SCORE = 0.5
DESTINATION_WEIGHT = 0.2
TRIP_TYPE_WEIGHT = 0.15
BUDGET_WEIGHT = 0.1
RATING_WEIGHT = 0.1
DURATION_WEIGHT = 0.05
HIGH_RATING = 4.0
MAX_SCORE = 1.0


def _norm(value: Any) -> str:
    return str(value or "").strip().casefold()


def _contains(values: Optional[Sequence[Any]], wanted: Any) -> bool:
    target = _norm(wanted)
    return bool(target) and any(_norm(v) == target for v in values or [])


def score_package(lead: Any, package: Any,
                  budget_share: Optional[float] = None) -> Tuple[float, List[str]]:
    """
    Score one package for one lead. Pure: reads attributes only.
    Returns (score in [0.5, 1.0], human-readable reasons).
    """
    share = settings.recommendation_budget_share if budget_share is None else budget_share
    score = BASE_SCORE
    reasons: List[str] = []

    if _contains(getattr(package, "destinations", None), lead.destination):
        score += DESTINATION_WEIGHT
        reasons.append("Matches destination")

    trip_type = getattr(lead, "trip_type", None)
    if _contains(getattr(package, "recommended_for_trip_types", None), trip_type):
        score += TRIP_TYPE_WEIGHT
        reasons.append(f"Suitable for {str(trip_type).lower()} trips")

    price = getattr(package, "price_adult", None) or 0.0
    if price <= (lead.budget or 0.0) * share:
        score += BUDGET_WEIGHT
        reasons.append("Within budget range")

    if (getattr(package, "rating", None) or 0.0) >= HIGH_RATING:
        score += RATING_WEIGHT
        reasons.append("Highly rated")

    days = getattr(package, "duration_days", None)
    if days is not None and days <= (lead.duration or 0):
        score += DURATION_WEIGHT
        reasons.append("Fits trip duration")

    return min(round(score, 4), MAX_SCORE), reasons


def rank_packages(lead: Any, packages: Sequence[Any], limit: Optional[int] = None,
                  budget_share: Optional[float] = None) -> List[Tuple[Any, float, List[str]]]:
    """Score every candidate and return the best `limit`, highest first (ties keep input order)."""
    scored = []
    for pkg in packages:
        score, reasons = score_package(lead, pkg, budget_share)
        scored.append((pkg, score, reasons))
    scored.sort(key=lambda x: x[1], reverse=True)
    if limit is not None:
        scored = scored[:limit]
    return scored


class PackageRecommender:
    """Generates and stores package recommendations for leads."""

    def __init__(self, db: Session):
        self.db = db

    @track_performance("Recommendation generation")
    def generate(self, lead_id: int, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        limit = limit or settings.recommendation_limit
        lead = get_or_404(self.db, Lead, lead_id, "Lead")

        candidates = PackageRepository(self.db).active_for_destination(lead.destination)
        logger.info(f"Lead {lead_id}: {len(candidates)} candidate packages for '{lead.destination}'")

        ranked = rank_packages(lead, candidates, limit)

        existing = {
            rec.package_id: rec
            for rec in self.db.query(PackageRecommendation)
            .filter(PackageRecommendation.lead_id == lead_id)
            .all()
        }
        stored: List[PackageRecommendation] = []
        for pkg, score, reasons in ranked:
            rec = existing.get(pkg.id)
            if rec is None:
                rec = PackageRecommendation(lead_id=lead_id, package_id=pkg.id)
                self.db.add(rec)
            rec.recommendation_score = score
            rec.reason = ", ".join(reasons)
            stored.append(rec)

        commit_or_raise(self.db, "save recommendations")
        logger.info(f"Lead {lead_id}: stored {len(stored)} recommendations")
        return [model_to_dict(rec) for rec in stored]

    def get_for_lead(self, lead_id: int) -> List[Dict[str, Any]]:
        """Stored recommendations for a lead, best first."""
        try:
            rows = self.db.query(PackageRecommendation) \
                .filter(PackageRecommendation.lead_id == lead_id) \
                .order_by(PackageRecommendation.recommendation_score.desc(),
                          PackageRecommendation.id.asc()) \
                .all()
        except SQLAlchemyError as e:
            logger.error(f"Error getting recommendations for lead {lead_id}: {e}")
            raise DatabaseError("Failed to get recommendations", {"lead_id": lead_id}, e)
        return [model_to_dict(r) for r in rows]
