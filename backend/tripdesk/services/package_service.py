"""
Package Service
Operator-side package CRUD, statistics, and the agent marketplace browse.
Variant / FAQ / accessibility lists edited through `services.editors` are
persisted here.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from tripdesk.core.config import settings
from tripdesk.core.exceptions import ValidationError
from tripdesk.db.models import (
    DIFFICULTY_LEVELS, PACKAGE_STATUSES, PACKAGE_TYPES, Package, PackageVariant, TourOperator,
)
from tripdesk.db.repositories import (
    PackageRepository, check_choice, commit_or_raise, get_or_404, page_envelope, paginate,
)
from tripdesk.db.serializers import package_to_dict, variant_to_dict

logger = logging.getLogger(__name__)

PACKAGE_FIELDS = {
    "title", "description", "type", "status", "price_adult", "price_child", "currency",
    "destinations", "duration_days", "duration_hours", "group_size_min", "group_size_max",
    "difficulty", "tags", "inclusions", "exclusions", "images", "recommended_for_trip_types",
    "is_featured", "rating", "review_count", "meeting_point", "languages_supported",
    "accessibility_info", "important_info", "faq",
}
VARIANT_COLUMNS = {
    "variant_name", "description", "inclusions", "exclusions", "price_adult",
    "price_child", "price_infant", "min_guests", "max_guests", "is_active",
}


def _check_package_fields(data: Dict[str, Any]) -> None:
    check_choice(data.get("type"), PACKAGE_TYPES, "type")
    check_choice(data.get("status"), PACKAGE_STATUSES, "status")
    check_choice(data.get("difficulty"), DIFFICULTY_LEVELS, "difficulty")
    for key in ("price_adult", "price_child"):
        if data.get(key) is not None and data[key] < 0:
            raise ValidationError(f"{key} must not be negative", {"field": key, "value": data[key]})
    group_min, group_max = data.get("group_size_min"), data.get("group_size_max")
    if group_min is not None and group_max is not None and group_min > group_max:
        raise ValidationError("group_size_min must not exceed group_size_max",
                              {"field": "group_size_min", "value": group_min})


def _build_variants(package_id: int, variants: List[Dict[str, Any]]) -> List[PackageVariant]:
    """ORM rows from editor records; client ids are dropped, order_index renumbered."""
    rows = []
    for index, record in enumerate(variants):
        values = {k: v for k, v in record.items() if k in VARIANT_COLUMNS}
        if not values.get("variant_name"):
            values["variant_name"] = f"Option {index + 1}"
        rows.append(PackageVariant(package_id=package_id, order_index=index, **values))
    return rows


class PackageService:
    """Package CRUD and queries for operators and agents."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PackageRepository(db)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    def create_package(self, data: Dict[str, Any]) -> Dict[str, Any]:
        operator = get_or_404(self.db, TourOperator, data.get("tour_operator_id"), "Tour operator")
        _check_package_fields(data)
        if not (data.get("title") or "").strip():
            raise ValidationError("Package title is required", {"field": "title"})

        values = {k: v for k, v in data.items() if k in PACKAGE_FIELDS and v is not None}
        values.setdefault("status", "DRAFT")
        package = Package(tour_operator_id=operator.id, **values)
        self.db.add(package)
        self.db.flush()

        for variant in _build_variants(package.id, data.get("variants") or []):
            self.db.add(variant)

        commit_or_raise(self.db, "create package")
        self.db.refresh(package)
        logger.info(f"Created package {package.id} '{package.title}' for operator {operator.id}")
        return package_to_dict(package, operator, include_variants=True)

    def get_package(self, package_id: int) -> Dict[str, Any]:
        package = self.repo.get_by_id(package_id)
        return package_to_dict(package, include_variants=True)

    def list_packages(
        self,
        filters: Optional[Dict[str, Any]] = None,
        query: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: str = "desc",
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        filters = filters or {}
        limit = min(limit or settings.default_page_size, settings.max_page_size)
        page = max(page, 1)

        q = self.repo.filtered_query(
            type=filters.get("type"),
            status=filters.get("status"),
            difficulty=filters.get("difficulty"),
            min_price=filters.get("min_price"),
            max_price=filters.get("max_price"),
            destination=filters.get("destination"),
            tags=filters.get("tags"),
            is_featured=filters.get("is_featured"),
            tour_operator_id=filters.get("tour_operator_id"),
            search_text=query,
        )
        q = self.repo.sorted(q, sort_by, sort_order)
        packages, total = paginate(q, limit, (page - 1) * limit)
        return page_envelope([package_to_dict(p) for p in packages], total, page, limit)

    def update_package(self, package_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        package = self.repo.get_by_id(package_id)
        _check_package_fields(changes)
        if "title" in changes and not (changes["title"] or "").strip():
            raise ValidationError("Package title is required", {"field": "title"})

        for key, value in changes.items():
            if key in PACKAGE_FIELDS:
                setattr(package, key, value)
        if "variants" in changes and changes["variants"] is not None:
            self._replace_variant_rows(package, changes["variants"])

        commit_or_raise(self.db, "update package")
        self.db.refresh(package)
        logger.info(f"Updated package {package_id}: {sorted(changes.keys())}")
        return package_to_dict(package, include_variants=True)

    def delete_package(self, package_id: int) -> None:
        package = self.repo.get_by_id(package_id)
        self.db.delete(package)
        commit_or_raise(self.db, "delete package")
        logger.info(f"Deleted package {package_id}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_package_stats(self, tour_operator_id: Optional[int] = None) -> Dict[str, Any]:
        rows = self.repo.stats_rows(tour_operator_id)
        total = len(rows)
        return {
            "total_packages": total,
            "active_packages": sum(1 for status, _, _ in rows if status == "ACTIVE"),
            "total_revenue": round(sum(price or 0.0 for _, price, _ in rows), 2),
            "average_rating": round(sum(rating or 0.0 for _, _, rating in rows) / total, 2) if total else 0.0,
        }

    def get_featured_packages(self, limit: int = 10) -> List[Dict[str, Any]]:
        q = self.repo.filtered_query(status="ACTIVE", is_featured=True)
        packages = self.repo.sorted(q, "rating", "desc").limit(limit).all()
        return [package_to_dict(p) for p in packages]

    def search_packages(self, text: str, limit: int = 20) -> List[Dict[str, Any]]:
        q = self.repo.filtered_query(status="ACTIVE", search_text=text)
        packages = self.repo.sorted(q, "rating", "desc").limit(limit).all()
        return [package_to_dict(p) for p in packages]

    def browse_packages(self, filters: Optional[Dict[str, Any]] = None,
                        limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Marketplace view for agents: ACTIVE packages of every operator."""
        filters = filters or {}
        q = self.repo.filtered_query(
            status="ACTIVE",
            destination=filters.get("destination"),
            trip_type_tag=filters.get("trip_type"),
            min_price=filters.get("min_price"),
            max_price=filters.get("max_price"),
            duration_days=filters.get("duration"),
            tour_operator_id=filters.get("operator_id"),
            min_rating=filters.get("min_rating"),
        )
        rows = self.repo.browse_with_operator(q, limit)
        return [package_to_dict(pkg, operator) for pkg, operator in rows]

    # ------------------------------------------------------------------
    # Editor persistence
    # ------------------------------------------------------------------
    def get_variants(self, package_id: int) -> List[Dict[str, Any]]:
        package = self.repo.get_by_id(package_id)
        return [variant_to_dict(v) for v in package.variants]

    def replace_variants(self, package_id: int, variants: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        package = self.repo.get_by_id(package_id)
        self._replace_variant_rows(package, variants)
        commit_or_raise(self.db, "save variants")
        self.db.refresh(package)
        logger.info(f"Package {package_id}: stored {len(package.variants)} variants")
        return [variant_to_dict(v) for v in package.variants]

    def replace_faq(self, package_id: int, faqs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        package = self.repo.get_by_id(package_id)
        package.faq = [dict(f, order=i) for i, f in enumerate(faqs)]
        commit_or_raise(self.db, "save FAQ")
        return package.faq

    def replace_accessibility_info(self, package_id: int, items: List[str]) -> List[str]:
        package = self.repo.get_by_id(package_id)
        package.accessibility_info = list(items)
        commit_or_raise(self.db, "save accessibility info")
        return package.accessibility_info

    def _replace_variant_rows(self, package: Package, variants: List[Dict[str, Any]]) -> None:
        package.variants.clear()
        self.db.flush()
        package.variants.extend(_build_variants(package.id, variants))
