"""
Model -> dict conversion for API responses.
Dates are rendered as ISO strings; JSON array columns default to [].
"""

from datetime import date, datetime
from typing import Any, Dict, Optional

from sqlalchemy import inspect

from tripdesk.db.models import (
    Itinerary, ItineraryDay, Package, PackageVariant, TourOperator,
)


def _value(v: Any) -> Any:
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    return v


def model_to_dict(obj: Any) -> Dict[str, Any]:
    """Column values of a mapped instance (relationships excluded)."""
    if obj is None:
        return {}
    mapper = inspect(obj).mapper
    return {col.key: _value(getattr(obj, col.key)) for col in mapper.column_attrs}


def variant_to_dict(variant: PackageVariant) -> Dict[str, Any]:
    data = model_to_dict(variant)
    data["inclusions"] = data.get("inclusions") or []
    data["exclusions"] = data.get("exclusions") or []
    return data


def package_to_dict(package: Package, operator: Optional[TourOperator] = None,
                    include_variants: bool = False) -> Dict[str, Any]:
    """Package with nested pricing / duration / group size blocks."""
    operator = operator or package.tour_operator
    data = model_to_dict(package)
    for key in ("destinations", "tags", "inclusions", "exclusions", "images",
                "recommended_for_trip_types", "languages_supported",
                "accessibility_info", "faq"):
        data[key] = data.get(key) or []
    data["pricing"] = {
        "adult": package.price_adult or 0.0,
        "child": package.price_child or 0.0,
        "currency": package.currency or "USD",
    }
    data["duration"] = {
        "days": package.duration_days or 1,
        "hours": package.duration_hours or 8,
    }
    data["group_size"] = {
        "min": package.group_size_min or 1,
        "max": package.group_size_max or 10,
    }
    data["operator_name"] = operator.company_name if operator else "Unknown Operator"
    data["operator_id"] = package.tour_operator_id
    if include_variants:
        data["variants"] = [variant_to_dict(v) for v in package.variants]
    return data


def day_to_dict(day: ItineraryDay) -> Dict[str, Any]:
    data = model_to_dict(day)
    data["meals"] = data.get("meals") or []
    data["activities"] = [model_to_dict(a) for a in day.activities]
    return data


def itinerary_to_dict(itinerary: Itinerary, include_children: bool = True) -> Dict[str, Any]:
    data = model_to_dict(itinerary)
    if include_children:
        data["days"] = [day_to_dict(d) for d in itinerary.days]
        data["packages"] = [model_to_dict(p) for p in itinerary.packages]
        data["custom_items"] = [model_to_dict(i) for i in itinerary.custom_items]
    return data
