"""
Itinerary Planner
Pure state transitions for the multi-step itinerary builder.

State is two JSON-friendly lists stored on the creation session:

  selected  -- SelectedPackage dicts
               {id, package_id, package_name, operator_id, operator_name,
                price, quantity, total_price, duration{days,hours}, type,
                destinations, added_at, assigned_to_days[]}
  days      -- DayAssignment dicts
               {day_id, day_number, date, location, package_ids[],
                activities[], total_cost, estimated_duration}

Functions never mutate their arguments. A day's total_cost and
estimated_duration always equal the sums over its activities.
"""

from copy import deepcopy
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
import uuid

from tripdesk.core.exceptions import ValidationError
from tripdesk.db.models import ACTIVITY_TYPES, SESSION_STEPS

Record = Dict[str, Any]
Selected = List[Record]
Days = List[Record]


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _now() -> str:
    return datetime.utcnow().isoformat()


def _as_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _recompute_day(day: Record) -> Record:
    for i, activity in enumerate(day["activities"]):
        activity["order_index"] = i
    day["total_cost"] = round(sum(a.get("cost") or 0.0 for a in day["activities"]), 2)
    day["estimated_duration"] = round(sum(a.get("duration_hours") or 0.0 for a in day["activities"]), 2)
    return day


def _find(records: List[Record], key: str, value: Any) -> Optional[Record]:
    for record in records:
        if str(record.get(key)) == str(value):
            return record
    return None


# ============================================================================
# PACKAGE SELECTION
# ============================================================================

def add_package(selected: Selected, package: Record) -> Selected:
    """Select a package (quantity 1). Already-selected packages are left as they are."""
    updated = deepcopy(selected)
    if _find(updated, "package_id", package["id"]) is not None:
        return updated

    pricing = package.get("pricing") or {}
    price = float(pricing.get("adult", package.get("price_adult")) or 0.0)
    duration = package.get("duration") or {
        "days": package.get("duration_days") or 1,
        "hours": package.get("duration_hours") or 8,
    }
    updated.append({
        "id": f"sel-{package['id']}",
        "package_id": package["id"],
        "package_name": package.get("title", ""),
        "operator_id": package.get("operator_id", package.get("tour_operator_id")),
        "operator_name": package.get("operator_name", ""),
        "price": price,
        "quantity": 1,
        "total_price": price,
        "duration": dict(duration),
        "type": package.get("type"),
        "destinations": list(package.get("destinations") or []),
        "added_at": _now(),
        "assigned_to_days": [],
    })
    return updated


def remove_package(selected: Selected, days: Days, package_id: Any) -> Tuple[Selected, Days]:
    """Deselect a package and drop it from every day it was assigned to."""
    updated_days = deepcopy(days)
    for day in updated_days:
        if any(str(p) == str(package_id) for p in day["package_ids"]):
            day["package_ids"] = [p for p in day["package_ids"] if str(p) != str(package_id)]
            day["activities"] = [
                a for a in day["activities"]
                if not (a.get("activity_type") == "PACKAGE" and str(a.get("package_id")) == str(package_id))
            ]
            _recompute_day(day)
    updated_selected = [deepcopy(s) for s in selected if str(s["package_id"]) != str(package_id)]
    return updated_selected, updated_days


def update_package_quantity(selected: Selected, days: Days, package_id: Any,
                            quantity: int) -> Tuple[Selected, Days]:
    """Change a selection's quantity and re-cost its PACKAGE activities on every day."""
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1", {"field": "quantity", "value": quantity})
    updated_selected, updated_days = deepcopy(selected), deepcopy(days)
    item = _find(updated_selected, "package_id", package_id)
    if item is None:
        return updated_selected, updated_days
    item["quantity"] = quantity
    item["total_price"] = round(item["price"] * quantity, 2)

    for day in updated_days:
        touched = False
        for activity in day["activities"]:
            if activity.get("activity_type") == "PACKAGE" and str(activity.get("package_id")) == str(package_id):
                activity["cost"] = item["total_price"]
                touched = True
        if touched:
            _recompute_day(day)
    return updated_selected, updated_days


# ============================================================================
# DAY PLANNING
# ============================================================================

def build_days(lead: Any) -> Days:
    """One empty day per trip day, dated from the lead's preferred start date."""
    start = _as_date(_get(lead, "preferred_start_date"))
    destination = _get(lead, "destination", "")
    days = []
    for n in range(1, max(_get(lead, "duration") or 0, 0) + 1):
        day_date = start + timedelta(days=n - 1) if start else None
        days.append({
            "day_id": f"day-{n}",
            "day_number": n,
            "date": day_date.isoformat() if day_date else None,
            "location": destination,
            "package_ids": [],
            "activities": [],
            "total_cost": 0.0,
            "estimated_duration": 0.0,
        })
    return days


def assign_package_to_day(selected: Selected, days: Days, package_id: Any,
                          day_id: str) -> Tuple[Selected, Days]:
    """Place a selected package on a day as a PACKAGE activity."""
    updated_selected, updated_days = deepcopy(selected), deepcopy(days)
    item = _find(updated_selected, "package_id", package_id)
    day = _find(updated_days, "day_id", day_id)
    if item is None or day is None:
        return updated_selected, updated_days
    if any(str(p) == str(package_id) for p in day["package_ids"]):
        return updated_selected, updated_days

    day["package_ids"].append(item["package_id"])
    day["activities"].append({
        "id": f"act-{uuid.uuid4().hex[:12]}",
        "itinerary_day_id": day["day_id"],
        "package_id": item["package_id"],
        "activity_name": item["package_name"],
        "activity_type": "PACKAGE",
        "time_slot": "",
        "duration_hours": float((item.get("duration") or {}).get("hours") or 0),
        "cost": item["total_price"],
        "location": day.get("location") or "",
        "notes": None,
        "order_index": len(day["activities"]),
        "created_at": _now(),
    })
    _recompute_day(day)

    assigned = item.setdefault("assigned_to_days", [])
    if day["day_id"] not in assigned:
        assigned.append(day["day_id"])
    return updated_selected, updated_days


def remove_package_from_day(selected: Selected, days: Days, package_id: Any,
                            day_id: str) -> Tuple[Selected, Days]:
    updated_selected, updated_days = deepcopy(selected), deepcopy(days)
    day = _find(updated_days, "day_id", day_id)
    if day is not None:
        day["package_ids"] = [p for p in day["package_ids"] if str(p) != str(package_id)]
        day["activities"] = [
            a for a in day["activities"]
            if not (a.get("activity_type") == "PACKAGE" and str(a.get("package_id")) == str(package_id))
        ]
        _recompute_day(day)
    item = _find(updated_selected, "package_id", package_id)
    if item is not None:
        item["assigned_to_days"] = [d for d in item.get("assigned_to_days") or [] if d != day_id]
    return updated_selected, updated_days


def add_custom_activity(days: Days, day_id: str, activity: Record) -> Days:
    activity_type = activity.get("activity_type") or "CUSTOM"
    if activity_type not in ACTIVITY_TYPES:
        raise ValidationError(f"Invalid activity_type: {activity_type}",
                              {"field": "activity_type", "value": activity_type})
    if not (activity.get("activity_name") or "").strip():
        raise ValidationError("Activity name is required", {"field": "activity_name"})

    updated = deepcopy(days)
    day = _find(updated, "day_id", day_id)
    if day is None:
        return updated
    day["activities"].append({
        "id": f"act-{uuid.uuid4().hex[:12]}",
        "itinerary_day_id": day["day_id"],
        "package_id": activity.get("package_id"),
        "activity_name": activity["activity_name"],
        "activity_type": activity_type,
        "time_slot": activity.get("time_slot") or "",
        "duration_hours": float(activity.get("duration_hours") or 0.0),
        "cost": float(activity.get("cost") or 0.0),
        "location": activity.get("location") or day.get("location") or "",
        "notes": activity.get("notes"),
        "order_index": len(day["activities"]),
        "created_at": _now(),
    })
    _recompute_day(day)
    return updated


def update_activity(days: Days, activity_id: str, updates: Record) -> Days:
    """Apply field updates to one activity; id, day and order are fixed."""
    if "activity_type" in updates and updates["activity_type"] not in ACTIVITY_TYPES:
        raise ValidationError(f"Invalid activity_type: {updates['activity_type']}",
                              {"field": "activity_type", "value": updates["activity_type"]})
    updated = deepcopy(days)
    for day in updated:
        activity = _find(day["activities"], "id", activity_id)
        if activity is not None:
            for key, value in updates.items():
                if key not in ("id", "itinerary_day_id", "order_index", "created_at"):
                    activity[key] = value
            _recompute_day(day)
            break
    return updated


def remove_activity(days: Days, activity_id: str) -> Days:
    updated = deepcopy(days)
    for day in updated:
        remaining = [a for a in day["activities"] if str(a["id"]) != str(activity_id)]
        if len(remaining) != len(day["activities"]):
            day["activities"] = remaining
            _recompute_day(day)
            break
    return updated


def reorder_activities(days: Days, day_id: str, activity_ids: List[str]) -> Days:
    """Put the listed activities first, in the given order; the rest keep their order."""
    updated = deepcopy(days)
    day = _find(updated, "day_id", day_id)
    if day is None:
        return updated
    by_id = {str(a["id"]): a for a in day["activities"]}
    ordered = [by_id.pop(str(i)) for i in activity_ids if str(i) in by_id]
    ordered.extend(a for a in day["activities"] if str(a["id"]) in by_id)
    day["activities"] = ordered
    _recompute_day(day)
    return updated


# ============================================================================
# STEPS
# ============================================================================

def next_step(current: str) -> str:
    index = SESSION_STEPS.index(go_to_step(current))
    return SESSION_STEPS[min(index + 1, len(SESSION_STEPS) - 1)]


def previous_step(current: str) -> str:
    index = SESSION_STEPS.index(go_to_step(current))
    return SESSION_STEPS[max(index - 1, 0)]


def go_to_step(step: str) -> str:
    if step not in SESSION_STEPS:
        raise ValidationError(f"Invalid step: {step}", {"field": "status", "value": step})
    return step


# ============================================================================
# BUDGET & VALIDATION
# ============================================================================

def budget_tracker(lead_budget: float, selected: Selected, days: Days) -> Record:
    """
    Budget usage: selected package totals plus non-package activity costs.
    PACKAGE activities are not counted twice.
    """
    total = float(lead_budget or 0.0)
    package_costs = {str(s["package_id"]): s.get("total_price") or 0.0 for s in selected}
    daily_costs = {d["day_id"]: d.get("total_cost") or 0.0 for d in days}
    extras = sum(
        a.get("cost") or 0.0
        for d in days for a in d["activities"]
        if a.get("activity_type") != "PACKAGE"
    )
    used = round(sum(package_costs.values()) + extras, 2)
    over = round(max(used - total, 0.0), 2)
    return {
        "total": total,
        "used": used,
        "remaining": round(max(total - used, 0.0), 2),
        "over_budget": used > total,
        "over_budget_amount": over,
        "package_costs": package_costs,
        "daily_costs": daily_costs,
    }


def validate(lead_budget: float, selected: Selected, days: Days) -> Record:
    errors: List[str] = []
    warnings: List[str] = []

    packages_valid = len(selected) > 0
    if not packages_valid:
        errors.append("At least one package must be selected")

    days_valid = len(days) > 0
    if not days_valid:
        errors.append("Itinerary must have at least one day")

    unassigned = [s for s in selected if not s.get("assigned_to_days")]
    if unassigned:
        names = ", ".join(s.get("package_name") or str(s["package_id"]) for s in unassigned)
        warnings.append(f"{len(unassigned)} package(s) not assigned to any day: {names}")

    budget = budget_tracker(lead_budget, selected, days)
    budget_valid = not budget["over_budget"]
    if not budget_valid:
        warnings.append(f"Itinerary exceeds budget by {budget['over_budget_amount']:.2f}")

    return {
        "is_valid": not errors,
        "errors": errors,
        "warnings": warnings,
        "budget_valid": budget_valid,
        "days_valid": days_valid,
        "packages_valid": packages_valid,
    }
