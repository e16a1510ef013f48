"""
List editors for package sub-records: variants, FAQ entries and
accessibility notes.

Every function is pure: it takes the current list, returns a new list and
leaves the input untouched. Unknown ids and moves past either end return an
unchanged copy.
"""

from copy import deepcopy
from datetime import datetime
from typing import Any, Dict, List, Optional
import uuid

from tripdesk.core.exceptions import ValidationError

Record = Dict[str, Any]

UP = "up"
DOWN = "down"

VARIANT_FIELDS = {
    "variant_name", "description", "inclusions", "exclusions", "price_adult",
    "price_child", "price_infant", "min_guests", "max_guests", "is_active",
}
FAQ_FIELDS = {"question", "answer", "category"}


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _same_id(record: Record, record_id: Any) -> bool:
    return str(record.get("id")) == str(record_id)


def _index_of(records: List[Record], record_id: Any) -> int:
    for i, record in enumerate(records):
        if _same_id(record, record_id):
            return i
    return -1


def _move(records: List[Record], record_id: Any, direction: str, order_key: str) -> List[Record]:
    if direction not in (UP, DOWN):
        raise ValidationError(f"direction must be '{UP}' or '{DOWN}'", {"field": "direction", "value": direction})
    updated = deepcopy(records)
    current = _index_of(updated, record_id)
    if current == -1:
        return updated
    target = current - 1 if direction == UP else current + 1
    if target < 0 or target >= len(updated):
        return updated
    updated[current], updated[target] = updated[target], updated[current]
    for i, record in enumerate(updated):
        record[order_key] = i
    return updated


# ============================================================================
# VARIANTS
# ============================================================================

def blank_variant(order_index: int, package_id: Optional[int] = None) -> Record:
    now = datetime.utcnow().isoformat()
    return {
        "id": _new_id("variant"),
        "package_id": package_id,
        "variant_name": "",
        "description": "",
        "inclusions": [],
        "exclusions": [],
        "price_adult": 0.0,
        "price_child": 0.0,
        "price_infant": 0.0,
        "min_guests": 1,
        "max_guests": None,
        "is_active": True,
        "order_index": order_index,
        "created_at": now,
        "updated_at": now,
    }


def add_variant(variants: List[Record], package_id: Optional[int] = None) -> List[Record]:
    updated = deepcopy(variants)
    updated.append(blank_variant(len(updated), package_id))
    return updated


def update_variant(variants: List[Record], variant_id: Any, field: str, value: Any) -> List[Record]:
    if field not in VARIANT_FIELDS:
        raise ValidationError(f"Unknown variant field: {field}", {"field": field})
    updated = deepcopy(variants)
    for variant in updated:
        if _same_id(variant, variant_id):
            variant[field] = value
            variant["updated_at"] = datetime.utcnow().isoformat()
    return updated


def remove_variant(variants: List[Record], variant_id: Any) -> List[Record]:
    return [deepcopy(v) for v in variants if not _same_id(v, variant_id)]


def duplicate_variant(variants: List[Record], variant_id: Any) -> List[Record]:
    updated = deepcopy(variants)
    index = _index_of(updated, variant_id)
    if index == -1:
        return updated
    now = datetime.utcnow().isoformat()
    copy = deepcopy(updated[index])
    copy.update({
        "id": _new_id("variant"),
        "variant_name": f"{copy.get('variant_name', '')} (Copy)",
        "order_index": len(updated),
        "created_at": now,
        "updated_at": now,
    })
    updated.append(copy)
    return updated


def move_variant(variants: List[Record], variant_id: Any, direction: str) -> List[Record]:
    return _move(variants, variant_id, direction, "order_index")


def _edit_list_item(variants: List[Record], variant_id: Any, key: str, edit) -> List[Record]:
    index = _index_of(variants, variant_id)
    if index == -1:
        return deepcopy(variants)
    items = list(variants[index].get(key) or [])
    return update_variant(variants, variant_id, key, edit(items))


def add_inclusion(variants: List[Record], variant_id: Any, value: str = "") -> List[Record]:
    return _edit_list_item(variants, variant_id, "inclusions", lambda items: items + [value])


def update_inclusion(variants: List[Record], variant_id: Any, position: int, value: str) -> List[Record]:
    return _edit_list_item(variants, variant_id, "inclusions", lambda items: _replace_at(items, position, value))


def remove_inclusion(variants: List[Record], variant_id: Any, position: int) -> List[Record]:
    return _edit_list_item(variants, variant_id, "inclusions",
                           lambda items: [v for i, v in enumerate(items) if i != position])


def add_exclusion(variants: List[Record], variant_id: Any, value: str = "") -> List[Record]:
    return _edit_list_item(variants, variant_id, "exclusions", lambda items: items + [value])


def update_exclusion(variants: List[Record], variant_id: Any, position: int, value: str) -> List[Record]:
    return _edit_list_item(variants, variant_id, "exclusions", lambda items: _replace_at(items, position, value))


def remove_exclusion(variants: List[Record], variant_id: Any, position: int) -> List[Record]:
    return _edit_list_item(variants, variant_id, "exclusions",
                           lambda items: [v for i, v in enumerate(items) if i != position])


def _replace_at(items: List[str], position: int, value: str) -> List[str]:
    if 0 <= position < len(items):
        items = list(items)
        items[position] = value
    return items


# ============================================================================
# FAQ
# ============================================================================

def add_faq(faqs: List[Record]) -> List[Record]:
    updated = deepcopy(faqs)
    updated.append({
        "id": _new_id("faq"),
        "question": "",
        "answer": "",
        "category": "General",
        "order": len(updated),
    })
    return updated


def update_faq(faqs: List[Record], faq_id: Any, field: str, value: Any) -> List[Record]:
    if field not in FAQ_FIELDS:
        raise ValidationError(f"Unknown FAQ field: {field}", {"field": field})
    updated = deepcopy(faqs)
    for faq in updated:
        if _same_id(faq, faq_id):
            faq[field] = value
    return updated


def remove_faq(faqs: List[Record], faq_id: Any) -> List[Record]:
    return [deepcopy(f) for f in faqs if not _same_id(f, faq_id)]


def move_faq(faqs: List[Record], faq_id: Any, direction: str) -> List[Record]:
    return _move(faqs, faq_id, direction, "order")


# ============================================================================
# ACCESSIBILITY INFO (activity policies)
# ============================================================================

def toggle_accessibility_info(items: List[str], item: str) -> List[str]:
    if item in items:
        return [i for i in items if i != item]
    return list(items) + [item]


def add_custom_accessibility_info(items: List[str], item: Optional[str]) -> List[str]:
    cleaned = (item or "").strip()
    if not cleaned or cleaned in items:
        return list(items)
    return list(items) + [cleaned]


def remove_accessibility_info(items: List[str], item: str) -> List[str]:
    return [i for i in items if i != item]
