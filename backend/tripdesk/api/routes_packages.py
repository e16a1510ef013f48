"""
Package API Routes
==================
Operator package management, the agent marketplace browse, and the
variant / FAQ / accessibility editors.

Editor endpoints load the stored list, apply one editor action and store
the result, returning the stored list.
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from typing import Any, Dict, List, Literal, Optional
import logging

from tripdesk.core.config import settings
from tripdesk.core.exceptions import ValidationError
from tripdesk.core.rate_limiting import limiter, READ_LIMIT, SEARCH_LIMIT, WRITE_LIMIT
from tripdesk.db.database import get_db
from tripdesk.services import editors
from tripdesk.services.package_service import PackageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/packages", tags=["packages"])


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------

class VariantIn(BaseModel):
    id: Optional[Any] = None
    variant_name: str = ""
    description: Optional[str] = ""
    inclusions: List[str] = []
    exclusions: List[str] = []
    price_adult: float = Field(0.0, ge=0)
    price_child: float = Field(0.0, ge=0)
    price_infant: float = Field(0.0, ge=0)
    min_guests: int = Field(1, ge=1)
    max_guests: Optional[int] = Field(None, ge=1)
    is_active: bool = True
    order_index: Optional[int] = None


class FaqIn(BaseModel):
    id: Optional[Any] = None
    question: str = ""
    answer: str = ""
    category: str = "General"
    order: Optional[int] = None


class PackageBase(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    price_adult: Optional[float] = Field(None, ge=0)
    price_child: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    destinations: Optional[List[str]] = None
    duration_days: Optional[int] = Field(None, ge=1)
    duration_hours: Optional[int] = Field(None, ge=0)
    group_size_min: Optional[int] = Field(None, ge=1)
    group_size_max: Optional[int] = Field(None, ge=1)
    difficulty: Optional[str] = None
    tags: Optional[List[str]] = None
    inclusions: Optional[List[str]] = None
    exclusions: Optional[List[str]] = None
    images: Optional[List[str]] = None
    recommended_for_trip_types: Optional[List[str]] = None
    is_featured: Optional[bool] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    review_count: Optional[int] = Field(None, ge=0)
    meeting_point: Optional[str] = None
    languages_supported: Optional[List[str]] = None
    accessibility_info: Optional[List[str]] = None
    important_info: Optional[str] = None
    faq: Optional[List[Dict[str, Any]]] = None
    variants: Optional[List[VariantIn]] = None


class PackageCreate(PackageBase):
    tour_operator_id: int
    title: str = Field(..., min_length=1, max_length=255)
    type: str


class PackageUpdate(PackageBase):
    pass


class FieldUpdate(BaseModel):
    field: str
    value: Any = None


class MoveRequest(BaseModel):
    direction: Literal["up", "down"]


class ListItem(BaseModel):
    value: str = ""


class AccessibilityItem(BaseModel):
    item: str


class VariantList(BaseModel):
    variants: List[VariantIn]


class FaqList(BaseModel):
    faq: List[FaqIn]


class AccessibilityList(BaseModel):
    items: List[str]


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(exclude_unset=True)


def _validated(model, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Editor output checked against the request model, as a 422 on failure."""
    try:
        return [model.model_validate(r).model_dump() for r in records]
    except PydanticValidationError as e:
        problems = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ValidationError("; ".join(problems), {"errors": problems}) from e


# ---------------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------------

@router.post("", status_code=201)
@limiter.limit(WRITE_LIMIT)
def create_package(request: Request, payload: PackageCreate, db: Session = Depends(get_db)):
    return PackageService(db).create_package(_dump(payload))


@router.get("")
@limiter.limit(READ_LIMIT)
def list_packages(
    request: Request,
    type: Optional[str] = Query(None, description="Package type"),
    status: Optional[str] = Query(None, description="Package status"),
    difficulty: Optional[str] = Query(None),
    min_price: Optional[float] = Query(None, ge=0, description="Minimum adult price"),
    max_price: Optional[float] = Query(None, ge=0, description="Maximum adult price"),
    destination: Optional[str] = Query(None),
    tags: Optional[List[str]] = Query(None, description="All tags must be present"),
    is_featured: Optional[bool] = Query(None),
    tour_operator_id: Optional[int] = Query(None),
    q: Optional[str] = Query(None, description="Text search on title / description"),
    sort_by: Optional[str] = Query(None, description="title | price | created_at | rating"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
):
    """Paginated operator package list."""
    filters = {
        "type": type, "status": status, "difficulty": difficulty,
        "min_price": min_price, "max_price": max_price, "destination": destination,
        "tags": tags, "is_featured": is_featured, "tour_operator_id": tour_operator_id,
    }
    return PackageService(db).list_packages(filters, q, sort_by, sort_order, page, limit)


@router.get("/stats")
@limiter.limit(READ_LIMIT)
def package_stats(request: Request, tour_operator_id: Optional[int] = Query(None),
                  db: Session = Depends(get_db)):
    return PackageService(db).get_package_stats(tour_operator_id)


@router.get("/featured")
@limiter.limit(READ_LIMIT)
def featured_packages(request: Request, limit: int = Query(10, ge=1, le=50),
                      db: Session = Depends(get_db)):
    return PackageService(db).get_featured_packages(limit)


@router.get("/search")
@limiter.limit(SEARCH_LIMIT)
def search_packages(request: Request, q: str = Query(..., min_length=1),
                    limit: int = Query(20, ge=1, le=100), db: Session = Depends(get_db)):
    return PackageService(db).search_packages(q, limit)


@router.get("/browse")
@limiter.limit(SEARCH_LIMIT)
def browse_packages(
    request: Request,
    destination: Optional[str] = Query(None),
    trip_type: Optional[str] = Query(None, description="Matched against package tags"),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    duration: Optional[int] = Query(None, ge=1, description="Exact duration in days"),
    operator_id: Optional[int] = Query(None),
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    limit: Optional[int] = Query(None, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Agent marketplace: ACTIVE packages from every operator."""
    filters = {
        "destination": destination, "trip_type": trip_type, "min_price": min_price,
        "max_price": max_price, "duration": duration, "operator_id": operator_id,
        "min_rating": min_rating,
    }
    return PackageService(db).browse_packages(filters, limit)


@router.get("/{package_id}")
@limiter.limit(READ_LIMIT)
def get_package(request: Request, package_id: int, db: Session = Depends(get_db)):
    return PackageService(db).get_package(package_id)


@router.patch("/{package_id}")
@limiter.limit(WRITE_LIMIT)
def update_package(request: Request, package_id: int, payload: PackageUpdate,
                   db: Session = Depends(get_db)):
    return PackageService(db).update_package(package_id, _dump(payload))


@router.delete("/{package_id}")
@limiter.limit(WRITE_LIMIT)
def delete_package(request: Request, package_id: int, db: Session = Depends(get_db)):
    PackageService(db).delete_package(package_id)
    return {"success": True}


# ---------------------------------------------------------------------------
# Variant editor
# ---------------------------------------------------------------------------

def _edit_variants(db: Session, package_id: int, action) -> List[Dict[str, Any]]:
    service = PackageService(db)
    return service.replace_variants(package_id, _validated(VariantIn, action(service.get_variants(package_id))))


@router.get("/{package_id}/variants")
@limiter.limit(READ_LIMIT)
def get_variants(request: Request, package_id: int, db: Session = Depends(get_db)):
    return PackageService(db).get_variants(package_id)


@router.put("/{package_id}/variants")
@limiter.limit(WRITE_LIMIT)
def replace_variants(request: Request, package_id: int, payload: VariantList,
                     db: Session = Depends(get_db)):
    return PackageService(db).replace_variants(package_id, [v.model_dump() for v in payload.variants])


@router.post("/{package_id}/variants")
@limiter.limit(WRITE_LIMIT)
def add_variant(request: Request, package_id: int, db: Session = Depends(get_db)):
    return _edit_variants(db, package_id, lambda v: editors.add_variant(v, package_id))


@router.patch("/{package_id}/variants/{variant_id}")
@limiter.limit(WRITE_LIMIT)
def update_variant(request: Request, package_id: int, variant_id: str, payload: FieldUpdate,
                   db: Session = Depends(get_db)):
    return _edit_variants(db, package_id,
                          lambda v: editors.update_variant(v, variant_id, payload.field, payload.value))


@router.delete("/{package_id}/variants/{variant_id}")
@limiter.limit(WRITE_LIMIT)
def remove_variant(request: Request, package_id: int, variant_id: str, db: Session = Depends(get_db)):
    return _edit_variants(db, package_id, lambda v: editors.remove_variant(v, variant_id))


@router.post("/{package_id}/variants/{variant_id}/duplicate")
@limiter.limit(WRITE_LIMIT)
def duplicate_variant(request: Request, package_id: int, variant_id: str, db: Session = Depends(get_db)):
    return _edit_variants(db, package_id, lambda v: editors.duplicate_variant(v, variant_id))


@router.post("/{package_id}/variants/{variant_id}/move")
@limiter.limit(WRITE_LIMIT)
def move_variant(request: Request, package_id: int, variant_id: str, payload: MoveRequest,
                 db: Session = Depends(get_db)):
    return _edit_variants(db, package_id, lambda v: editors.move_variant(v, variant_id, payload.direction))


_LIST_EDITORS = {
    "inclusions": (editors.add_inclusion, editors.update_inclusion, editors.remove_inclusion),
    "exclusions": (editors.add_exclusion, editors.update_exclusion, editors.remove_exclusion),
}


@router.post("/{package_id}/variants/{variant_id}/{list_name}")
@limiter.limit(WRITE_LIMIT)
def add_variant_list_item(request: Request, package_id: int, variant_id: str,
                          list_name: Literal["inclusions", "exclusions"], payload: ListItem,
                          db: Session = Depends(get_db)):
    add, _, _ = _LIST_EDITORS[list_name]
    return _edit_variants(db, package_id, lambda v: add(v, variant_id, payload.value))


@router.put("/{package_id}/variants/{variant_id}/{list_name}/{position}")
@limiter.limit(WRITE_LIMIT)
def update_variant_list_item(request: Request, package_id: int, variant_id: str,
                             list_name: Literal["inclusions", "exclusions"], position: int,
                             payload: ListItem, db: Session = Depends(get_db)):
    _, update, _ = _LIST_EDITORS[list_name]
    return _edit_variants(db, package_id, lambda v: update(v, variant_id, position, payload.value))


@router.delete("/{package_id}/variants/{variant_id}/{list_name}/{position}")
@limiter.limit(WRITE_LIMIT)
def remove_variant_list_item(request: Request, package_id: int, variant_id: str,
                             list_name: Literal["inclusions", "exclusions"], position: int,
                             db: Session = Depends(get_db)):
    _, _, remove = _LIST_EDITORS[list_name]
    return _edit_variants(db, package_id, lambda v: remove(v, variant_id, position))


# ---------------------------------------------------------------------------
# FAQ editor
# ---------------------------------------------------------------------------

def _edit_faq(db: Session, package_id: int, action) -> List[Dict[str, Any]]:
    service = PackageService(db)
    current = service.get_package(package_id)["faq"]
    return service.replace_faq(package_id, _validated(FaqIn, action(current)))


@router.get("/{package_id}/faq")
@limiter.limit(READ_LIMIT)
def get_faq(request: Request, package_id: int, db: Session = Depends(get_db)):
    return PackageService(db).get_package(package_id)["faq"]


@router.put("/{package_id}/faq")
@limiter.limit(WRITE_LIMIT)
def replace_faq(request: Request, package_id: int, payload: FaqList, db: Session = Depends(get_db)):
    return PackageService(db).replace_faq(package_id, [f.model_dump() for f in payload.faq])


@router.post("/{package_id}/faq")
@limiter.limit(WRITE_LIMIT)
def add_faq(request: Request, package_id: int, db: Session = Depends(get_db)):
    return _edit_faq(db, package_id, editors.add_faq)


@router.patch("/{package_id}/faq/{faq_id}")
@limiter.limit(WRITE_LIMIT)
def update_faq(request: Request, package_id: int, faq_id: str, payload: FieldUpdate,
               db: Session = Depends(get_db)):
    return _edit_faq(db, package_id, lambda f: editors.update_faq(f, faq_id, payload.field, payload.value))


@router.delete("/{package_id}/faq/{faq_id}")
@limiter.limit(WRITE_LIMIT)
def remove_faq(request: Request, package_id: int, faq_id: str, db: Session = Depends(get_db)):
    return _edit_faq(db, package_id, lambda f: editors.remove_faq(f, faq_id))


@router.post("/{package_id}/faq/{faq_id}/move")
@limiter.limit(WRITE_LIMIT)
def move_faq(request: Request, package_id: int, faq_id: str, payload: MoveRequest,
             db: Session = Depends(get_db)):
    return _edit_faq(db, package_id, lambda f: editors.move_faq(f, faq_id, payload.direction))


# ---------------------------------------------------------------------------
# Accessibility info (activity policies)
# ---------------------------------------------------------------------------

def _edit_accessibility(db: Session, package_id: int, action) -> List[str]:
    service = PackageService(db)
    current = service.get_package(package_id)["accessibility_info"]
    return service.replace_accessibility_info(package_id, action(current))


@router.get("/{package_id}/accessibility")
@limiter.limit(READ_LIMIT)
def get_accessibility(request: Request, package_id: int, db: Session = Depends(get_db)):
    return PackageService(db).get_package(package_id)["accessibility_info"]


@router.put("/{package_id}/accessibility")
@limiter.limit(WRITE_LIMIT)
def replace_accessibility(request: Request, package_id: int, payload: AccessibilityList,
                          db: Session = Depends(get_db)):
    return PackageService(db).replace_accessibility_info(package_id, payload.items)


@router.post("/{package_id}/accessibility/toggle")
@limiter.limit(WRITE_LIMIT)
def toggle_accessibility(request: Request, package_id: int, payload: AccessibilityItem,
                         db: Session = Depends(get_db)):
    return _edit_accessibility(db, package_id, lambda items: editors.toggle_accessibility_info(items, payload.item))


@router.post("/{package_id}/accessibility")
@limiter.limit(WRITE_LIMIT)
def add_custom_accessibility(request: Request, package_id: int, payload: AccessibilityItem,
                             db: Session = Depends(get_db)):
    return _edit_accessibility(db, package_id,
                               lambda items: editors.add_custom_accessibility_info(items, payload.item))


@router.post("/{package_id}/accessibility/remove")
@limiter.limit(WRITE_LIMIT)
def remove_accessibility(request: Request, package_id: int, payload: AccessibilityItem,
                         db: Session = Depends(get_db)):
    return _edit_accessibility(db, package_id,
                               lambda items: editors.remove_accessibility_info(items, payload.item))
