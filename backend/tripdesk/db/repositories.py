"""
Repository pattern for data access.
Query building for packages plus the shared commit / lookup helpers every
service uses, so database failures surface as service exceptions.
"""

from typing import List, Optional, Tuple, Type, TypeVar, Any
from sqlalchemy.orm import Session, Query
from sqlalchemy import or_, func, String, cast
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import logging

from tripdesk.core.exceptions import ConflictError, DatabaseError, NotFoundError, ValidationError
from tripdesk.db.models import Package, TourOperator

logger = logging.getLogger(__name__)

T = TypeVar("T")

PACKAGE_SORT_COLUMNS = {
    "title": Package.title,
    "name": Package.title,
    "price": Package.price_adult,
    "rating": Package.rating,
    "duration": Package.duration_days,
    "created_at": Package.created_at,
    "createdAt": Package.created_at,
}


# ============================================================================
# SHARED HELPERS
# ============================================================================

def get_or_404(db: Session, model: Type[T], record_id: Any, entity: Optional[str] = None) -> T:
    """Load a row by primary key or raise NotFoundError."""
    try:
        record = db.get(model, record_id)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching {model.__name__} {record_id}: {e}")
        raise DatabaseError(f"Failed to fetch {entity or model.__name__}",
                            {"operation": "query"}, e)
    if record is None:
        raise NotFoundError(entity or model.__name__, record_id)
    return record


def commit_or_raise(db: Session, operation: str) -> None:
    """Commit the unit of work; roll back and translate driver errors."""
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Integrity error during {operation}: {e.orig}")
        raise ConflictError(f"Failed to {operation}: conflicting or referenced data",
                            {"operation": operation}, e)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error during {operation}: {e}")
        raise DatabaseError(f"Failed to {operation}", {"operation": operation}, e)


def check_choice(value: Optional[str], allowed, field: str) -> Optional[str]:
    """Reject values outside an enumeration; None passes through."""
    if value is not None and value not in allowed:
        raise ValidationError(
            f"Invalid {field}: {value}. Expected one of {', '.join(allowed)}",
            {"field": field, "value": value},
        )
    return value


def json_array_contains(column, value: str):
    """
    Case-insensitive "array contains element" predicate on a JSON column.
    Matches the quoted element inside the serialized array, which works the
    same on PostgreSQL json and SQLite text storage.
    """
    needle = str(value).replace('"', "").replace("%", r"\%").replace("_", r"\_")
    return cast(column, String).ilike(f'%"{needle}"%', escape="\\")


def paginate(query: Query, limit: int, offset: int) -> Tuple[List[Any], int]:
    """Return one page of results plus the unpaginated total."""
    try:
        total = query.order_by(None).count()
        items = query.limit(limit).offset(offset).all()
    except SQLAlchemyError as e:
        logger.error(f"Paginated query failed: {e}")
        raise DatabaseError("Failed to fetch records", {"operation": "query"}, e)
    return items, total


def page_envelope(items: List[Any], total: int, page: int, limit: int) -> dict:
    """Paginated response body shared by list endpoints."""
    total_pages = (total + limit - 1) // limit if limit else 0
    return {
        "data": items,
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


# ============================================================================
# PACKAGES
# ============================================================================

class PackageRepository:
    """
    Query builder for the packages table.
    All filters are optional and only applied when provided.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, package_id: int) -> Package:
        return get_or_404(self.db, Package, package_id, "Package")

    def filtered_query(
        self,
        type: Optional[str] = None,
        types: Optional[List[str]] = None,
        status: Optional[str] = None,
        difficulty: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        destination: Optional[str] = None,
        destinations_any: Optional[List[str]] = None,
        tags: Optional[List[str]] = None,
        trip_type_tag: Optional[str] = None,
        is_featured: Optional[bool] = None,
        tour_operator_id: Optional[int] = None,
        operator_ids: Optional[List[int]] = None,
        min_duration: Optional[int] = None,
        max_duration: Optional[int] = None,
        duration_days: Optional[int] = None,
        min_rating: Optional[float] = None,
        search_text: Optional[str] = None,
    ) -> Query:
        query = self.db.query(Package)

        if type:
            query = query.filter(Package.type == type)
        if types:
            query = query.filter(Package.type.in_(types))
        if status:
            query = query.filter(Package.status == status)
        if difficulty:
            query = query.filter(Package.difficulty == difficulty)

        # Price filter (adult price)
        if min_price is not None:
            query = query.filter(Package.price_adult >= min_price)
        if max_price is not None:
            query = query.filter(Package.price_adult <= max_price)

        # Destination: single element or any-of
        if destination:
            query = query.filter(json_array_contains(Package.destinations, destination))
        if destinations_any:
            query = query.filter(or_(*[
                json_array_contains(Package.destinations, d) for d in destinations_any
            ]))

        # Tags: every requested tag must be present
        for tag in tags or []:
            query = query.filter(json_array_contains(Package.tags, tag))
        if trip_type_tag:
            query = query.filter(json_array_contains(Package.tags, trip_type_tag))

        if is_featured is not None:
            query = query.filter(Package.is_featured == is_featured)
        if tour_operator_id is not None:
            query = query.filter(Package.tour_operator_id == tour_operator_id)
        if operator_ids:
            query = query.filter(Package.tour_operator_id.in_(operator_ids))

        # Duration filter (days)
        if duration_days is not None:
            query = query.filter(Package.duration_days == duration_days)
        if min_duration is not None:
            query = query.filter(Package.duration_days >= min_duration)
        if max_duration is not None:
            query = query.filter(Package.duration_days <= max_duration)

        if min_rating:
            query = query.filter(Package.rating >= min_rating)

        # Text search on title / description
        if search_text:
            pattern = f"%{search_text}%"
            query = query.filter(or_(
                Package.title.ilike(pattern),
                Package.description.ilike(pattern),
            ))

        return query

    def sorted(self, query: Query, sort_by: Optional[str], sort_order: str = "desc") -> Query:
        column = PACKAGE_SORT_COLUMNS.get(sort_by or "created_at", Package.created_at)
        ordered = column.asc() if sort_order == "asc" else column.desc()
        return query.order_by(ordered, Package.id.asc())

    def active_for_destination(self, destination: str) -> List[Package]:
        """
        ACTIVE packages whose destinations contain `destination`, compared
        with str.casefold like the recommendation scorer. Matched in Python:
        SQLite's LIKE folds ASCII letters only.
        """
        wanted = (destination or "").strip().casefold()
        if not wanted:
            return []
        try:
            rows = self.filtered_query(status="ACTIVE").order_by(Package.id.asc()).all()
        except SQLAlchemyError as e:
            logger.error(f"Destination query error for {destination}: {e}")
            raise DatabaseError("Failed to fetch packages", {"destination": destination}, e)
        return [p for p in rows if any(str(d).strip().casefold() == wanted for d in p.destinations or [])]

    def browse_with_operator(self, query: Query, limit: Optional[int] = None) -> List[Tuple[Package, TourOperator]]:
        """Join operator rows; marketplace ordering is rating desc, newest first."""
        joined = query.add_entity(TourOperator) \
            .join(TourOperator, Package.tour_operator_id == TourOperator.id) \
            .order_by(Package.rating.desc(), Package.created_at.desc(), Package.id.asc())
        if limit:
            joined = joined.limit(limit)
        try:
            return joined.all()
        except SQLAlchemyError as e:
            logger.error(f"Browse query error: {e}")
            raise DatabaseError("Failed to search packages", {"operation": "browse"}, e)

    def stats_rows(self, tour_operator_id: Optional[int] = None) -> List[Tuple[str, float, float]]:
        """(status, price_adult, rating) rows for package statistics."""
        query = self.db.query(Package.status, Package.price_adult, Package.rating)
        if tour_operator_id is not None:
            query = query.filter(Package.tour_operator_id == tour_operator_id)
        try:
            return query.all()
        except SQLAlchemyError as e:
            logger.error(f"Package stats query error: {e}")
            raise DatabaseError("Failed to fetch package statistics", {"operation": "stats"}, e)

    def count_packages(self) -> int:
        return self.db.query(func.count(Package.id)).scalar() or 0
