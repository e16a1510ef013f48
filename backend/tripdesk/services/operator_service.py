"""
Tour Operator Service
Operator profiles, one per user account.
"""

from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from tripdesk.core.exceptions import ConflictError, NotFoundError, ValidationError
from tripdesk.db.models import TourOperator
from tripdesk.db.repositories import commit_or_raise, get_or_404
from tripdesk.db.serializers import model_to_dict

logger = logging.getLogger(__name__)

OPERATOR_FIELDS = {
    "company_name", "description", "contact_email", "contact_phone", "rating",
    "review_count", "is_verified", "commission_rate",
}
DEFAULT_COMPANY_NAME = "My Company"


class OperatorService:

    def __init__(self, db: Session):
        self.db = db

    def _find_by_user(self, user_id: str) -> Optional[TourOperator]:
        return self.db.query(TourOperator).filter(TourOperator.user_id == user_id).first()

    def get_by_user_id(self, user_id: str) -> Dict[str, Any]:
        operator = self._find_by_user(user_id)
        if operator is None:
            raise NotFoundError("Tour operator", user_id, {"user_id": user_id})
        return model_to_dict(operator)

    def get_by_id(self, operator_id: int) -> Dict[str, Any]:
        return model_to_dict(get_or_404(self.db, TourOperator, operator_id, "Tour operator"))

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        user_id = data.get("user_id")
        if not user_id:
            raise ValidationError("user_id is required", {"field": "user_id"})
        if not (data.get("company_name") or "").strip():
            raise ValidationError("company_name is required", {"field": "company_name"})
        if self._find_by_user(user_id) is not None:
            raise ConflictError("Tour operator profile already exists", {"user_id": user_id})

        operator = TourOperator(
            user_id=user_id,
            **{k: v for k, v in data.items() if k in OPERATOR_FIELDS and v is not None},
        )
        self.db.add(operator)
        commit_or_raise(self.db, "create tour operator")
        self.db.refresh(operator)
        logger.info(f"Created tour operator {operator.id} '{operator.company_name}' for user {user_id}")
        return model_to_dict(operator)

    def update(self, operator_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        operator = get_or_404(self.db, TourOperator, operator_id, "Tour operator")
        if "company_name" in changes and not (changes["company_name"] or "").strip():
            raise ValidationError("company_name must not be empty", {"field": "company_name"})
        for key, value in changes.items():
            if key in OPERATOR_FIELDS:
                setattr(operator, key, value)
        commit_or_raise(self.db, "update tour operator")
        self.db.refresh(operator)
        return model_to_dict(operator)

    def list(self, verified: Optional[bool] = None, search: Optional[str] = None,
             limit: int = 10, offset: int = 0) -> List[Dict[str, Any]]:
        query = self.db.query(TourOperator)
        if verified is not None:
            query = query.filter(TourOperator.is_verified == verified)
        if search:
            query = query.filter(TourOperator.company_name.ilike(f"%{search}%"))
        rows = query.order_by(TourOperator.company_name.asc(), TourOperator.id.asc()) \
            .limit(limit).offset(offset).all()
        return [model_to_dict(r) for r in rows]

    def ensure_profile(self, user_id: str, company_name: str = DEFAULT_COMPANY_NAME) -> Dict[str, Any]:
        """Return the user's operator profile, creating a default one when missing."""
        existing = self._find_by_user(user_id)
        if existing is not None:
            return model_to_dict(existing)
        return self.create({"user_id": user_id, "company_name": company_name or DEFAULT_COMPANY_NAME})
