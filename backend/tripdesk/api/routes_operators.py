"""
Tour Operator API Routes
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Optional
import logging

from tripdesk.core.rate_limiting import limiter, READ_LIMIT, WRITE_LIMIT
from tripdesk.db.database import get_db
from tripdesk.services.operator_service import OperatorService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/operators", tags=["operators"])


class OperatorCreate(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    company_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    contact_email: Optional[str] = Field(None, max_length=255)
    contact_phone: Optional[str] = Field(None, max_length=50)
    commission_rate: Optional[float] = Field(None, ge=0, le=100)


class OperatorUpdate(BaseModel):
    company_name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    contact_email: Optional[str] = Field(None, max_length=255)
    contact_phone: Optional[str] = Field(None, max_length=50)
    is_verified: Optional[bool] = None
    commission_rate: Optional[float] = Field(None, ge=0, le=100)


class EnsureProfile(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    company_name: Optional[str] = None


@router.post("", status_code=201)
@limiter.limit(WRITE_LIMIT)
def create_operator(request: Request, payload: OperatorCreate, db: Session = Depends(get_db)):
    return OperatorService(db).create(payload.model_dump())


@router.get("")
@limiter.limit(READ_LIMIT)
def list_operators(
    request: Request,
    verified: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return OperatorService(db).list(verified, search, limit, offset)


@router.post("/ensure")
@limiter.limit(WRITE_LIMIT)
def ensure_profile(request: Request, payload: EnsureProfile, db: Session = Depends(get_db)):
    """Existing profile for the user, or a new default one."""
    return OperatorService(db).ensure_profile(payload.user_id, payload.company_name or "My Company")


@router.get("/by-user/{user_id}")
@limiter.limit(READ_LIMIT)
def get_operator_by_user(request: Request, user_id: str, db: Session = Depends(get_db)):
    return OperatorService(db).get_by_user_id(user_id)


@router.get("/{operator_id}")
@limiter.limit(READ_LIMIT)
def get_operator(request: Request, operator_id: int, db: Session = Depends(get_db)):
    return OperatorService(db).get_by_id(operator_id)


@router.patch("/{operator_id}")
@limiter.limit(WRITE_LIMIT)
def update_operator(request: Request, operator_id: int, payload: OperatorUpdate,
                    db: Session = Depends(get_db)):
    return OperatorService(db).update(operator_id, payload.model_dump(exclude_unset=True))
