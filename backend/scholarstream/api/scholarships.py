"""Scholarships API routes"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from scholarstream.core.errors import ScholarStreamError, raise_http_error
from scholarstream.core.security import require_staff
from scholarstream.db.store import Store, get_store
from scholarstream.models.user import User
from scholarstream.schemas.scholarships import ScholarshipCreateRequest, ScholarshipUpdateRequest
from scholarstream.services.scholarship_service import (
    create_scholarship, delete_scholarship, get_scholarship, list_scholarships, update_scholarship
)

router = APIRouter(prefix="/scholarships", tags=["scholarships"])
logger = logging.getLogger(__name__)


@router.post("", status_code=201)
def post_scholarship(
    request_data: ScholarshipCreateRequest,
    staff: User = Depends(require_staff),
    store: Store = Depends(get_store)
):
    """Publish a new scholarship"""
    try:
        return {"scholarship": create_scholarship(store, request_data.model_dump(), posted_by=staff.email)}
    except ScholarStreamError as e:
        raise_http_error(e)


@router.get("")
def get_scholarships(
    search: Optional[str] = Query(None, max_length=100),
    category: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    store: Store = Depends(get_store)
):
    """Browse scholarships (public)"""
    return {"scholarships": list_scholarships(store, search, category, skip, limit)}


@router.get("/{scholarship_id}")
def get_scholarship_by_id(scholarship_id: int, store: Store = Depends(get_store)):
    try:
        return {"scholarship": get_scholarship(store, scholarship_id)}
    except ScholarStreamError as e:
        raise_http_error(e)


@router.patch("/{scholarship_id}")
def edit_scholarship(
    scholarship_id: int,
    request_data: ScholarshipUpdateRequest,
    staff: User = Depends(require_staff),
    store: Store = Depends(get_store)
):
    try:
        result = update_scholarship(
            store, scholarship_id, request_data.model_dump(exclude_unset=True, exclude_none=True)
        )
    except ScholarStreamError as e:
        raise_http_error(e)
    return result.to_dict()


@router.delete("/{scholarship_id}")
def remove_scholarship(
    scholarship_id: int,
    staff: User = Depends(require_staff),
    store: Store = Depends(get_store)
):
    try:
        deleted = delete_scholarship(store, scholarship_id)
    except ScholarStreamError as e:
        raise_http_error(e)
    logger.info(f"Staff user {staff.id} deleted scholarship {scholarship_id}")
    return {"deleted_count": deleted}
