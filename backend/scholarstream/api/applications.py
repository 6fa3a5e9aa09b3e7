"""Applications API routes"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from scholarstream.core.errors import ScholarStreamError, raise_http_error
from scholarstream.core.security import require_auth, require_staff, require_user
from scholarstream.db.store import Store, get_store
from scholarstream.models.user import User
from scholarstream.schemas.applications import (
    ApplicationStatusRequest, FeedbackRequest, SubmitApplicationRequest
)
from scholarstream.services.application_service import (
    get_application, list_applications, list_user_applications, reject_application,
    submit_application, update_application_status, update_feedback
)

router = APIRouter(prefix="/applications", tags=["applications"])
logger = logging.getLogger(__name__)


@router.post("")
def create_application(
    request_data: SubmitApplicationRequest,
    email: str = Depends(require_auth),
    store: Store = Depends(get_store)
):
    """Submit an application for a scholarship"""
    try:
        application = submit_application(
            store,
            email,
            request_data.scholarship_id,
            applicant_fields=request_data.applicant_fields,
            user_id=request_data.user_id
        )
    except ScholarStreamError as e:
        raise_http_error(e)
    return {"id": application["id"], "application": application}


@router.get("/me")
def get_my_applications(user: User = Depends(require_user), store: Store = Depends(get_store)):
    """List the caller's own applications, newest first"""
    return {"applications": list_user_applications(store, user)}


@router.get("")
def get_all_applications(
    application_status: Optional[str] = Query(None),
    payment_status: Optional[str] = Query(None),
    staff: User = Depends(require_staff),
    store: Store = Depends(get_store)
):
    """List all applications (moderators and admins)"""
    return {"applications": list_applications(store, application_status, payment_status)}


@router.get("/{application_id}")
def get_application_by_id(
    application_id: int,
    user: User = Depends(require_user),
    store: Store = Depends(get_store)
):
    try:
        return {"application": get_application(store, application_id, user)}
    except ScholarStreamError as e:
        raise_http_error(e)


@router.patch("/status/{application_id}")
def set_application_status(
    application_id: int,
    request_data: ApplicationStatusRequest,
    staff: User = Depends(require_staff),
    store: Store = Depends(get_store)
):
    """Change an application's review status"""
    try:
        result = update_application_status(store, application_id, request_data.application_status)
    except ScholarStreamError as e:
        raise_http_error(e)
    logger.info(f"Staff user {staff.id} set application {application_id} to {request_data.application_status}")
    return result.to_dict()


@router.patch("/feedback/{application_id}")
def set_application_feedback(
    application_id: int,
    request_data: FeedbackRequest,
    staff: User = Depends(require_staff),
    store: Store = Depends(get_store)
):
    """Attach reviewer feedback to an application"""
    try:
        return update_feedback(store, application_id, request_data.feedback).to_dict()
    except ScholarStreamError as e:
        raise_http_error(e)


@router.patch("/reject/{application_id}")
def reject_application_route(
    application_id: int,
    staff: User = Depends(require_staff),
    store: Store = Depends(get_store)
):
    """Shortcut for setting the status to rejected"""
    try:
        result = reject_application(store, application_id)
    except ScholarStreamError as e:
        raise_http_error(e)
    logger.info(f"Staff user {staff.id} rejected application {application_id}")
    return result.to_dict()
