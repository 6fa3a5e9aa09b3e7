"""Users API routes"""
import logging
from fastapi import APIRouter, Depends

from scholarstream.core.errors import ScholarStreamError, raise_http_error
from scholarstream.core.security import require_admin, require_auth
from scholarstream.db.store import Store, get_store
from scholarstream.models.user import User
from scholarstream.schemas.users import RegisterUserRequest, RoleUpdateRequest
from scholarstream.services.user_service import get_profile, list_users, register_user, set_user_role

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)


@router.post("", status_code=201)
def register(
    request_data: RegisterUserRequest,
    email: str = Depends(require_auth),
    store: Store = Depends(get_store)
):
    """Register the signed-in caller as a student"""
    try:
        return {"user": register_user(store, email, request_data.name, request_data.photo_url)}
    except ScholarStreamError as e:
        raise_http_error(e)


@router.get("/me")
def get_me(email: str = Depends(require_auth), store: Store = Depends(get_store)):
    """Get the caller's profile and role"""
    try:
        return {"user": get_profile(store, email)}
    except ScholarStreamError as e:
        raise_http_error(e)


@router.get("")
def get_users(admin_user: User = Depends(require_admin), store: Store = Depends(get_store)):
    """List all users (admin only)"""
    return {"users": list_users(store)}


@router.patch("/{user_id}/role")
def update_role(
    user_id: int,
    request_data: RoleUpdateRequest,
    admin_user: User = Depends(require_admin),
    store: Store = Depends(get_store)
):
    """Change a user's role (admin only)"""
    try:
        result = set_user_role(store, user_id, request_data.role)
    except ScholarStreamError as e:
        raise_http_error(e)
    logger.info(f"Admin {admin_user.id} set role of user {user_id} to {request_data.role}")
    return result.to_dict()
