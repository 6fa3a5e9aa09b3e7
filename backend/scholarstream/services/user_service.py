"""User registration and role management"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from scholarstream.core.errors import ConflictError, NotFoundError, ValidationError
from scholarstream.db.store import Store, UpdateResult
from scholarstream.models.user import USER_ROLES, User

logger = logging.getLogger(__name__)


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "photo_url": user.photo_url,
        "role": user.role,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "last_login_at": user.last_login_at.isoformat() if user.last_login_at else None
    }


def register_user(store: Store, email: str, name: Optional[str] = None, photo_url: Optional[str] = None) -> Dict[str, Any]:
    """Register the caller. Self-registered users are always students."""
    if store.users.get_by_email(email):
        raise ConflictError("User already exists")

    user = store.users.add(User(email=email, name=name, photo_url=photo_url, role="student"))
    logger.info(f"Registered user {user.id} ({email})")
    return user_to_dict(user)


def get_profile(store: Store, email: str) -> Dict[str, Any]:
    """Return the caller's profile and record the sign-in time"""
    user = store.users.get_by_email(email)
    if not user:
        raise NotFoundError("User not found")
    store.users.update_fields(user.id, last_login_at=datetime.now(timezone.utc))
    return user_to_dict(user)


def list_users(store: Store) -> List[Dict[str, Any]]:
    return [user_to_dict(u) for u in store.users.list()]


def set_user_role(store: Store, user_id: int, role: str) -> UpdateResult:
    if role not in USER_ROLES:
        raise ValidationError(f"Invalid role '{role}'. Expected one of: {', '.join(USER_ROLES)}")
    result = store.users.update_fields(user_id, role=role)
    if not result.matched_count:
        raise NotFoundError("User not found")
    logger.info(f"User {user_id} role set to {role}")
    return result
