"""Security dependencies, identity verification, and rate limiting"""
import hashlib
import json
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2 import id_token

from scholarstream.core.config import settings
from scholarstream.core.logging import api_access_logger, security_logger
from scholarstream.db.redis import check_rate_limit as redis_check_rate_limit
from scholarstream.db.store import Store, get_store
from scholarstream.models.user import User

# Reused transport for fetching Google's token signing certificates
_google_request = GoogleRequest()

FIREBASE_ISSUER_PREFIX = "https://securetoken.google.com/"


def verify_identity_token(token: str) -> str:
    """Verify a Firebase ID token and return the email it was issued for.

    The token must be issued by, and addressed to, the configured Firebase
    project and carry a verified email. Raises ValueError (or a google.auth
    error) otherwise, and also when no project is configured.
    """
    project_id = settings.FIREBASE_PROJECT_ID
    if not project_id:
        security_logger.error("FIREBASE_PROJECT_ID is not set - refusing all identity tokens")
        raise ValueError("Identity verification is not configured")

    claims = id_token.verify_firebase_token(token, _google_request, audience=project_id) or {}

    if claims.get("iss") != f"{FIREBASE_ISSUER_PREFIX}{project_id}":
        raise ValueError(f"Token issuer {claims.get('iss')!r} does not match the project")
    if claims.get("email_verified") is not True:
        raise ValueError("Token email is not verified")

    email = claims.get("email")
    if not email:
        raise ValueError("Token does not carry an email address")
    return email.lower()


def get_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an 'Authorization: Bearer <token>' header"""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_auth(request: Request, authorization: Optional[str] = Header(None)) -> str:
    """Dependency: Require a verified identity token, return the caller's email"""
    token = get_bearer_token(authorization)
    if not token:
        raise HTTPException(401, "Unauthorized Access!")

    try:
        return verify_identity_token(token)
    except (ValueError, GoogleAuthError) as e:
        security_logger.warning(
            f"Identity token rejected - IP: {request.client.host if request.client else 'unknown'}, "
            f"Path: {request.url.path}, Reason: {e}"
        )
        raise HTTPException(401, "Unauthorized Access!")


def require_user(email: str = Depends(require_auth), store: Store = Depends(get_store)) -> User:
    """Dependency: Require a verified caller that is also a registered user"""
    user = store.users.get_by_email(email)
    if not user:
        raise HTTPException(404, "User not found")
    return user


def require_roles(*roles: str):
    """Build a dependency that only lets users with one of ``roles`` through"""
    def dependency(user: User = Depends(require_user)) -> User:
        if user.role not in roles:
            security_logger.warning(f"Role check failed - User: {user.id}, Role: {user.role}, Required: {roles}")
            raise HTTPException(403, "Forbidden Access!")
        return user
    return dependency


require_staff = require_roles("moderator", "admin")
require_admin = require_roles("admin")


def get_client_ip(request: Request) -> str:
    client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.client.host if request.client else "unknown"
    return client_ip


def get_client_identifier(request: Request) -> str:
    """Get a unique identifier for rate limiting"""
    token = get_bearer_token(request.headers.get("Authorization"))
    if token:
        # Never keep raw tokens in Redis keys
        return f"token:{hashlib.sha256(token.encode()).hexdigest()[:32]}"
    return f"ip:{get_client_ip(request)}"


def check_rate_limit(identifier: str, strict: bool = False) -> bool:
    """Check if request is within rate limit

    Args:
        identifier: Client identifier (token hash or IP)
        strict: If True, use stricter rate limits for state-changing operations

    Returns:
        True if within limit, False if exceeded
    """
    return redis_check_rate_limit(identifier, strict=strict)


def log_api_access(request: Request, status_code: int = 200, error: Optional[str] = None):
    """Log detailed API access information"""
    log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "method": request.method,
        "path": request.url.path,
        "query": str(request.url.query) if request.url.query else None,
        "client_ip": get_client_ip(request),
        "user_agent": request.headers.get("User-Agent", "unknown"),
        "origin": request.headers.get("Origin", "none"),
        "authenticated": bool(get_bearer_token(request.headers.get("Authorization"))),
        "status_code": status_code,
        "error": error
    }

    if error or status_code >= 400:
        api_access_logger.warning(f"API Access: {json.dumps(log_data)}")
    else:
        api_access_logger.info(f"API Access: {json.dumps(log_data)}")
