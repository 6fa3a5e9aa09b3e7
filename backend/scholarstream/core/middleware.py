"""Middleware configuration for FastAPI application"""
import logging

from fastapi import Request, Response
from fastapi.middleware.cors import CORSMiddleware

from scholarstream.core.config import settings
from scholarstream.core.logging import security_logger
from scholarstream.core.security import check_rate_limit, get_client_identifier, log_api_access

logger = logging.getLogger(__name__)

# Stripe retries failed deliveries on its own schedule; probes must always answer
RATE_LIMIT_EXEMPT_PATHS = {"/stripe-webhook", "/health", "/metrics"}


def get_allowed_origins():
    """Get list of allowed CORS origins"""
    allowed_origins = [settings.CLIENT_URL, *settings.CORS_ORIGINS]
    if settings.ENVIRONMENT == "development":
        allowed_origins.extend([
            "http://localhost:5173",
            "http://localhost:5174",
            "http://127.0.0.1:5173"
        ])
    return allowed_origins


def setup_cors_middleware(app):
    """Setup CORS middleware for FastAPI app"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


async def security_middleware(request: Request, call_next):
    """Middleware for rate limiting and API access logging"""
    status_code = 500
    error = None

    try:
        path = request.url.path

        if path not in RATE_LIMIT_EXEMPT_PATHS and request.method != "OPTIONS":
            identifier = get_client_identifier(request)
            is_state_changing = request.method in ["POST", "PATCH", "DELETE", "PUT"]
            if not check_rate_limit(identifier, strict=is_state_changing):
                status_code = 429
                error = "Rate limit exceeded"
                security_logger.warning(f"Rate limit exceeded - Identifier: {identifier}, Path: {path}")
                response = Response(
                    content='{"error": "Rate limit exceeded. Please try again later."}',
                    status_code=429,
                    media_type="application/json"
                )
                origin = request.headers.get("Origin")
                if origin and origin in get_allowed_origins():
                    response.headers["Access-Control-Allow-Origin"] = origin
                    response.headers["Access-Control-Allow-Credentials"] = "true"
                return response

        response = await call_next(request)
        status_code = response.status_code
        return response

    except Exception as e:
        error = str(e)
        security_logger.error(f"Security middleware error: {error}", exc_info=True)
        raise
    finally:
        log_api_access(request, status_code, error)
