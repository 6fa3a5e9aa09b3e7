"""Domain errors raised by the service layer.

Services raise these; routes turn them into HTTP responses with
``raise_http_error``. They subclass ``ValueError`` so callers that only care
about "the request was bad" can keep catching ``ValueError``.
"""
from fastapi import HTTPException


class ScholarStreamError(ValueError):
    """Base class for errors the API reports back to the caller"""
    status_code = 400


class ValidationError(ScholarStreamError):
    status_code = 400


class NotFoundError(ScholarStreamError):
    status_code = 404


class ConflictError(ScholarStreamError):
    status_code = 409


class PermissionDeniedError(ScholarStreamError):
    status_code = 403


class DeadlineExpiredError(ScholarStreamError):
    status_code = 400


class InvalidTransitionError(ScholarStreamError):
    status_code = 400


class PaymentProviderError(ScholarStreamError):
    """Stripe rejected or failed a call"""
    status_code = 502


def raise_http_error(error: ScholarStreamError):
    """Translate a domain error into an HTTPException"""
    raise HTTPException(error.status_code, str(error)) from error
