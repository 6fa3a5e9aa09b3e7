import hashlib
import json
import logging
import stripe
from typing import Dict, Optional, Any
from datetime import datetime, timezone

from scholarstream.core.config import settings
from scholarstream.core.errors import (
    ConflictError, NotFoundError, PaymentProviderError, PermissionDeniedError, ValidationError
)
from scholarstream.core.logging import payments_logger
from scholarstream.core.metrics import checkout_sessions_counter, webhook_events_counter
from scholarstream.db.store import Store, UpdateResult
from scholarstream.services.scholarship_service import require_whole_amount

logger = logging.getLogger(__name__)

# Configure Stripe: fail fast, never retry behind the caller's back
stripe.api_key = settings.STRIPE_SECRET_KEY
stripe.max_network_retries = 0
stripe.default_http_client = stripe.RequestsClient(timeout=settings.STRIPE_TIMEOUT_SECONDS)

CHECKOUT_COMPLETED = "checkout.session.completed"

# ============================================================================
# STRIPE OBJECT ACCESS HELPER
# ============================================================================

def _get_stripe_value(obj: Any, key: str, default=None):
    """Safely extract value from Stripe object (supports both dict and attribute access)."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    try:
        value = obj[key]
    except (KeyError, TypeError, AttributeError):
        value = getattr(obj, key, None)
    return default if value is None else value

# ============================================================================
# CHECKOUT
# ============================================================================

def compute_checkout_amount(application_fee: Any, service_charge: Any) -> int:
    """Total payable in the provider's minor units (cents for USD).

    Both inputs must be whole, non-negative currency amounts and the total must
    be positive; anything else is refused instead of producing a free or
    negative charge.
    """
    fee = require_whole_amount(application_fee, "application_fee")
    charge = require_whole_amount(service_charge, "service_charge")
    total = fee + charge
    if total <= 0:
        raise ValidationError("Application has nothing to pay")
    return total * settings.STRIPE_MINOR_UNIT_FACTOR


def checkout_idempotency_key(application_id: int, checkout_params: Dict[str, Any]) -> str:
    """Deterministic key so repeated clicks reuse one Stripe session.

    The key covers every request parameter, so a changed request (renamed
    scholarship, new fee, another CLIENT_URL) gets a fresh key.
    """
    fingerprint = hashlib.sha256(json.dumps(checkout_params, sort_keys=True).encode()).hexdigest()[:32]
    return f"checkout-{application_id}-{fingerprint}"


def create_checkout_session(
    store: Store,
    application_id: int,
    payer_email: Optional[str] = None
) -> Dict[str, Optional[str]]:
    """Open a hosted checkout session for an application's fee.

    Returns the session id and the redirect URL. The application id travels in
    the session metadata so the webhook can find the application again. When
    ``payer_email`` is given it must be the applicant's own email.
    """
    application = store.applications.get(application_id)
    if not application:
        raise NotFoundError("Application not found")
    if payer_email is not None and application.user_email != payer_email:
        checkout_sessions_counter.labels(status="forbidden").inc()
        raise PermissionDeniedError("Only the applicant can pay for this application")

    scholarship = store.scholarships.get(application.scholarship_id)
    if not scholarship:
        raise NotFoundError("Scholarship not found")

    if application.payment_status == "paid":
        checkout_sessions_counter.labels(status="already_paid").inc()
        raise ConflictError("Application fee has already been paid")

    unit_amount = compute_checkout_amount(application.application_fee, application.service_charge)

    product_data = {"name": scholarship.name}
    if scholarship.image:
        product_data["images"] = [scholarship.image]

    checkout_params = {
        "mode": "payment",
        "payment_method_types": ["card"],
        "line_items": [{
            "price_data": {
                "currency": settings.STRIPE_CURRENCY,
                "unit_amount": unit_amount,
                "product_data": product_data,
            },
            "quantity": 1,
        }],
        "customer_email": application.user_email,
        "metadata": {
            "application_id": str(application.id),
            "scholarship_id": str(scholarship.id),
            "user_email": application.user_email,
        },
        "success_url": f"{settings.CLIENT_URL}/payment-success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{settings.CLIENT_URL}/payment-cancelled/{scholarship.id}",
    }

    try:
        session = stripe.checkout.Session.create(
            **checkout_params,
            idempotency_key=checkout_idempotency_key(application.id, checkout_params)
        )
    except stripe.StripeError as e:
        checkout_sessions_counter.labels(status="error").inc()
        logger.error(f"Stripe rejected checkout for application {application.id}: {e}")
        raise PaymentProviderError("Payment provider could not create a checkout session")

    checkout_sessions_counter.labels(status="created").inc()
    payments_logger.info(
        f"Checkout session {session.id} created for application {application.id} ({unit_amount} minor units)"
    )
    return {"id": session.id, "url": session.url}

# ============================================================================
# WEBHOOK
# ============================================================================

def handle_checkout_completed(session: Any, store: Store) -> UpdateResult:
    """Mark the application named in the session metadata as paid"""
    metadata = _get_stripe_value(session, "metadata", {})
    raw_id = _get_stripe_value(metadata, "application_id")
    session_id = _get_stripe_value(session, "id")

    try:
        application_id = int(raw_id)
    except (TypeError, ValueError):
        webhook_events_counter.labels(event_type=CHECKOUT_COMPLETED, outcome="unmatched").inc()
        payments_logger.warning(f"Checkout session {session_id} has no usable application_id in metadata: {raw_id!r}")
        return UpdateResult(0, 0)

    result = store.applications.mark_paid(application_id, datetime.now(timezone.utc), session_id)

    if not result.matched_count:
        webhook_events_counter.labels(event_type=CHECKOUT_COMPLETED, outcome="unmatched").inc()
        payments_logger.warning(f"Checkout session {session_id} completed for unknown application {application_id}")
    elif result.modified_count:
        webhook_events_counter.labels(event_type=CHECKOUT_COMPLETED, outcome="paid").inc()
        payments_logger.info(f"Application {application_id} marked paid (session {session_id})")
    else:
        webhook_events_counter.labels(event_type=CHECKOUT_COMPLETED, outcome="redelivered").inc()
        payments_logger.info(f"Application {application_id} was already paid (session {session_id})")
    return result


def process_stripe_webhook(payload: bytes, sig_header: str, store: Store) -> Dict[str, Any]:
    """Verify and apply a Stripe webhook delivery

    Args:
        payload: Raw request body as bytes (must not be parsed by middleware)
        sig_header: Stripe signature header
        store: Store access for the application update

    Returns:
        Acknowledgement body for Stripe

    Raises:
        ValueError: For a payload that is not a valid event
        stripe.SignatureVerificationError: For invalid signature
        RuntimeError: If no webhook secret is configured
    """
    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("Webhook secret not configured")
        raise RuntimeError("Webhook secret not configured")

    # Signature verification must see the exact bytes Stripe sent
    event = stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)

    event_type = event["type"]
    if event_type == CHECKOUT_COMPLETED:
        handle_checkout_completed(event["data"]["object"], store)
    else:
        webhook_events_counter.labels(event_type=event_type, outcome="ignored").inc()
        logger.debug(f"Ignoring webhook event {event['id']} of type {event_type}")

    return {"received": True}
