"""Payment API routes (Stripe checkout and webhook)"""
import logging
import stripe
from fastapi import APIRouter, Depends, HTTPException, Request

from scholarstream.core.errors import ScholarStreamError, raise_http_error
from scholarstream.core.logging import security_logger
from scholarstream.core.security import require_auth
from scholarstream.db.store import Store, get_store
from scholarstream.schemas.payments import CheckoutSessionRequest
from scholarstream.services.stripe_service import create_checkout_session, process_stripe_webhook

router = APIRouter(tags=["payments"])
logger = logging.getLogger(__name__)


@router.post("/create-checkout-session")
def create_checkout_session_route(
    checkout_request: CheckoutSessionRequest,
    email: str = Depends(require_auth),
    store: Store = Depends(get_store)
):
    """Create a Stripe checkout session for an application's fee"""
    try:
        session = create_checkout_session(store, checkout_request.application_id, payer_email=email)
    except ScholarStreamError as e:
        raise_http_error(e)
    return {"url": session["url"], "session_id": session["id"]}


@router.post("/stripe-webhook")
async def stripe_webhook(request: Request, store: Store = Depends(get_store)):
    """Handle Stripe webhook events

    Note: This route must be excluded from any global JSON parsing middleware
    to ensure the request body remains as raw bytes for signature verification.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        security_logger.warning("Stripe webhook delivered without a signature header")
        raise HTTPException(400, "Missing stripe-signature header")

    try:
        return process_stripe_webhook(payload, sig_header, store)
    except stripe.SignatureVerificationError as e:
        security_logger.warning(f"Invalid webhook signature: {e}")
        raise HTTPException(400, "Invalid signature")
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise HTTPException(400, "Invalid payload")
