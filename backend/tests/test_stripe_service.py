"""Checkout session and webhook processing tests"""
import pytest
import stripe
from datetime import datetime, timezone
from unittest.mock import Mock, patch

from scholarstream.core.config import settings
from scholarstream.core.errors import (
    ConflictError, NotFoundError, PaymentProviderError, PermissionDeniedError, ValidationError
)
from scholarstream.models.application import Application
from scholarstream.services.application_service import submit_application
from scholarstream.services.scholarship_service import update_scholarship
from scholarstream.services.stripe_service import (
    checkout_idempotency_key, compute_checkout_amount, create_checkout_session,
    handle_checkout_completed, process_stripe_webhook
)

from conftest import checkout_completed_event, sign_stripe_payload


@pytest.fixture(scope="function")
def mock_session_create():
    with patch.object(stripe.checkout.Session, "create") as mock_create:
        mock_create.return_value = Mock(id="cs_test_abc", url="https://checkout.stripe.com/c/pay/cs_test_abc")
        yield mock_create


@pytest.fixture(scope="function")
def application(store, student, scholarship):
    result = submit_application(store, student.email, scholarship.id)
    return store.applications.get(result["id"])


@pytest.mark.critical
class TestCheckoutAmount:

    def test_fee_plus_service_charge_in_minor_units(self):
        assert compute_checkout_amount(50, 10) == 6000

    def test_whole_float_amounts_are_accepted(self):
        assert compute_checkout_amount(25.0, 5) == 3000

    @pytest.mark.parametrize("fee,charge", [
        (None, 10),
        (50, None),
        ("50", 10),
        (50.5, 10),
        (True, 10),
        (-5, 10),
        (0, 0),
    ])
    def test_bad_amounts_are_refused(self, fee, charge):
        with pytest.raises(ValidationError):
            compute_checkout_amount(fee, charge)


@pytest.mark.critical
class TestCreateCheckoutSession:

    def test_creates_session_with_application_metadata(self, store, application, scholarship, mock_session_create):
        result = create_checkout_session(store, application.id)

        assert result == {"id": "cs_test_abc", "url": "https://checkout.stripe.com/c/pay/cs_test_abc"}

        kwargs = mock_session_create.call_args.kwargs
        assert kwargs["mode"] == "payment"
        assert kwargs["customer_email"] == "student@example.com"
        assert kwargs["metadata"]["application_id"] == str(application.id)

        line_item = kwargs["line_items"][0]
        assert line_item["quantity"] == 1
        assert line_item["price_data"]["unit_amount"] == 6000
        assert line_item["price_data"]["currency"] == "usd"
        assert line_item["price_data"]["product_data"]["name"] == scholarship.name
        assert line_item["price_data"]["product_data"]["images"] == [scholarship.image]

        assert kwargs["cancel_url"].endswith(f"/payment-cancelled/{scholarship.id}")
        assert "{CHECKOUT_SESSION_ID}" in kwargs["success_url"]

    def test_repeated_clicks_send_the_same_idempotency_key(self, store, application, mock_session_create):
        create_checkout_session(store, application.id)
        create_checkout_session(store, application.id)

        keys = [c.kwargs["idempotency_key"] for c in mock_session_create.call_args_list]
        assert keys[0] == keys[1]
        assert keys[0].startswith(f"checkout-{application.id}-")

    def test_scholarship_edit_changes_the_idempotency_key(self, store, application, scholarship, mock_session_create):
        create_checkout_session(store, application.id)
        update_scholarship(store, scholarship.id, {"name": "Renamed Scholarship"})
        create_checkout_session(store, application.id)

        first, second = mock_session_create.call_args_list
        assert first.kwargs["line_items"][0]["price_data"]["product_data"]["name"] != \
            second.kwargs["line_items"][0]["price_data"]["product_data"]["name"]
        assert first.kwargs["idempotency_key"] != second.kwargs["idempotency_key"]

    def test_idempotency_key_ignores_parameter_order(self):
        params = {"mode": "payment", "metadata": {"application_id": "1", "scholarship_id": "2"}}
        reordered = {"metadata": {"scholarship_id": "2", "application_id": "1"}, "mode": "payment"}
        assert checkout_idempotency_key(1, params) == checkout_idempotency_key(1, reordered)
        assert checkout_idempotency_key(1, params) != checkout_idempotency_key(2, params)

    def test_applicant_may_pay(self, store, application, student, mock_session_create):
        result = create_checkout_session(store, application.id, payer_email=student.email)
        assert result["id"] == "cs_test_abc"

    def test_other_user_cannot_pay_for_application(self, store, application, other_student, mock_session_create):
        with pytest.raises(PermissionDeniedError):
            create_checkout_session(store, application.id, payer_email=other_student.email)
        mock_session_create.assert_not_called()

    def test_unknown_application_is_not_found(self, store, mock_session_create):
        with pytest.raises(NotFoundError):
            create_checkout_session(store, 9999)
        mock_session_create.assert_not_called()

    def test_paid_application_is_not_charged_again(self, store, application, mock_session_create):
        store.applications.mark_paid(application.id, datetime.now(timezone.utc))

        with pytest.raises(ConflictError):
            create_checkout_session(store, application.id)
        mock_session_create.assert_not_called()

    def test_missing_fee_is_refused(self, store, application, db_session, mock_session_create):
        application.application_fee = None
        db_session.commit()

        with pytest.raises(ValidationError):
            create_checkout_session(store, application.id)
        mock_session_create.assert_not_called()

    def test_stripe_failure_surfaces_as_provider_error(self, store, application, mock_session_create):
        mock_session_create.side_effect = stripe.APIConnectionError("network unreachable")

        with pytest.raises(PaymentProviderError):
            create_checkout_session(store, application.id)
        assert mock_session_create.call_count == 1


@pytest.mark.critical
class TestWebhookProcessing:

    def test_completion_event_marks_application_paid(self, store, application, webhook_secret):
        payload = checkout_completed_event(application.id, session_id="cs_live_1")

        result = process_stripe_webhook(payload, sign_stripe_payload(payload), store)

        assert result == {"received": True}
        stored = store.applications.get(application.id)
        assert stored.payment_status == "paid"
        assert stored.paid_at is not None
        assert stored.stripe_session_id == "cs_live_1"

    def test_redelivery_is_idempotent(self, store, application, webhook_secret):
        payload = checkout_completed_event(application.id)

        process_stripe_webhook(payload, sign_stripe_payload(payload), store)
        first_paid_at = store.applications.get(application.id).paid_at

        result = process_stripe_webhook(payload, sign_stripe_payload(payload), store)

        assert result == {"received": True}
        stored = store.applications.get(application.id)
        assert stored.payment_status == "paid"
        assert stored.paid_at == first_paid_at

    def test_bad_signature_is_refused_without_mutation(self, store, application, webhook_secret):
        payload = checkout_completed_event(application.id)
        forged = sign_stripe_payload(payload, secret="whsec_wrong")

        with pytest.raises(stripe.SignatureVerificationError):
            process_stripe_webhook(payload, forged, store)

        assert store.applications.get(application.id).payment_status == "unpaid"

    def test_tampered_body_is_refused(self, store, application, webhook_secret):
        payload = checkout_completed_event(application.id)
        signature = sign_stripe_payload(payload)
        tampered = payload.replace(b'"cs_test_123"', b'"cs_test_999"')

        with pytest.raises(stripe.SignatureVerificationError):
            process_stripe_webhook(tampered, signature, store)
        assert store.applications.get(application.id).payment_status == "unpaid"

    def test_other_event_types_are_acknowledged_and_ignored(self, store, application, webhook_secret):
        payload = (
            b'{"id": "evt_x", "object": "event", "type": "payment_intent.created",'
            b' "data": {"object": {"id": "pi_1", "object": "payment_intent"}}}'
        )

        assert process_stripe_webhook(payload, sign_stripe_payload(payload), store) == {"received": True}
        assert store.applications.get(application.id).payment_status == "unpaid"

    def test_unknown_application_is_acknowledged(self, store, webhook_secret, db_session):
        payload = checkout_completed_event(31337)

        assert process_stripe_webhook(payload, sign_stripe_payload(payload), store) == {"received": True}
        assert db_session.query(Application).count() == 0

    def test_missing_secret_is_a_server_error(self, store):
        payload = checkout_completed_event(1)
        with patch.object(settings, "STRIPE_WEBHOOK_SECRET", ""):
            with pytest.raises(RuntimeError):
                process_stripe_webhook(payload, sign_stripe_payload(payload), store)


@pytest.mark.high
class TestHandleCheckoutCompleted:

    def test_missing_metadata_matches_nothing(self, store):
        result = handle_checkout_completed({"id": "cs_1", "metadata": {}}, store)
        assert result.matched_count == 0

    def test_non_numeric_application_id_matches_nothing(self, store):
        result = handle_checkout_completed({"id": "cs_1", "metadata": {"application_id": "abc"}}, store)
        assert result.matched_count == 0

    def test_plain_dict_session_is_supported(self, store, application):
        result = handle_checkout_completed(
            {"id": "cs_1", "metadata": {"application_id": str(application.id)}}, store
        )
        assert result.to_dict() == {"matched_count": 1, "modified_count": 1}
