"""Stripe checkout and webhook reconciliation tests"""
import pytest
import stripe

from snapmatch.core.config import settings
from snapmatch.core.errors import NotConfigured, UpstreamFailure, ValidationFailure
from snapmatch.models import PurchaseItemType, PurchaseStatus, StripeEvent
from snapmatch.services.stripe_service import create_checkout_session, process_stripe_webhook


def checkout_event(event_id, event_type, session_id, payment_status="paid"):
    return {
        "id": event_id,
        "type": event_type,
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "payment_status": payment_status,
                "payment_intent": "pi_test_1",
                "customer_details": {"email": "Buyer@Example.com"},
            }
        },
    }


@pytest.mark.critical
class TestCheckoutSession:
    """Test Stripe checkout session creation"""

    def test_session_params(self, event, checkout_session_mock):
        session = create_checkout_session(event, PurchaseItemType.SINGLE_PHOTO, 500, "g@example.com", photo_id="p1")

        assert session == {"id": "cs_test_123", "url": "https://checkout.stripe.com/c/pay/cs_test_123"}
        params = checkout_session_mock.call_args.kwargs
        assert params["mode"] == "payment"
        assert params["customer_email"] == "g@example.com"
        assert params["line_items"][0]["price_data"]["unit_amount"] == 500
        assert params["line_items"][0]["price_data"]["product_data"]["name"] == "Summer Gala - Single Photo"
        assert params["metadata"] == {
            "event_id": event.id,
            "event_slug": "summer-gala",
            "item_type": "single_photo",
            "photo_id": "p1",
        }
        assert "/e/summer-gala?checkout=success&session_id={CHECKOUT_SESSION_ID}" in params["success_url"]

    def test_missing_key_is_not_configured(self, event, monkeypatch):
        monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "")
        with pytest.raises(NotConfigured):
            create_checkout_session(event, PurchaseItemType.ALL_PHOTOS, 2500, "g@example.com")

    def test_stripe_error_is_upstream_failure(self, event, checkout_session_mock):
        checkout_session_mock.side_effect = stripe.StripeError("card network down")
        with pytest.raises(UpstreamFailure):
            create_checkout_session(event, PurchaseItemType.ALL_PHOTOS, 2500, "g@example.com")


@pytest.mark.critical
class TestStripeWebhook:
    """Test webhook verification, logging, and reconciliation"""

    def test_completed_and_paid_marks_purchase_paid(self, db_session, event, make_purchase, construct_event_mock):
        purchase = make_purchase(event, status=PurchaseStatus.PENDING.value, session_id="cs_1")
        construct_event_mock.return_value = checkout_event("evt_1", "checkout.session.completed", "cs_1")

        result = process_stripe_webhook(b"{}", "t=1,v1=sig", db_session)

        assert result == {"received": True, "status": "success", "updated": 1}
        db_session.refresh(purchase)
        assert purchase.status == PurchaseStatus.PAID.value
        assert purchase.stripe_payment_id == "pi_test_1"
        assert purchase.buyer_email == "buyer@example.com"
        assert db_session.query(StripeEvent).filter(StripeEvent.stripe_event_id == "evt_1").one().processed

    def test_duplicate_delivery_is_acknowledged_once(self, db_session, event, make_purchase, construct_event_mock):
        make_purchase(event, status=PurchaseStatus.PENDING.value, session_id="cs_1")
        construct_event_mock.return_value = checkout_event("evt_1", "checkout.session.completed", "cs_1")

        process_stripe_webhook(b"{}", "t=1,v1=sig", db_session)
        result = process_stripe_webhook(b"{}", "t=1,v1=sig", db_session)

        assert result == {"received": True, "status": "already_processed"}
        assert db_session.query(StripeEvent).count() == 1

    def test_second_success_event_for_same_session_is_noop(self, db_session, event, make_purchase, construct_event_mock):
        make_purchase(event, status=PurchaseStatus.PENDING.value, session_id="cs_1")
        construct_event_mock.return_value = checkout_event("evt_1", "checkout.session.completed", "cs_1")
        process_stripe_webhook(b"{}", "t=1,v1=sig", db_session)

        construct_event_mock.return_value = checkout_event(
            "evt_2", "checkout.session.async_payment_succeeded", "cs_1"
        )
        result = process_stripe_webhook(b"{}", "t=1,v1=sig", db_session)

        assert result["updated"] == 0

    def test_unpaid_completion_is_ignored(self, db_session, event, make_purchase, construct_event_mock):
        purchase = make_purchase(event, status=PurchaseStatus.PENDING.value, session_id="cs_1")
        construct_event_mock.return_value = checkout_event(
            "evt_1", "checkout.session.completed", "cs_1", payment_status="unpaid"
        )

        result = process_stripe_webhook(b"{}", "t=1,v1=sig", db_session)

        assert result["updated"] == 0
        db_session.refresh(purchase)
        assert purchase.status == PurchaseStatus.PENDING.value

    def test_expired_session_marks_failed(self, db_session, event, make_purchase, construct_event_mock):
        purchase = make_purchase(event, status=PurchaseStatus.PENDING.value, session_id="cs_1")
        construct_event_mock.return_value = checkout_event(
            "evt_1", "checkout.session.expired", "cs_1", payment_status="unpaid"
        )

        process_stripe_webhook(b"{}", "t=1,v1=sig", db_session)

        db_session.refresh(purchase)
        assert purchase.status == PurchaseStatus.FAILED.value

    def test_late_failure_after_payment_keeps_paid(self, db_session, event, make_purchase, construct_event_mock):
        purchase = make_purchase(event, status=PurchaseStatus.PAID.value, session_id="cs_1")
        construct_event_mock.return_value = checkout_event(
            "evt_9", "checkout.session.async_payment_failed", "cs_1", payment_status="unpaid"
        )

        process_stripe_webhook(b"{}", "t=1,v1=sig", db_session)

        db_session.refresh(purchase)
        assert purchase.status == PurchaseStatus.PAID.value

    def test_bad_signature_writes_nothing(self, db_session, event, make_purchase, construct_event_mock):
        purchase = make_purchase(event, status=PurchaseStatus.PENDING.value, session_id="cs_1")
        construct_event_mock.side_effect = stripe.SignatureVerificationError("No signatures found", "t=1,v1=bad")

        with pytest.raises(ValidationFailure, match="signature"):
            process_stripe_webhook(b"{}", "t=1,v1=bad", db_session)

        assert db_session.query(StripeEvent).count() == 0
        db_session.refresh(purchase)
        assert purchase.status == PurchaseStatus.PENDING.value

    def test_missing_signature_header(self, db_session, construct_event_mock):
        with pytest.raises(ValidationFailure, match="header"):
            process_stripe_webhook(b"{}", None, db_session)
        construct_event_mock.assert_not_called()

    def test_missing_webhook_secret(self, db_session, monkeypatch):
        monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "")
        with pytest.raises(NotConfigured):
            process_stripe_webhook(b"{}", "t=1,v1=sig", db_session)

    def test_webhook_route(self, client, db_session, event, make_purchase, construct_event_mock):
        purchase = make_purchase(event, status=PurchaseStatus.PENDING.value, session_id="cs_1")
        construct_event_mock.return_value = checkout_event("evt_1", "checkout.session.completed", "cs_1")

        response = client.post(
            "/api/webhooks/stripe",
            content=b'{"id": "evt_1"}',
            headers={"stripe-signature": "t=1,v1=sig"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "success"
        assert construct_event_mock.call_args.args[0] == b'{"id": "evt_1"}'
        db_session.refresh(purchase)
        assert purchase.status == PurchaseStatus.PAID.value

    def test_webhook_route_rejects_bad_signature(self, client, construct_event_mock):
        construct_event_mock.side_effect = stripe.SignatureVerificationError("bad", "t=1,v1=bad")

        response = client.post("/api/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1,v1=bad"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid Stripe signature."}

    def test_webhook_route_without_secret(self, client, monkeypatch):
        monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "")

        response = client.post("/api/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1,v1=sig"})

        assert response.status_code == 503
