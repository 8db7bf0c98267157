"""Stripe checkout sessions and webhook reconciliation"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from snapmatch.core.config import settings
from snapmatch.core.errors import NotConfigured, UpstreamFailure, ValidationFailure
from snapmatch.core.metrics import stripe_webhooks_counter
from snapmatch.models.event import Event
from snapmatch.models.purchase import PurchaseItemType
from snapmatch.models.stripe_event import StripeEvent
from snapmatch.services.entitlement_service import PaymentOutcome, reconcile

logger = logging.getLogger(__name__)
payments_logger = logging.getLogger("payments")

# Configure Stripe
stripe.api_key = settings.STRIPE_SECRET_KEY

PAID_PAYMENT_STATUSES = ("paid", "no_payment_required")


# ============================================================================
# CHECKOUT
# ============================================================================

def _require_stripe() -> None:
    if not settings.STRIPE_SECRET_KEY:
        raise NotConfigured("Stripe checkout is not configured.")
    stripe.api_key = settings.STRIPE_SECRET_KEY


def create_checkout_session(
    event: Event,
    item_type: PurchaseItemType,
    amount: int,
    buyer_email: str,
    photo_id: Optional[str] = None
) -> Dict[str, str]:
    """Create a one-off payment checkout session for an event purchase

    Returns:
        Dict with the session ``id`` and hosted checkout ``url``

    Raises:
        NotConfigured: If STRIPE_SECRET_KEY is missing
        UpstreamFailure: If Stripe rejects the request
    """
    _require_stripe()

    item_type = PurchaseItemType(item_type)
    label = "Single Photo" if item_type == PurchaseItemType.SINGLE_PHOTO else "All Photos"
    web_base_url = settings.FRONTEND_URL.rstrip("/")

    checkout_params = {
        "mode": "payment",
        "customer_email": buyer_email,
        "success_url": f"{web_base_url}/e/{event.slug}?checkout=success&session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{web_base_url}/e/{event.slug}?checkout=cancelled",
        "line_items": [{
            "quantity": 1,
            "price_data": {
                "currency": settings.CHECKOUT_CURRENCY,
                "unit_amount": amount,
                "product_data": {"name": f"{event.name} - {label}"},
            },
        }],
        "metadata": {
            "event_id": event.id,
            "event_slug": event.slug,
            "item_type": item_type.value,
            "photo_id": photo_id or "",
        },
    }

    try:
        session = stripe.checkout.Session.create(**checkout_params)
    except stripe.StripeError as e:
        payments_logger.error(f"Stripe checkout session creation failed for event {event.id}: {e}")
        raise UpstreamFailure("Unable to start checkout.")

    payments_logger.info(f"Created checkout session {session.id} for event {event.id} ({item_type.value})")
    return {"id": session.id, "url": session.url}


# ============================================================================
# WEBHOOK & EVENT LOGGING
# ============================================================================

def log_stripe_event(event_id: str, event_type: str, payload: dict, db: Session) -> StripeEvent:
    stripe_event = db.query(StripeEvent).filter(StripeEvent.stripe_event_id == event_id).first()
    if stripe_event:
        return stripe_event

    stripe_event = StripeEvent(
        stripe_event_id=event_id,
        event_type=event_type,
        payload=payload,
        processed=False
    )
    db.add(stripe_event)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent delivery of the same event logged it first
        db.rollback()
        return db.query(StripeEvent).filter(StripeEvent.stripe_event_id == event_id).first()
    db.refresh(stripe_event)
    return stripe_event


def mark_stripe_event_processed(event_id: str, db: Session, error_message: str = None):
    stripe_event = db.query(StripeEvent).filter(StripeEvent.stripe_event_id == event_id).first()
    if stripe_event:
        stripe_event.processed = True
        stripe_event.processed_at = datetime.now(timezone.utc)
        stripe_event.error_message = error_message
        db.commit()


def _get_stripe_value(obj: Any, key: str, default=None):
    """Read a field from a Stripe object or plain dict"""
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError):
        value = getattr(obj, key, None)
    return default if value is None else value


def _buyer_email(session_obj: Any) -> Optional[str]:
    details = _get_stripe_value(session_obj, "customer_details")
    email = _get_stripe_value(details, "email") or _get_stripe_value(session_obj, "customer_email")
    return email.lower() if email else None


def _payment_id(session_obj: Any) -> Optional[str]:
    payment_intent = _get_stripe_value(session_obj, "payment_intent")
    if isinstance(payment_intent, str):
        return payment_intent
    return _get_stripe_value(payment_intent, "id")


def construct_event(payload: bytes, sig_header: Optional[str]):
    """Verify the signature and parse a webhook delivery

    Raises:
        NotConfigured: If STRIPE_WEBHOOK_SECRET is missing
        ValidationFailure: Missing header, bad payload, or bad signature
    """
    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("Webhook secret not configured")
        raise NotConfigured("Stripe webhook is not configured.")
    if not sig_header:
        raise ValidationFailure("Missing Stripe signature header.")

    try:
        return stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise ValidationFailure("Invalid webhook payload.")
    except stripe.SignatureVerificationError as e:
        logger.error(f"Invalid webhook signature: {e}")
        raise ValidationFailure("Invalid Stripe signature.")


def outcome_for_event(event_type: str, session_obj: Any) -> Optional[PaymentOutcome]:
    """Map a checkout session event to a payment outcome, or None to ignore it"""
    if event_type == "checkout.session.completed":
        # Delayed payment methods complete the session before the money settles
        if _get_stripe_value(session_obj, "payment_status") in PAID_PAYMENT_STATUSES:
            return PaymentOutcome.SUCCEEDED
        return None
    if event_type == "checkout.session.async_payment_succeeded":
        return PaymentOutcome.SUCCEEDED
    if event_type in ("checkout.session.expired", "checkout.session.async_payment_failed"):
        return PaymentOutcome.FAILED
    return None


def process_stripe_webhook(payload: bytes, sig_header: Optional[str], db: Session) -> Dict[str, Any]:
    """Verify, log, and apply a Stripe webhook delivery

    Nothing is written before the signature is verified. Database faults
    propagate so Stripe retries; reconciliation only moves pending rows, so
    replays are harmless.
    """
    event = construct_event(payload, sig_header)
    event_id = event["id"]
    event_type = event["type"]

    stripe_event = log_stripe_event(event_id, event_type, event, db)
    if stripe_event.processed:
        payments_logger.info(f"Webhook event {event_id} already processed")
        stripe_webhooks_counter.labels(event_type=event_type, outcome="duplicate").inc()
        return {"received": True, "status": "already_processed"}

    session_obj = event["data"]["object"]
    outcome = outcome_for_event(event_type, session_obj)

    transitioned = 0
    if outcome is None:
        payments_logger.info(f"Ignoring webhook event {event_id} of type {event_type}")
    else:
        session_id = _get_stripe_value(session_obj, "id")
        if outcome == PaymentOutcome.SUCCEEDED:
            transitioned = reconcile(
                db,
                session_id,
                outcome,
                payment_id=_payment_id(session_obj),
                buyer_email=_buyer_email(session_obj)
            )
        else:
            transitioned = reconcile(db, session_id, outcome)

    mark_stripe_event_processed(event_id, db)
    stripe_webhooks_counter.labels(
        event_type=event_type,
        outcome=outcome.value if outcome else "ignored"
    ).inc()
    payments_logger.info(f"Processed webhook event {event_id} of type {event_type} ({transitioned} purchase(s) updated)")
    return {"received": True, "status": "success", "updated": transitioned}
