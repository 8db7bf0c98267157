"""Entitlement store: purchases, payment state, and derived download rights"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from snapmatch.core.errors import Conflict, NotFound, PaymentRequired, ValidationFailure
from snapmatch.core.metrics import purchase_transitions_counter
from snapmatch.models.base import utcnow
from snapmatch.models.purchase import Purchase, PurchaseItem, PurchaseItemType, PurchaseStatus

payments_logger = logging.getLogger("payments")


class PaymentOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class Entitlement:
    """What a paid purchase currently grants"""
    purchase: Purchase
    has_all_photos: bool
    purchased_photo_ids: FrozenSet[str]

    def covers(self, photo_id: str) -> bool:
        return self.has_all_photos or photo_id in self.purchased_photo_ids


def create_pending_purchase(
    db: Session,
    event_id: str,
    buyer_email: str,
    session_id: str,
    item_type: PurchaseItemType,
    amount: int,
    photo_id: Optional[str] = None,
    currency: str = "usd"
) -> Purchase:
    """Record a purchase in ``pending`` for a freshly created checkout session

    Raises:
        ValidationFailure: If the item shape is inconsistent
        Conflict: If the checkout session id was already used
    """
    item_type = PurchaseItemType(item_type)
    if item_type == PurchaseItemType.SINGLE_PHOTO and not photo_id:
        raise ValidationFailure("photo_id is required for a single-photo purchase.")
    if item_type == PurchaseItemType.ALL_PHOTOS:
        photo_id = None

    purchase = Purchase(
        event_id=event_id,
        buyer_email=buyer_email.strip().lower(),
        stripe_session_id=session_id,
        status=PurchaseStatus.PENDING.value,
        amount_total=amount,
        currency=currency
    )
    purchase.items.append(PurchaseItem(item_type=item_type.value, photo_id=photo_id, amount=amount))
    db.add(purchase)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        payments_logger.error(f"Checkout session {session_id} already has a purchase")
        raise Conflict("A purchase already exists for this checkout session.")

    db.refresh(purchase)
    payments_logger.info(
        f"Created pending purchase {purchase.id} for event {event_id} "
        f"(session {session_id}, {item_type.value}, {amount} {currency})"
    )
    return purchase


def reconcile(
    db: Session,
    session_id: str,
    outcome: PaymentOutcome,
    payment_id: Optional[str] = None,
    buyer_email: Optional[str] = None
) -> int:
    """Apply a payment outcome to the purchase(s) of a checkout session

    Only ``pending`` rows move, so duplicate or out-of-order deliveries are
    no-ops: a paid purchase is never downgraded by a late failure.

    Returns:
        Number of purchases transitioned
    """
    outcome = PaymentOutcome(outcome)
    values: Dict[str, Any] = {"updated_at": utcnow()}

    if outcome == PaymentOutcome.SUCCEEDED:
        values["status"] = PurchaseStatus.PAID.value
        if payment_id:
            values["stripe_payment_id"] = payment_id
        if buyer_email:
            values["buyer_email"] = buyer_email.strip().lower()
    else:
        values["status"] = PurchaseStatus.FAILED.value

    result = db.execute(
        update(Purchase)
        .where(
            Purchase.stripe_session_id == session_id,
            Purchase.status == PurchaseStatus.PENDING.value
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()

    rowcount = result.rowcount or 0
    if rowcount:
        purchase_transitions_counter.labels(outcome=outcome.value).inc(rowcount)
        payments_logger.info(f"Session {session_id}: {rowcount} purchase(s) -> {values['status']}")
    else:
        payments_logger.info(f"Session {session_id}: no pending purchase for {outcome.value}, nothing to do")
    return rowcount


def get_purchase_by_session(db: Session, session_id: str) -> Optional[Purchase]:
    return (
        db.query(Purchase)
        .options(selectinload(Purchase.items), selectinload(Purchase.event))
        .filter(Purchase.stripe_session_id == session_id)
        .first()
    )


def build_entitlement(purchase: Purchase) -> Entitlement:
    has_all_photos = any(item.item_type == PurchaseItemType.ALL_PHOTOS.value for item in purchase.items)
    purchased_photo_ids = frozenset(item.photo_id for item in purchase.items if item.photo_id)
    return Entitlement(
        purchase=purchase,
        has_all_photos=has_all_photos,
        purchased_photo_ids=purchased_photo_ids
    )


def resolve_entitlement(db: Session, purchase_id: str) -> Entitlement:
    """Derive what a purchase grants right now

    Raises:
        NotFound: If the purchase does not exist
        PaymentRequired: If the purchase is not paid
    """
    purchase = (
        db.query(Purchase)
        .options(selectinload(Purchase.items))
        .filter(Purchase.id == purchase_id)
        .first()
    )
    if not purchase:
        raise NotFound("Purchase not found.")
    if purchase.status != PurchaseStatus.PAID.value:
        raise PaymentRequired("Purchase is not paid yet.", status=purchase.status)
    return build_entitlement(purchase)


def summarize_purchase(entitlement: Entitlement) -> Dict[str, Any]:
    """Public summary returned with an access grant"""
    purchase = entitlement.purchase
    event = purchase.event
    return {
        "id": purchase.id,
        "status": purchase.status,
        "eventId": purchase.event_id,
        "eventSlug": event.slug if event else None,
        "eventName": event.name if event else None,
        "buyerEmail": purchase.buyer_email,
        "amountTotal": purchase.amount_total,
        "currency": purchase.currency,
        "hasAllPhotos": entitlement.has_all_photos,
        "purchasedPhotoIds": sorted(entitlement.purchased_photo_ids),
    }
