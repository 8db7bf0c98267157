"""Guest checkout: prices the requested item and opens a pending purchase"""
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from snapmatch.core.config import settings
from snapmatch.core.errors import NotFound, ValidationFailure
from snapmatch.models.event import Event
from snapmatch.models.photo import Photo, PhotoStatus
from snapmatch.models.purchase import PurchaseItemType
from snapmatch.services.entitlement_service import create_pending_purchase
from snapmatch.services.stripe_service import create_checkout_session

logger = logging.getLogger(__name__)


def get_event_by_slug(db: Session, slug: str) -> Event:
    event = db.query(Event).filter(Event.slug == slug).first()
    if not event:
        raise NotFound("Event not found")
    return event


def start_checkout(
    db: Session,
    event: Event,
    item_type: PurchaseItemType,
    buyer_email: str,
    photo_id: Optional[str] = None
) -> Dict[str, str]:
    """Create the Stripe session, then the matching pending purchase

    Single-photo checkout is only offered for uploaded, published photos of
    the event.
    """
    item_type = PurchaseItemType(item_type)

    if item_type == PurchaseItemType.SINGLE_PHOTO:
        if not photo_id:
            raise ValidationFailure("photoId is required for single-photo checkout.")
        photo = db.query(Photo).filter(
            Photo.id == photo_id,
            Photo.event_id == event.id,
            Photo.is_uploaded.is_(True),
            Photo.status == PhotoStatus.PUBLISHED.value
        ).first()
        if not photo:
            raise NotFound("Photo not found for purchase.")
        amount = event.price_photo
    else:
        photo_id = None
        amount = event.price_all

    session = create_checkout_session(event, item_type, amount, buyer_email, photo_id=photo_id)

    create_pending_purchase(
        db,
        event_id=event.id,
        buyer_email=buyer_email,
        session_id=session["id"],
        item_type=item_type,
        amount=amount,
        photo_id=photo_id,
        currency=settings.CHECKOUT_CURRENCY
    )

    return {"checkoutUrl": session["url"], "sessionId": session["id"]}
