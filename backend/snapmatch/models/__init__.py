"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from snapmatch.models.base import Base
from snapmatch.models.user import User, UserRole
from snapmatch.models.event import Event, EventStatus
from snapmatch.models.photo import Photo, PhotoStatus
from snapmatch.models.face_record import FaceRecord
from snapmatch.models.purchase import Purchase, PurchaseItem, PurchaseStatus, PurchaseItemType
from snapmatch.models.stripe_event import StripeEvent

# Export all for convenience
__all__ = [
    "Base", "User", "UserRole", "Event", "EventStatus", "Photo", "PhotoStatus",
    "FaceRecord", "Purchase", "PurchaseItem", "PurchaseStatus", "PurchaseItemType",
    "StripeEvent"
]
