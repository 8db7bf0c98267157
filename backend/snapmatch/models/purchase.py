"""Purchase and PurchaseItem models"""
from enum import Enum

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from snapmatch.models.base import Base, gen_uuid, utcnow


class PurchaseStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PurchaseItemType(str, Enum):
    SINGLE_PHOTO = "single_photo"
    ALL_PHOTOS = "all_photos"


class Purchase(Base):
    """Guest purchase made through a Stripe checkout session"""
    __tablename__ = "purchases"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    buyer_email = Column(String(320), nullable=False)
    stripe_session_id = Column(String(255), unique=True, nullable=False, index=True)
    stripe_payment_id = Column(String(255), nullable=True)  # payment intent, set once paid
    status = Column(String(20), default=PurchaseStatus.PENDING.value, nullable=False)
    payout_status = Column(String(50), default="pending", nullable=False)  # informational only
    amount_total = Column(Integer, nullable=False)  # cents
    currency = Column(String(3), default="usd", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    event = relationship("Event", back_populates="purchases")
    items = relationship("PurchaseItem", back_populates="purchase", cascade="all, delete-orphan")


class PurchaseItem(Base):
    """Line item of a purchase: one photo or the whole event"""
    __tablename__ = "purchase_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    purchase_id = Column(String(36), ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True)
    photo_id = Column(String(36), ForeignKey("photos.id", ondelete="SET NULL"), nullable=True, index=True)
    item_type = Column(String(20), nullable=False)  # 'single_photo', 'all_photos'
    amount = Column(Integer, nullable=False)  # cents
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationship
    purchase = relationship("Purchase", back_populates="items")
