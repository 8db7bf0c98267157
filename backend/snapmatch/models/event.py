"""Event model"""
from enum import Enum

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from snapmatch.models.base import Base, gen_uuid, utcnow


class EventStatus(str, Enum):
    DRAFT = "draft"
    LIVE = "live"
    ARCHIVED = "archived"


class Event(Base):
    """A photographed event; owns photos and purchases"""
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    owner_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    event_date = Column(DateTime(timezone=True), nullable=False)
    venue = Column(String(255), nullable=True)
    status = Column(String(20), default=EventStatus.DRAFT.value, nullable=False)
    price_photo = Column(Integer, default=500, nullable=False)  # cents
    price_all = Column(Integer, default=2500, nullable=False)  # cents
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    owner = relationship("User", back_populates="events")
    photos = relationship("Photo", back_populates="event", cascade="all, delete-orphan")
    purchases = relationship("Purchase", back_populates="event", cascade="all, delete-orphan")
