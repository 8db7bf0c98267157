"""Photo model"""
from enum import Enum

from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from snapmatch.models.base import Base, gen_uuid, utcnow


class PhotoStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class Photo(Base):
    """Event photo; guest-visible only when uploaded and published"""
    __tablename__ = "photos"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    storage_key = Column(String(512), unique=True, nullable=False)  # e.g. "events/{event_id}/original/{ts}-{rand}-{name}"
    mime_type = Column(String(120), nullable=False)
    file_size = Column(Integer, nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    status = Column(String(20), default=PhotoStatus.DRAFT.value, nullable=False)
    is_uploaded = Column(Boolean, default=False, nullable=False)
    uploaded_at = Column(DateTime(timezone=True), nullable=True)
    face_index_status = Column(String(30), nullable=True)  # last FaceIndexStatus, "pending" mid re-index
    face_index_attempted_at = Column(DateTime(timezone=True), nullable=True)
    captured_at = Column(DateTime(timezone=True), nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    event = relationship("Event", back_populates="photos")
    face_records = relationship("FaceRecord", back_populates="photo", cascade="all, delete-orphan")

    # Composite indexes for gallery queries
    __table_args__ = (
        Index('ix_photos_event_status', 'event_id', 'status'),
        Index('ix_photos_event_uploaded', 'event_id', 'is_uploaded'),
    )

    @property
    def is_guest_visible(self) -> bool:
        return bool(self.is_uploaded) and self.status == PhotoStatus.PUBLISHED.value
