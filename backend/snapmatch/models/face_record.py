"""FaceRecord model"""
from sqlalchemy import Column, String, Float, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from snapmatch.models.base import Base, gen_uuid, utcnow


class FaceRecord(Base):
    """Mapping between a photo and the provider face handle indexed for it"""
    __tablename__ = "face_records"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    photo_id = Column(String(36), ForeignKey("photos.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(String(50), nullable=False)  # 'aws-rekognition'
    external_id = Column(String(255), nullable=False)  # provider face handle
    confidence = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationship
    photo = relationship("Photo", back_populates="face_records")

    __table_args__ = (
        UniqueConstraint('provider', 'external_id', name='uq_face_records_provider_external_id'),
    )
