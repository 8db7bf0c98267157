"""User model"""
from enum import Enum

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship

from snapmatch.models.base import Base, gen_uuid, utcnow


class UserRole(str, Enum):
    PHOTOGRAPHER = "photographer"
    ADMIN = "admin"


class User(Base):
    """Photographer accounts"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    email = Column(String(320), unique=True, nullable=False, index=True)
    role = Column(String(20), default=UserRole.PHOTOGRAPHER.value, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    events = relationship("Event", back_populates="owner", cascade="all, delete-orphan")
