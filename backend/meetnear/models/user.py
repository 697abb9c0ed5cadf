"""
User model for registered MeetNear members.
"""
from sqlalchemy import Column, String, Text, DateTime, Float, Integer, JSON
from sqlalchemy.orm import relationship
from .base import BaseModel, utcnow

class User(BaseModel):
    """
    A registered member who creates, joins and chats about sessions.

    Location is optional; when present it is the member's last reported
    position and seeds the default "nearby" search on the client.
    """

    __tablename__ = "users"

    # Login identity (always stored lower-cased)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)

    # Public profile
    name = Column(String(50), nullable=False)
    bio = Column(Text, nullable=True)
    avatar = Column(String(255), default="default-avatar.png", nullable=False)
    interests = Column(JSON, default=list, nullable=False)

    # Last reported position
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Preferred search radius in km
    search_radius_km = Column(Integer, default=10, nullable=False)

    # 'active' | 'inactive' | 'suspended'
    status = Column(String(20), default="active", nullable=False, index=True)

    last_login_at = Column(DateTime, nullable=True)
    last_active_at = Column(DateTime, default=utcnow, nullable=False)

    created_sessions = relationship("Session", back_populates="creator", foreign_keys="Session.creator_id")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', status={self.status})>"

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None
