"""
Session model for scheduled real-world meetups.
Participants and feedback are child rows; the API renders them embedded
in the session document.
"""
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy import (
    Column, String, Text, Integer, Float, DateTime, ForeignKey, JSON, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel, utcnow


class Session(BaseModel):
    """
    A meetup at a place and time, created by one user and joined by others.

    Status moves scheduled -> active -> completed; cancelled is reachable
    from scheduled or active. Location is a point stored as lon/lat columns.
    """

    __tablename__ = "sessions"

    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)

    # 'coffee' | 'lunch' | 'dinner' | 'activity' | 'other'
    type = Column(String(20), default="coffee", nullable=False, index=True)

    # 'scheduled' | 'active' | 'completed' | 'cancelled'
    status = Column(String(20), default="scheduled", nullable=False, index=True)

    # Point location (GeoJSON order on the wire: [longitude, latitude])
    longitude = Column(Float, nullable=False, index=True)
    latitude = Column(Float, nullable=False, index=True)

    # Optional postal address and venue
    street = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    venue_name = Column(String(255), nullable=True)
    venue_type = Column(String(50), nullable=True)

    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)

    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    creator = relationship("User", back_populates="created_sessions", foreign_keys=[creator_id])

    max_participants = Column(Integer, default=10, nullable=False)
    tags = Column(JSON, default=list, nullable=False)

    # 'public' | 'private' | 'invite-only'
    visibility = Column(String(20), default="public", nullable=False)

    # Rating aggregate over feedback rows
    rating_average = Column(Float, default=0.0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)

    # Cancellation metadata
    cancellation_reason = Column(Text, nullable=True)
    cancellation_time = Column(DateTime, nullable=True)
    cancelled_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Suggested meeting point, the centre of the members' reported positions
    meeting_longitude = Column(Float, nullable=True)
    meeting_latitude = Column(Float, nullable=True)
    meeting_point_at = Column(DateTime, nullable=True)

    participants = relationship(
        "SessionParticipant",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionParticipant.id",
    )
    feedback = relationship(
        "SessionFeedback",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionFeedback.id",
    )
    chat = relationship("Chat", back_populates="session", uselist=False)

    def __repr__(self):
        return f"<Session(id={self.id}, title='{self.title}', status={self.status}, creator_id={self.creator_id})>"

    # ---------- Derived values ----------

    @property
    def location(self) -> Dict[str, Any]:
        return {
            "type": "Point",
            "coordinates": [self.longitude, self.latitude],
            "address": {
                "street": self.street,
                "city": self.city,
                "state": self.state,
                "country": self.country,
                "postal_code": self.postal_code,
            },
            "venue": {"name": self.venue_name, "type": self.venue_type},
        }

    @property
    def meeting_point(self) -> Optional[Dict[str, Any]]:
        if self.meeting_longitude is None or self.meeting_latitude is None:
            return None
        return {"type": "Point", "coordinates": [self.meeting_longitude, self.meeting_latitude]}

    @property
    def rating(self) -> Dict[str, Any]:
        return {"average": self.rating_average or 0.0, "count": self.rating_count or 0}

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def is_upcoming(self) -> bool:
        return self.start_time > utcnow()

    @property
    def is_in_progress(self) -> bool:
        now = utcnow()
        return self.start_time <= now <= self.end_time

    @property
    def chat_id(self) -> Optional[int]:
        return self.chat.id if self.chat is not None else None

    def find_participant(self, user_id: int) -> Optional["SessionParticipant"]:
        return next((p for p in self.participants if p.user_id == user_id), None)


class SessionParticipant(BaseModel):
    """
    A user's membership in a session.
    Status: 'invited' | 'accepted' | 'declined' | 'attended'.
    """

    __tablename__ = "session_participants"
    __table_args__ = (UniqueConstraint("session_id", "user_id", name="uq_session_participants_session_user"),)

    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), default="invited", nullable=False)
    joined_at = Column(DateTime, nullable=True)
    left_at = Column(DateTime, nullable=True)

    session = relationship("Session", back_populates="participants")

    def __repr__(self):
        return f"<SessionParticipant(session_id={self.session_id}, user_id={self.user_id}, status={self.status})>"


class SessionFeedback(BaseModel):
    """One rating (1..5) with an optional comment, per user per session."""

    __tablename__ = "session_feedback"
    __table_args__ = (UniqueConstraint("session_id", "user_id", name="uq_session_feedback_session_user"),)

    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)

    session = relationship("Session", back_populates="feedback")
