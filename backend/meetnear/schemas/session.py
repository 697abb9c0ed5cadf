"""
Pydantic schemas for Session entity and its participants/feedback.
"""

from typing import List, Literal, Optional
from datetime import datetime
from pydantic import Field, field_validator

from .base import BaseSchema, BaseResponseSchema, to_naive_utc
from .common import GeoPoint, Location
from ..constants import (
    TITLE_MIN, TITLE_MAX, DESCRIPTION_MIN, DESCRIPTION_MAX,
    MIN_PARTICIPANTS, MAX_PARTICIPANTS, DEFAULT_MAX_PARTICIPANTS,
    RATING_MIN, RATING_MAX,
)

SessionType = Literal["coffee", "lunch", "dinner", "activity", "other"]
SessionStatus = Literal["scheduled", "active", "completed", "cancelled"]
ParticipantStatus = Literal["invited", "accepted", "declined", "attended"]
Visibility = Literal["public", "private", "invite-only"]


class SessionCreate(BaseSchema):
    """
    Schema for creating a session. Time-window rules (future start,
    end after start) are enforced by the repository.
    """
    title: str = Field(..., min_length=TITLE_MIN, max_length=TITLE_MAX)
    description: str = Field(..., min_length=DESCRIPTION_MIN, max_length=DESCRIPTION_MAX)
    type: SessionType = "coffee"
    location: Location
    start_time: datetime
    end_time: datetime
    max_participants: int = Field(DEFAULT_MAX_PARTICIPANTS, ge=MIN_PARTICIPANTS, le=MAX_PARTICIPANTS)
    tags: List[str] = Field(default_factory=list)
    visibility: Visibility = "public"

    @field_validator("start_time", "end_time")
    @classmethod
    def _naive_utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class SessionUpdate(BaseSchema):
    """
    Fields the creator may change while the session is still scheduled.
    Only fields that are set are applied.
    """
    title: Optional[str] = Field(None, min_length=TITLE_MIN, max_length=TITLE_MAX)
    description: Optional[str] = Field(None, min_length=DESCRIPTION_MIN, max_length=DESCRIPTION_MAX)
    type: Optional[SessionType] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    max_participants: Optional[int] = Field(None, ge=MIN_PARTICIPANTS, le=MAX_PARTICIPANTS)
    tags: Optional[List[str]] = None
    visibility: Optional[Visibility] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class CancelRequest(BaseSchema):
    reason: Optional[str] = Field(None, max_length=500)


class FeedbackCreate(BaseSchema):
    rating: int = Field(..., ge=RATING_MIN, le=RATING_MAX)
    comment: Optional[str] = Field(None, max_length=1000)


class ParticipantResponse(BaseSchema):
    user_id: int
    status: ParticipantStatus
    joined_at: Optional[datetime] = None
    left_at: Optional[datetime] = None


class FeedbackResponse(BaseSchema):
    user_id: int
    rating: int
    comment: Optional[str] = None
    created_at: datetime


class Rating(BaseSchema):
    average: float = 0.0
    count: int = 0


class SessionResponse(BaseResponseSchema):
    """
    Complete session document returned to the mobile client.
    """
    title: str
    description: str
    type: SessionType
    status: SessionStatus
    location: Location
    start_time: datetime
    end_time: datetime
    creator_id: int
    participants: List[ParticipantResponse] = Field(default_factory=list)
    max_participants: int
    tags: List[str] = Field(default_factory=list)
    visibility: Visibility
    rating: Rating
    feedback: List[FeedbackResponse] = Field(default_factory=list)

    # Cancellation metadata
    cancellation_reason: Optional[str] = None
    cancellation_time: Optional[datetime] = None
    cancelled_by_id: Optional[int] = None

    # Centre of the members' positions, once computed
    meeting_point: Optional[GeoPoint] = None

    # Linked session chat
    chat_id: Optional[int] = None

    # Filled in for nearby searches only
    distance_m: Optional[float] = Field(None, description="Distance from the search point in metres")


class SessionListResponse(BaseSchema):
    items: List[SessionResponse]
