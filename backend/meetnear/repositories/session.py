"""
Session repository: the meetup lifecycle.
Handles creation, participants, state transitions, feedback and the nearby search.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from datetime import datetime
import logging

from sqlalchemy import and_, or_, desc
from sqlalchemy.orm import Session

from .base import BaseRepository
from ..constants import DEFAULT_MAX_PARTICIPANTS, SESSION_TRANSITIONS
from ..errors import (
    AuthorizationError, CapacityError, DomainError, DuplicateError,
    InvalidStateError, NotFoundError, ValidationError,
)
from ..geo import bounding_box, haversine_m
from ..models.base import utcnow
from ..models.session import Session as SessionModel, SessionParticipant, SessionFeedback
from ..schemas.common import Location
from ..schemas.session import SessionCreate, SessionUpdate

logger = logging.getLogger(__name__)


def check_time_window(start_time: datetime, end_time: datetime, now: Optional[datetime] = None) -> None:
    """Raise ValidationError unless start is in the future and end comes after it."""
    now = now or utcnow()
    if start_time <= now:
        raise ValidationError("Start time must be in the future", {"start_time": start_time.isoformat()})
    if end_time <= start_time:
        raise ValidationError("End time must be after start time", {"end_time": end_time.isoformat()})


class SessionRepository(BaseRepository[SessionModel, SessionCreate, SessionUpdate]):
    """
    Repository for meetup sessions.
    Every lifecycle method validates first and mutates only when all checks pass.
    """

    label = "Session"

    def __init__(self):
        super().__init__(SessionModel)

    # ---------- Creation / edits ----------

    def create_session(
        self,
        db: Session,
        creator_id: int,
        title: str,
        description: str,
        type: str,
        location: Union[Location, Dict[str, Any]],
        start_time: datetime,
        end_time: datetime,
        max_participants: int = DEFAULT_MAX_PARTICIPANTS,
        *,
        tags: Optional[List[str]] = None,
        visibility: str = "public",
    ) -> SessionModel:
        """Create a scheduled session with no participants yet."""
        check_time_window(start_time, end_time)
        if not isinstance(location, Location):
            location = Location.model_validate(location)

        address = location.address
        venue = location.venue
        data = {
            "creator_id": creator_id,
            "title": title,
            "description": description,
            "type": type,
            "status": "scheduled",
            "longitude": location.longitude,
            "latitude": location.latitude,
            "street": address.street if address else None,
            "city": address.city if address else None,
            "state": address.state if address else None,
            "country": address.country if address else None,
            "postal_code": address.postal_code if address else None,
            "venue_name": venue.name if venue else None,
            "venue_type": venue.type if venue else None,
            "start_time": start_time,
            "end_time": end_time,
            "max_participants": max_participants,
            "tags": list(tags or []),
            "visibility": visibility,
        }
        return self.create(db, data)

    def update_session(self, db: Session, session: SessionModel, data: SessionUpdate) -> SessionModel:
        """Edit a scheduled session; the merged time window must still be valid."""
        if session.status != "scheduled":
            raise InvalidStateError("Only scheduled sessions can be edited", {"status": session.status})

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "start_time" in changes or "end_time" in changes:
            check_time_window(
                changes.get("start_time", session.start_time),
                changes.get("end_time", session.end_time),
            )
        if changes.get("max_participants", session.max_participants) < len(session.participants):
            raise ValidationError(
                "Max participants cannot be lower than the current participant count",
                {"participants": len(session.participants)},
            )
        return self.update(db, session, changes)

    # ---------- Participants ----------

    def add_participant(self, db: Session, session: SessionModel, user_id: int) -> SessionParticipant:
        """Append user_id as 'invited'. Full sessions and repeat joins are rejected."""
        if len(session.participants) >= session.max_participants:
            raise CapacityError("Session is full", {"max_participants": session.max_participants})
        if session.find_participant(user_id) is not None:
            raise DuplicateError("User is already a participant", {"user_id": user_id})

        try:
            participant = SessionParticipant(user_id=user_id, status="invited", joined_at=utcnow())
            session.participants.append(participant)
            db.flush()
            logger.info(f"Added user {user_id} to session {session.id}")
            return participant
        except Exception as e:
            logger.error(f"add_participant failed (session={session.id}, user={user_id}): {e}")
            db.rollback()
            raise

    def remove_participant(self, db: Session, session: SessionModel, user_id: int) -> SessionParticipant:
        """Mark the participant declined and stamp left_at; the row is kept."""
        participant = session.find_participant(user_id)
        if participant is None:
            raise NotFoundError("User is not a participant", {"user_id": user_id})

        participant.status = "declined"
        participant.left_at = utcnow()
        db.flush()
        logger.info(f"User {user_id} left session {session.id}")
        return participant

    def set_participant_status(
        self, db: Session, session: SessionModel, user_id: int, status: str
    ) -> SessionParticipant:
        """Move a participant to accepted / attended / declined."""
        if status == "declined":
            return self.remove_participant(db, session, user_id)
        if status not in ("accepted", "attended"):
            raise ValidationError(f"Invalid participant status: {status}")

        participant = session.find_participant(user_id)
        if participant is None:
            raise NotFoundError("User is not a participant", {"user_id": user_id})
        if participant.status == "declined":
            raise InvalidStateError("User has left this session", {"user_id": user_id})

        participant.status = status
        db.flush()
        return participant

    # ---------- State machine ----------

    def _transition(self, db: Session, session: SessionModel, target: str) -> SessionModel:
        if target not in SESSION_TRANSITIONS[session.status]:
            raise InvalidStateError(
                f"Cannot move session from {session.status} to {target}",
                {"status": session.status, "target": target},
            )
        session.status = target
        db.flush()
        logger.info(f"Session {session.id} -> {target}")
        return session

    def start(self, db: Session, session: SessionModel) -> SessionModel:
        return self._transition(db, session, "active")

    def complete(self, db: Session, session: SessionModel) -> SessionModel:
        return self._transition(db, session, "completed")

    def cancel(self, db: Session, session: SessionModel, user_id: int, reason: Optional[str] = None) -> SessionModel:
        """
        Cancel a scheduled or active session, recording who, when and why.
        A rejected cancel leaves the existing cancellation metadata untouched.
        """
        if session.status == "cancelled":
            raise InvalidStateError("Session is already cancelled", {"status": session.status})
        if "cancelled" not in SESSION_TRANSITIONS[session.status]:
            raise InvalidStateError(
                f"Cannot cancel a {session.status} session", {"status": session.status}
            )

        session.status = "cancelled"
        session.cancellation_reason = reason
        session.cancellation_time = utcnow()
        session.cancelled_by_id = user_id
        db.flush()
        logger.info(f"Session {session.id} cancelled by user {user_id}")
        return session

    def member_ids(self, session: SessionModel) -> List[int]:
        """The creator followed by every participant who has not left."""
        return [session.creator_id] + [p.user_id for p in session.participants if p.status != "declined"]

    def set_meeting_point(
        self, db: Session, session: SessionModel, longitude: float, latitude: float
    ) -> SessionModel:
        if session.status not in ("scheduled", "active"):
            raise InvalidStateError(
                f"Cannot move the meeting point of a {session.status} session", {"status": session.status}
            )
        session.meeting_longitude = longitude
        session.meeting_latitude = latitude
        session.meeting_point_at = utcnow()
        db.flush()
        logger.info(f"Session {session.id} meeting point -> [{longitude:.5f}, {latitude:.5f}]")
        return session

    # ---------- Feedback ----------

    def add_feedback(
        self,
        db: Session,
        session: SessionModel,
        user_id: int,
        rating: int,
        comment: Optional[str] = None,
    ) -> SessionFeedback:
        """One rating per member of a completed session; keeps the average current."""
        if session.status != "completed":
            raise InvalidStateError("Feedback is only accepted for completed sessions", {"status": session.status})

        participant = session.find_participant(user_id)
        is_member = session.creator_id == user_id or (
            participant is not None and participant.status != "declined"
        )
        if not is_member:
            raise AuthorizationError("Only participants can leave feedback")
        if any(f.user_id == user_id for f in session.feedback):
            raise DuplicateError("Feedback already submitted", {"user_id": user_id})

        try:
            feedback = SessionFeedback(user_id=user_id, rating=rating, comment=comment)
            session.feedback.append(feedback)

            count = session.rating_count or 0
            total = (session.rating_average or 0.0) * count + rating
            session.rating_count = count + 1
            session.rating_average = round(total / session.rating_count, 2)
            db.flush()
            logger.info(f"Feedback from user {user_id} on session {session.id}")
            return feedback
        except DomainError:
            raise
        except Exception as e:
            logger.error(f"add_feedback failed (session={session.id}, user={user_id}): {e}")
            db.rollback()
            raise

    # ---------- Queries ----------

    def find_nearby(
        self,
        db: Session,
        coordinates: Sequence[float],
        max_distance: float = 10000,
        limit: int = 50,
    ) -> List[Tuple[SessionModel, float]]:
        """
        Scheduled, future sessions within max_distance metres of
        coordinates ([longitude, latitude]), nearest first, with distances.
        """
        lng, lat = coordinates
        box = bounding_box(lng, lat, max_distance)
        try:
            q = db.query(SessionModel).filter(
                and_(
                    SessionModel.status == "scheduled",
                    SessionModel.start_time > utcnow(),
                    SessionModel.latitude.between(box.min_lat, box.max_lat),
                )
            )
            if box.wraps:
                q = q.filter(or_(SessionModel.longitude >= box.min_lng, SessionModel.longitude <= box.max_lng))
            else:
                q = q.filter(SessionModel.longitude.between(box.min_lng, box.max_lng))

            hits = []
            for s in q.all():
                d = haversine_m(lng, lat, s.longitude, s.latitude)
                if d <= max_distance:
                    hits.append((s, d))
            hits.sort(key=lambda pair: pair[1])
            return hits[:limit]
        except Exception as e:
            logger.error(f"find_nearby failed (coordinates={list(coordinates)}, max_distance={max_distance}): {e}")
            raise

    def get_user_sessions(
        self, db: Session, user_id: int, skip: int = 0, limit: int = 100
    ) -> List[SessionModel]:
        """Sessions the user created or is still part of, newest start first."""
        try:
            return (
                db.query(SessionModel)
                .filter(
                    or_(
                        SessionModel.creator_id == user_id,
                        SessionModel.participants.any(
                            and_(
                                SessionParticipant.user_id == user_id,
                                SessionParticipant.status != "declined",
                            )
                        ),
                    )
                )
                .order_by(desc(SessionModel.start_time))
                .offset(skip)
                .limit(limit)
                .all()
            )
        except Exception as e:
            logger.error(f"Error getting sessions for user {user_id}: {e}")
            raise
