# meetnear/services/session_service.py
"""
Cross-entity session flows.

A session and its group chat move together: creating a session opens its
chat, joining or leaving a session joins or leaves the chat, and
cancelling posts a system message to it.
"""
from __future__ import annotations
from typing import Optional
import logging

from sqlalchemy.orm import Session

from meetnear.errors import AuthorizationError, DuplicateError, InvalidStateError, ValidationError
from meetnear.geo import midpoint
from meetnear.models.chat import Chat
from meetnear.models.session import Session as SessionModel, SessionFeedback, SessionParticipant
from meetnear.repositories.chat import ChatRepository
from meetnear.repositories.session import SessionRepository
from meetnear.repositories.user import UserRepository
from meetnear.schemas.session import SessionCreate, SessionUpdate

logger = logging.getLogger(__name__)


class SessionService:
    def __init__(
        self,
        session_repo: Optional[SessionRepository] = None,
        chat_repo: Optional[ChatRepository] = None,
        user_repo: Optional[UserRepository] = None,
    ):
        self.sessions = session_repo or SessionRepository()
        self.chats = chat_repo or ChatRepository()
        self.users = user_repo or UserRepository()

    # ---- helpers ----
    def _require_creator(self, session: SessionModel, user_id: int) -> None:
        if session.creator_id != user_id:
            raise AuthorizationError("Only the session creator can do this", {"session_id": session.id})

    def _session_chat(self, db: Session, session: SessionModel) -> Chat:
        chat = session.chat or self.chats.get_by_session_id(db, session.id)
        if chat is None:
            # sessions created outside this service get their chat lazily
            chat = self.chats.create_session_chat(db, session)
        return chat

    # ---- flows ----
    def create(self, db: Session, creator_id: int, payload: SessionCreate) -> SessionModel:
        session = self.sessions.create_session(
            db,
            creator_id=creator_id,
            title=payload.title,
            description=payload.description,
            type=payload.type,
            location=payload.location,
            start_time=payload.start_time,
            end_time=payload.end_time,
            max_participants=payload.max_participants,
            tags=payload.tags,
            visibility=payload.visibility,
        )
        self.chats.create_session_chat(db, session)
        db.refresh(session)
        logger.info({"step": "session_created", "session_id": session.id, "creator_id": creator_id})
        return session

    def update(self, db: Session, session: SessionModel, user_id: int, payload: SessionUpdate) -> SessionModel:
        self._require_creator(session, user_id)
        session = self.sessions.update_session(db, session, payload)
        chat = self._session_chat(db, session)
        if payload.title and chat.title != payload.title:
            chat.title = payload.title
            db.flush()
        return session

    def join(self, db: Session, session: SessionModel, user_id: int) -> SessionParticipant:
        """Add the user to the session (as invited) and to its chat (as member)."""
        if session.status != "scheduled":
            raise InvalidStateError("Session is not accepting participants", {"status": session.status})
        if session.creator_id == user_id:
            raise DuplicateError("User is already a participant", {"user_id": user_id})

        participant = self.sessions.add_participant(db, session, user_id)
        chat = self._session_chat(db, session)
        if chat.find_participant(user_id) is None:
            self.chats.add_participant(db, chat, user_id, role="member")
        return participant

    def accept(self, db: Session, session: SessionModel, user_id: int) -> SessionParticipant:
        return self.sessions.set_participant_status(db, session, user_id, "accepted")

    def leave(self, db: Session, session: SessionModel, user_id: int) -> SessionParticipant:
        participant = self.sessions.remove_participant(db, session, user_id)
        chat = self._session_chat(db, session)
        member = chat.find_participant(user_id)
        if member is not None and not member.has_left:
            self.chats.remove_participant(db, chat, user_id)
        return participant

    def start(self, db: Session, session: SessionModel, user_id: int) -> SessionModel:
        self._require_creator(session, user_id)
        return self.sessions.start(db, session)

    def complete(self, db: Session, session: SessionModel, user_id: int) -> SessionModel:
        self._require_creator(session, user_id)
        return self.sessions.complete(db, session)

    def cancel(self, db: Session, session: SessionModel, user_id: int, reason: Optional[str] = None) -> SessionModel:
        self._require_creator(session, user_id)
        session = self.sessions.cancel(db, session, user_id, reason)

        chat = self._session_chat(db, session)
        if chat.status == "active":
            text = "This session has been cancelled"
            if reason:
                text = f"{text}: {reason}"
            self.chats.add_system_message(db, chat, user_id, text, metadata={"event": "session_cancelled"})
        return session

    def leave_feedback(
        self, db: Session, session: SessionModel, user_id: int, rating: int, comment: Optional[str] = None
    ) -> SessionFeedback:
        return self.sessions.add_feedback(db, session, user_id, rating, comment)

    def update_meeting_point(self, db: Session, session: SessionModel, user_id: int) -> SessionModel:
        """
        Move the meeting point to the centre of the members who have shared
        a position. Any member may ask; at least two positions are needed.
        """
        member_ids = self.sessions.member_ids(session)
        if user_id not in member_ids:
            raise AuthorizationError("Only participants can do this", {"session_id": session.id})

        located = [u for u in self.users.get_many(db, member_ids) if u.has_location]
        if len(located) < 2:
            raise ValidationError(
                "Need at least 2 participants with locations", {"located": len(located)}
            )

        lng, lat = midpoint([(u.longitude, u.latitude) for u in located])
        session = self.sessions.set_meeting_point(db, session, lng, lat)

        chat = self._session_chat(db, session)
        if chat.status == "active":
            self.chats.add_system_message(
                db, chat, user_id, "The meeting point has been updated",
                metadata={"event": "meeting_point_updated", "location": session.meeting_point},
            )
        return session
