"""
Chat repository for session threads and direct conversations.
Handles participants, messages, read receipts and soft deletes.
"""

from typing import Any, Dict, List, Optional, Sequence
import logging

from sqlalchemy import and_, desc
from sqlalchemy.orm import Session

from .base import BaseRepository
from ..constants import CHAT_TRANSITIONS, MESSAGE_MAX_LENGTH, MESSAGE_TYPES
from ..errors import (
    AuthorizationError, DuplicateError, InvalidStateError, NotFoundError, ValidationError,
)
from ..models.base import utcnow
from ..models.chat import Chat, ChatParticipant, ChatMessage, MessageRead
from ..models.session import Session as SessionModel

logger = logging.getLogger(__name__)


class ChatRepository(BaseRepository[Chat, Any, Any]):
    """
    Repository for chats.
    Messages are appended, read receipts only ever added, and nothing is hard-deleted.
    """

    label = "Chat"

    def __init__(self):
        super().__init__(Chat)

    # ---------- Creation ----------

    def create_session_chat(self, db: Session, session: SessionModel) -> Chat:
        """Group thread for a session; the creator joins as admin."""
        try:
            chat = Chat(type="session", session=session, status="active", title=session.title)
            chat.participants.append(ChatParticipant(user_id=session.creator_id, role="admin"))
            db.add(chat)
            db.flush()
            logger.info(f"Created session chat {chat.id} for session {session.id}")
            return chat
        except Exception as e:
            logger.error(f"create_session_chat failed (session={session.id}): {e}")
            db.rollback()
            raise

    def create_direct_chat(self, db: Session, user_ids: Sequence[int]) -> Chat:
        """1:1 thread between exactly two distinct users."""
        pair = self._direct_pair(user_ids)
        try:
            chat = Chat(type="direct", status="active")
            for uid in pair:
                chat.participants.append(ChatParticipant(user_id=uid, role="member"))
            db.add(chat)
            db.flush()
            logger.info(f"Created direct chat {chat.id} for users {list(pair)}")
            return chat
        except Exception as e:
            logger.error(f"create_direct_chat failed (users={list(pair)}): {e}")
            db.rollback()
            raise

    def get_or_create_direct_chat(
        self, db: Session, user_ids: Sequence[int], requester_id: Optional[int] = None
    ) -> Chat:
        """
        Reuse the pair's active direct chat or open a new one. A requester
        who had left the existing chat rejoins it.
        """
        existing = self.find_by_participants(db, user_ids)
        if existing is None:
            return self.create_direct_chat(db, user_ids)

        member = existing.find_participant(requester_id) if requester_id is not None else None
        if member is not None and member.has_left:
            member.left_at = None
            member.joined_at = utcnow()
            db.flush()
            logger.info(f"User {requester_id} rejoined direct chat {existing.id}")
        return existing

    def get_by_session_id(self, db: Session, session_id: int) -> Optional[Chat]:
        return db.query(Chat).filter(Chat.session_id == session_id).first()

    # ---------- Participants ----------

    def add_participant(self, db: Session, chat: Chat, user_id: int, role: str = "member") -> ChatParticipant:
        if chat.type == "direct":
            raise ValidationError("Direct chats always have exactly two participants")
        participant = chat.find_participant(user_id)
        if participant is not None and not participant.has_left:
            raise DuplicateError("User is already a participant", {"user_id": user_id})

        if participant is not None:
            # a former member comes back on the same row
            participant.left_at = None
            participant.role = role
            participant.joined_at = utcnow()
        else:
            participant = ChatParticipant(user_id=user_id, role=role, joined_at=utcnow())
            chat.participants.append(participant)
        db.flush()
        logger.info(f"Added user {user_id} to chat {chat.id} as {role}")
        return participant

    def remove_participant(self, db: Session, chat: Chat, user_id: int) -> ChatParticipant:
        """
        Stamp left_at; the membership row stays for history.
        A session chat keeps at least one admin while its session is open.
        """
        participant = chat.find_participant(user_id)
        if participant is None or participant.has_left:
            raise NotFoundError("User is not a participant", {"user_id": user_id})
        if self._is_last_admin_of_open_session(chat, participant):
            raise InvalidStateError(
                "The last admin cannot leave while the session is open",
                {"chat_id": chat.id, "session_status": chat.session.status},
            )

        participant.left_at = utcnow()
        db.flush()
        logger.info(f"User {user_id} left chat {chat.id}")
        return participant

    def remove_member(self, db: Session, chat: Chat, user_id: int, removed_by: int) -> ChatParticipant:
        """Remove someone from a group chat. Direct chats always keep both sides."""
        if chat.type == "direct":
            raise ValidationError("Cannot remove participants from a direct chat")
        participant = self.remove_participant(db, chat, user_id)
        logger.info({"repo": "chat.remove_member", "chat_id": chat.id, "user_id": user_id, "by": removed_by})
        return participant

    # ---------- Messages ----------

    def add_message(
        self,
        db: Session,
        chat: Chat,
        sender_id: int,
        content: str,
        type: str = "text",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ChatMessage:
        """Append a message already read by its sender and advance the sender's last_read."""
        if chat.status != "active":
            raise InvalidStateError("Chat is not active", {"status": chat.status})
        participant = chat.find_participant(sender_id)
        if participant is None or participant.has_left:
            raise AuthorizationError("User is not a participant", {"user_id": sender_id})
        content = self._clean_content(content)
        if type not in MESSAGE_TYPES:
            raise ValidationError(f"Invalid message type: {type}")

        return self._append(db, chat, sender_id, content, type, metadata, participant)

    def add_system_message(
        self,
        db: Session,
        chat: Chat,
        actor_id: int,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ChatMessage:
        """
        Server-generated notice on behalf of actor_id. The actor does not
        have to be a current member of the chat.
        """
        if chat.status != "active":
            raise InvalidStateError("Chat is not active", {"status": chat.status})
        content = self._clean_content(content)

        participant = chat.find_participant(actor_id)
        if participant is not None and participant.has_left:
            participant = None
        return self._append(db, chat, actor_id, content, "system", metadata, participant)

    def _append(
        self,
        db: Session,
        chat: Chat,
        sender_id: int,
        content: str,
        type: str,
        metadata: Optional[Dict[str, Any]],
        participant: Optional[ChatParticipant],
    ) -> ChatMessage:
        try:
            now = utcnow()
            message = ChatMessage(sender_id=sender_id, content=content, type=type, meta=dict(metadata or {}))
            message.read_by.append(MessageRead(user_id=sender_id, read_at=now))
            chat.messages.append(message)
            if participant is not None:
                participant.last_read = now
            chat.updated_at = now
            db.flush()
            logger.info(f"Message {message.id} added to chat {chat.id} by user {sender_id}")
            return message
        except Exception as e:
            logger.error(f"add_message failed (chat={chat.id}, sender={sender_id}): {e}")
            db.rollback()
            raise

    def mark_as_read(self, db: Session, chat: Chat, user_id: int) -> int:
        """
        Advance last_read and add a receipt to every message the user has not
        read yet. Returns the number of receipts added; a repeat call adds none.
        """
        participant = chat.find_participant(user_id)
        if participant is None or participant.has_left:
            raise NotFoundError("User is not a participant", {"user_id": user_id})

        now = utcnow()
        participant.last_read = now
        added = 0
        for message in chat.messages:
            if not message.is_read_by(user_id):
                message.read_by.append(MessageRead(user_id=user_id, read_at=now))
                added += 1
        db.flush()
        logger.debug({"repo": "chat.mark_as_read", "chat_id": chat.id, "user_id": user_id, "added": added})
        return added

    def delete_message(self, db: Session, chat: Chat, message_id: int, user_id: int) -> ChatMessage:
        """Soft-delete a message. Only its sender may do so; content is kept for audit."""
        message = chat.find_message(message_id)
        if message is None:
            raise NotFoundError("Message not found", {"message_id": message_id})
        if message.sender_id != user_id:
            raise AuthorizationError("Not authorized to delete this message")
        if message.deleted:
            return message

        message.deleted = True
        message.deleted_at = utcnow()
        message.deleted_by_id = user_id
        db.flush()
        logger.info(f"Message {message_id} in chat {chat.id} deleted by user {user_id}")
        return message

    def get_messages(
        self,
        db: Session,
        chat: Chat,
        skip: int = 0,
        limit: int = 50,
        include_deleted: bool = False,
    ) -> List[ChatMessage]:
        """
        A page of messages counted back from the newest, returned oldest -> newest.
        """
        try:
            q = db.query(ChatMessage).filter(ChatMessage.chat_id == chat.id)
            if not include_deleted:
                q = q.filter(ChatMessage.deleted.is_(False))
            recent = (
                q.order_by(desc(ChatMessage.created_at), desc(ChatMessage.id))
                .offset(skip)
                .limit(limit)
                .all()
            )
            return list(reversed(recent))
        except Exception as e:
            logger.error(f"get_messages failed (chat={chat.id}): {e}")
            raise

    def last_message(self, db: Session, chat: Chat) -> Optional[ChatMessage]:
        page = self.get_messages(db, chat, limit=1)
        return page[0] if page else None

    def unread_count(self, db: Session, chat: Chat, user_id: int) -> int:
        """Visible messages from others that carry no receipt for user_id."""
        try:
            return (
                db.query(ChatMessage)
                .filter(
                    and_(
                        ChatMessage.chat_id == chat.id,
                        ChatMessage.sender_id != user_id,
                        ChatMessage.deleted.is_(False),
                        ~ChatMessage.read_by.any(MessageRead.user_id == user_id),
                    )
                )
                .count()
            )
        except Exception as e:
            logger.error(f"unread_count failed (chat={chat.id}, user={user_id}): {e}")
            raise

    # ---------- Queries ----------

    def find_by_participants(self, db: Session, user_ids: Sequence[int]) -> Optional[Chat]:
        """
        The active direct chat whose participant set is exactly these two users.
        Archived and deleted chats are not matched.
        """
        a, b = self._direct_pair(user_ids)
        try:
            candidates = (
                db.query(Chat)
                .filter(
                    and_(
                        Chat.type == "direct",
                        Chat.status == "active",
                        Chat.participants.any(ChatParticipant.user_id == a),
                        Chat.participants.any(ChatParticipant.user_id == b),
                    )
                )
                .order_by(Chat.id)
                .all()
            )
            return next((c for c in candidates if len(c.participants) == 2), None)
        except Exception as e:
            logger.error(f"find_by_participants failed (users={[a, b]}): {e}")
            raise

    def find_user_chats(self, db: Session, user_id: int, skip: int = 0, limit: int = 100) -> List[Chat]:
        """Active chats the user belongs to, most recently updated first."""
        try:
            return (
                db.query(Chat)
                .filter(
                    and_(
                        Chat.status == "active",
                        Chat.participants.any(
                            and_(ChatParticipant.user_id == user_id, ChatParticipant.left_at.is_(None))
                        ),
                    )
                )
                .order_by(desc(Chat.updated_at), desc(Chat.id))
                .offset(skip)
                .limit(limit)
                .all()
            )
        except Exception as e:
            logger.error(f"find_user_chats failed (user={user_id}): {e}")
            raise

    def unread_summary(self, db: Session, user_id: int) -> List[Dict[str, int]]:
        """Unread count per active chat of the user, skipping chats with nothing new."""
        summary = []
        for chat in self.find_user_chats(db, user_id, limit=1000):
            count = self.unread_count(db, chat, user_id)
            if count:
                summary.append({"chat_id": chat.id, "unread_count": count})
        return summary

    # ---------- Status ----------

    def _transition(self, db: Session, chat: Chat, target: str) -> Chat:
        if target not in CHAT_TRANSITIONS[chat.status]:
            raise InvalidStateError(
                f"Cannot move chat from {chat.status} to {target}",
                {"status": chat.status, "target": target},
            )
        chat.status = target
        db.flush()
        logger.info(f"Chat {chat.id} -> {target}")
        return chat

    def archive(self, db: Session, chat: Chat) -> Chat:
        return self._transition(db, chat, "archived")

    def mark_deleted(self, db: Session, chat: Chat) -> Chat:
        return self._transition(db, chat, "deleted")

    # ---------- Helpers ----------

    @staticmethod
    def _clean_content(content: Optional[str]) -> str:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Message content is required")
        if len(content) > MESSAGE_MAX_LENGTH:
            raise ValidationError(
                f"Message cannot be more than {MESSAGE_MAX_LENGTH} characters",
                {"length": len(content)},
            )
        return content

    @staticmethod
    def _is_last_admin_of_open_session(chat: Chat, participant: ChatParticipant) -> bool:
        if chat.type != "session" or participant.role != "admin":
            return False
        if chat.session is None or chat.session.status not in ("scheduled", "active"):
            return False
        return not any(
            p is not participant and p.role == "admin" and not p.has_left
            for p in chat.participants
        )

    @staticmethod
    def _direct_pair(user_ids: Sequence[int]) -> tuple:
        unique = sorted(set(user_ids))
        if len(user_ids) != 2 or len(unique) != 2:
            raise ValidationError(
                "A direct chat needs exactly two distinct participants",
                {"user_ids": list(user_ids)},
            )
        return unique[0], unique[1]
