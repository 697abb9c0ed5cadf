"""
Chat models: a conversation container, its participants, its messages
and per-user read receipts.
"""
from typing import Optional

from sqlalchemy import (
    Column, String, Text, Integer, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel, utcnow


class Chat(BaseModel):
    """
    Either the group thread of a session or a direct 1:1 thread.

    Chats are never hard-deleted; status moves active -> archived -> deleted
    (or active -> deleted directly).
    """

    __tablename__ = "chats"

    # 'session' | 'direct'
    type = Column(String(20), nullable=False, index=True)

    # Set for session chats only; one chat per session
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=True, unique=True, index=True)
    session = relationship("Session", back_populates="chat")

    # 'active' | 'archived' | 'deleted'
    status = Column(String(20), default="active", nullable=False, index=True)

    # Settings
    notifications_enabled = Column(Boolean, default=True, nullable=False)
    mute_until = Column(DateTime, nullable=True)

    # Display metadata
    title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    image = Column(String(255), nullable=True)

    participants = relationship(
        "ChatParticipant",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="ChatParticipant.id",
    )
    messages = relationship(
        "ChatMessage",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="ChatMessage.id",
    )

    def __repr__(self):
        return f"<Chat(id={self.id}, type='{self.type}', session_id={self.session_id}, status={self.status})>"

    def find_participant(self, user_id: int) -> Optional["ChatParticipant"]:
        return next((p for p in self.participants if p.user_id == user_id), None)

    def find_message(self, message_id: int) -> Optional["ChatMessage"]:
        return next((m for m in self.messages if m.id == message_id), None)


class ChatParticipant(BaseModel):
    """A user's membership in a chat. Role: 'admin' | 'member'."""

    __tablename__ = "chat_participants"
    __table_args__ = (UniqueConstraint("chat_id", "user_id", name="uq_chat_participants_chat_user"),)

    chat_id = Column(Integer, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(20), default="member", nullable=False)
    joined_at = Column(DateTime, default=utcnow, nullable=False)
    left_at = Column(DateTime, nullable=True)
    last_read = Column(DateTime, default=utcnow, nullable=False)

    chat = relationship("Chat", back_populates="participants")

    @property
    def has_left(self) -> bool:
        return self.left_at is not None


class ChatMessage(BaseModel):
    """
    A single message inside a chat.

    Deleted messages stay in the table (content kept for audit) and are
    filtered out of the message list.
    """

    __tablename__ = "chat_messages"

    chat_id = Column(Integer, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    content = Column(Text, nullable=False)

    # 'text' | 'image' | 'location' | 'system'
    type = Column(String(20), default="text", nullable=False)

    # e.g. {"image_url": "..."} or {"location": {"type": "Point", "coordinates": [lon, lat]}}
    # ("metadata" is reserved on declarative classes)
    meta = Column(JSON, default=dict, nullable=False)

    # Soft delete
    deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    chat = relationship("Chat", back_populates="messages")
    read_by = relationship(
        "MessageRead",
        back_populates="message",
        cascade="all, delete-orphan",
        order_by="MessageRead.id",
    )

    def __repr__(self):
        return f"<ChatMessage(id={self.id}, chat_id={self.chat_id}, sender_id={self.sender_id}, deleted={self.deleted})>"

    def is_read_by(self, user_id: int) -> bool:
        return any(r.user_id == user_id for r in self.read_by)


class MessageRead(BaseModel):
    """Read receipt. Rows are only ever added, never removed."""

    __tablename__ = "message_reads"
    __table_args__ = (UniqueConstraint("message_id", "user_id", name="uq_message_reads_message_user"),)

    message_id = Column(Integer, ForeignKey("chat_messages.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    read_at = Column(DateTime, default=utcnow, nullable=False)

    message = relationship("ChatMessage", back_populates="read_by")
