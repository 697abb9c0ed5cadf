# Models package for database entities

from .base import Base, BaseModel
from .user import User
from .session import Session, SessionParticipant, SessionFeedback
from .chat import Chat, ChatParticipant, ChatMessage, MessageRead

# Export all models for easy importing
__all__ = [
    "Base", "BaseModel", "User",
    "Session", "SessionParticipant", "SessionFeedback",
    "Chat", "ChatParticipant", "ChatMessage", "MessageRead",
]
