"""
Pydantic schemas for Chat, ChatParticipant and ChatMessage.
"""

from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from pydantic import Field

from .base import BaseSchema, BaseResponseSchema
from ..constants import MESSAGE_MAX_LENGTH

ChatType = Literal["session", "direct"]
ChatStatus = Literal["active", "archived", "deleted"]
ChatRole = Literal["admin", "member"]
MessageType = Literal["text", "image", "location", "system"]


class DirectChatCreate(BaseSchema):
    participant_id: int = Field(..., ge=1, description="The other user in the direct chat")


class MessageCreate(BaseSchema):
    """
    Schema for posting a message. 'system' messages are server-generated only.
    """
    content: str = Field(..., min_length=1, max_length=MESSAGE_MAX_LENGTH)
    type: Literal["text", "image", "location"] = "text"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ReadReceipt(BaseSchema):
    user_id: int
    read_at: datetime


class MessageResponse(BaseResponseSchema):
    chat_id: int
    sender_id: int
    content: str
    type: MessageType
    metadata: Dict[str, Any] = Field(default_factory=dict)
    read_by: List[ReadReceipt] = Field(default_factory=list)
    deleted: bool = False
    deleted_at: Optional[datetime] = None


class MessageListResponse(BaseSchema):
    chat_id: int
    messages: List[MessageResponse]


class ChatParticipantResponse(BaseSchema):
    user_id: int
    role: ChatRole
    joined_at: datetime
    left_at: Optional[datetime] = None
    last_read: datetime


class ChatSettings(BaseSchema):
    notifications: bool = True
    mute_until: Optional[datetime] = None


class ChatMetadata(BaseSchema):
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None


class ChatResponse(BaseResponseSchema):
    """
    Chat document without its message history (fetched separately, paginated).
    """
    type: ChatType
    session_id: Optional[int] = None
    status: ChatStatus
    participants: List[ChatParticipantResponse] = Field(default_factory=list)
    settings: ChatSettings
    metadata: ChatMetadata
    unread_count: int = 0
    last_message: Optional[MessageResponse] = None


class ChatListResponse(BaseSchema):
    items: List[ChatResponse]
