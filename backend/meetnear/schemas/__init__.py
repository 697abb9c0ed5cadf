# Schemas package for API request/response validation

# Base schemas
from .base import BaseSchema, TimestampSchema, IDSchema, BaseResponseSchema

# Common data structures
from .common import Address, Venue, GeoPoint, Location, ErrorResponse

# User schemas
from .user import (
    UserCreate, UserLogin, UserUpdate, AuthResponse,
    PublicUserResponse, UserResponse, NearbyUserResponse, NearbyUserListResponse,
)

# Session schemas
from .session import (
    SessionCreate, SessionUpdate, CancelRequest, FeedbackCreate, ParticipantResponse,
    FeedbackResponse, Rating, SessionResponse, SessionListResponse,
)

# Chat schemas
from .chat import (
    DirectChatCreate, MessageCreate, ReadReceipt, MessageResponse,
    MessageListResponse, ChatParticipantResponse, ChatSettings,
    ChatMetadata, ChatResponse, ChatListResponse,
)

# Export all schemas for easy importing
__all__ = [
    # Base
    "BaseSchema", "TimestampSchema", "IDSchema", "BaseResponseSchema",

    # Common
    "Address", "Venue", "GeoPoint", "Location", "ErrorResponse",

    # User
    "UserCreate", "UserLogin", "UserUpdate", "AuthResponse",
    "PublicUserResponse", "UserResponse", "NearbyUserResponse", "NearbyUserListResponse",

    # Session
    "SessionCreate", "SessionUpdate", "CancelRequest", "FeedbackCreate", "ParticipantResponse",
    "FeedbackResponse", "Rating", "SessionResponse", "SessionListResponse",

    # Chat
    "DirectChatCreate", "MessageCreate", "ReadReceipt", "MessageResponse",
    "MessageListResponse", "ChatParticipantResponse", "ChatSettings",
    "ChatMetadata", "ChatResponse", "ChatListResponse",
]
