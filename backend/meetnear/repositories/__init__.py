# Repositories package for data access layer

# Base repository
from .base import BaseRepository

# Domain-specific repositories
from .user import UserRepository
from .session import SessionRepository
from .chat import ChatRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "SessionRepository",
    "ChatRepository",
]
