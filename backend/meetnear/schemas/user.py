# meetnear/schemas/user.py
"""
Pydantic schemas for User entity.
"""
from __future__ import annotations
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import EmailStr, Field

from .base import BaseSchema, BaseResponseSchema
from .common import GeoPoint


class UserCreate(BaseSchema):
    """
    Schema for registering a new user.
    """
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=2, max_length=50)


class UserLogin(BaseSchema):
    """
    Schema for user login requests.
    """
    email: EmailStr
    password: str


class UserUpdate(BaseSchema):
    """
    Profile fields a user may change. Only fields that are set are applied.
    """
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = Field(None, max_length=255)
    interests: Optional[List[str]] = None
    search_radius_km: Optional[int] = Field(None, ge=1, le=100)


class AuthResponse(BaseSchema):
    user_id: int
    access_token: str
    token_type: str = "bearer"


class PublicUserResponse(BaseSchema):
    """
    What other members see.
    """
    id: int
    name: str
    avatar: str
    bio: Optional[str] = None
    interests: List[str] = Field(default_factory=list)


class UserResponse(PublicUserResponse, BaseResponseSchema):
    """
    Complete profile returned to its owner.
    """
    email: EmailStr
    location: Optional[GeoPoint] = None
    search_radius_km: int
    status: Literal["active", "inactive", "suspended"]
    last_login_at: Optional[datetime] = None
    last_active_at: datetime


class NearbyUserResponse(PublicUserResponse):
    location: GeoPoint
    distance_m: float = Field(..., description="Distance from the search point in metres")


class NearbyUserListResponse(BaseSchema):
    items: List[NearbyUserResponse]
