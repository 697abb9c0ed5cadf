# meetnear/routers/users.py
"""
Profile endpoints: the caller's own profile and location, and other members' public cards.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from meetnear.config import settings
from meetnear.database import get_db
from meetnear.errors import ValidationError
from meetnear.models.user import User
from meetnear.repositories.user import UserRepository
from meetnear.routers.deps import get_current_user, get_user_repo
from meetnear.schemas.common import GeoPoint
from meetnear.schemas.user import (
    NearbyUserListResponse, NearbyUserResponse, PublicUserResponse, UserResponse, UserUpdate,
)

router = APIRouter(prefix="/users", tags=["users"])

# ----- Helpers -----
def to_user_response(user: User) -> UserResponse:
    location = GeoPoint(coordinates=[user.longitude, user.latitude]) if user.has_location else None
    return UserResponse(
        id=user.id,
        created_at=user.created_at,
        updated_at=user.updated_at,
        email=user.email,
        name=user.name,
        avatar=user.avatar,
        bio=user.bio,
        interests=user.interests or [],
        location=location,
        search_radius_km=user.search_radius_km,
        status=user.status,
        last_login_at=user.last_login_at,
        last_active_at=user.last_active_at,
    )

# ----- Routes -----
@router.get("/me", response_model=UserResponse, summary="Get the caller's profile")
def get_me(user: User = Depends(get_current_user)):
    return to_user_response(user)

@router.put("/me", response_model=UserResponse, summary="Update the caller's profile")
def update_me(
    payload: UserUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    user_repo: UserRepository = Depends(get_user_repo),
):
    user = user_repo.update_profile(db, user, payload)
    return to_user_response(user)

@router.put("/me/location", response_model=UserResponse, summary="Report the caller's current position")
def update_my_location(
    payload: GeoPoint,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    user_repo: UserRepository = Depends(get_user_repo),
):
    user = user_repo.update_location(db, user, payload.longitude, payload.latitude)
    return to_user_response(user)

@router.get("/nearby", response_model=NearbyUserListResponse, summary="Members near a point (defaults to the caller's position)")
def nearby_users(
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    radius: Optional[float] = Query(None, gt=0, le=100000, description="Search radius in metres"),
    limit: Optional[int] = Query(None, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    user_repo: UserRepository = Depends(get_user_repo),
):
    if longitude is not None and latitude is not None:
        point = [longitude, latitude]
    elif user.has_location:
        point = [user.longitude, user.latitude]
    else:
        raise ValidationError("Location required")

    hits = user_repo.find_nearby(
        db,
        point,
        max_distance=radius or user.search_radius_km * 1000,
        limit=limit or settings.NEARBY_MAX_RESULTS,
        exclude_user_id=user.id,
    )
    return NearbyUserListResponse(items=[
        NearbyUserResponse(
            id=u.id,
            name=u.name,
            avatar=u.avatar,
            bio=u.bio,
            interests=u.interests or [],
            location=GeoPoint(coordinates=[u.longitude, u.latitude]),
            distance_m=round(d, 1),
        )
        for u, d in hits
    ])

@router.get("/{user_id}", response_model=PublicUserResponse, summary="Get another member's public profile")
def get_user(
    user_id: int,
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    user_repo: UserRepository = Depends(get_user_repo),
):
    other = user_repo.get_or_raise(db, user_id)
    return PublicUserResponse.model_validate(other)
