"""
User repository for member accounts and profiles.
"""

from __future__ import annotations
from typing import Optional, List, Sequence, Tuple
from datetime import datetime
import logging

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from .base import BaseRepository
from ..geo import bounding_box, haversine_m
from ..models.user import User
from ..schemas.user import UserCreate, UserUpdate

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User, UserCreate, UserUpdate]):
    label = "User"

    def __init__(self) -> None:
        super().__init__(User)

    def create_user(self, db: Session, email: str, password_hash: str, name: str) -> User:
        """Persist a new member. Email is stored lower-cased."""
        try:
            obj = User(
                email=email.strip().lower(),
                password_hash=password_hash,
                name=name.strip(),
                interests=[],
            )
            db.add(obj)
            db.flush()
            db.refresh(obj)
            logger.debug({"repo": "user.create", "id": obj.id, "email": obj.email})
            return obj
        except Exception:
            db.rollback()
            logger.exception("Error in UserRepository.create_user")
            raise

    def get_by_email(self, db: Session, email: str) -> Optional[User]:
        """Get user by email (normalized, case-insensitive)."""
        try:
            email_norm = email.strip().lower()
            return (
                db.query(User)
                .filter(func.lower(User.email) == email_norm)
                .first()
            )
        except Exception as e:
            logger.error(f"Error getting user by email {email}: {e}")
            raise

    def get_many(self, db: Session, user_ids: List[int]) -> List[User]:
        if not user_ids:
            return []
        return db.query(User).filter(User.id.in_(user_ids)).all()

    def update_profile(self, db: Session, user: User, data: UserUpdate) -> User:
        """Apply the profile fields that were actually sent (nulls are ignored)."""
        return self.update(db, user, data.model_dump(exclude_unset=True, exclude_none=True))

    def update_location(self, db: Session, user: User, longitude: float, latitude: float) -> User:
        """Record the member's last reported position."""
        try:
            user.longitude = longitude
            user.latitude = latitude
            user.last_active_at = datetime.utcnow()
            db.add(user)
            db.flush()
            logger.info(f"Updated location for user {user.id}")
            return user
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating location for user {user.id}: {e}")
            raise

    def update_last_login(self, db: Session, user: User) -> User:
        """Touch last_login_at and last_active_at."""
        try:
            now = datetime.utcnow()
            user.last_login_at = now
            user.last_active_at = now
            db.add(user)
            db.flush()
            logger.info(f"Updated last login for user {user.id}")
            return user
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating last login for user {getattr(user, 'id', None)}: {e}")
            raise

    def find_nearby(
        self,
        db: Session,
        coordinates: Sequence[float],
        max_distance: float,
        limit: int = 50,
        exclude_user_id: Optional[int] = None,
    ) -> List[Tuple[User, float]]:
        """
        Active members whose last reported position is within max_distance
        metres of coordinates ([longitude, latitude]), nearest first.
        """
        lng, lat = coordinates
        box = bounding_box(lng, lat, max_distance)
        try:
            q = db.query(User).filter(
                and_(
                    User.status == "active",
                    User.latitude.isnot(None),
                    User.longitude.isnot(None),
                    User.latitude.between(box.min_lat, box.max_lat),
                )
            )
            if exclude_user_id is not None:
                q = q.filter(User.id != exclude_user_id)
            if box.wraps:
                q = q.filter(or_(User.longitude >= box.min_lng, User.longitude <= box.max_lng))
            else:
                q = q.filter(User.longitude.between(box.min_lng, box.max_lng))

            hits = []
            for user in q.all():
                d = haversine_m(lng, lat, user.longitude, user.latitude)
                if d <= max_distance:
                    hits.append((user, d))
            hits.sort(key=lambda pair: pair[1])
            return hits[:limit]
        except Exception as e:
            logger.error(f"Error finding users near {list(coordinates)}: {e}")
            raise
