# meetnear/services/auth_service.py
from __future__ import annotations
from datetime import datetime, timedelta
from typing import Optional, Dict
import logging
from dataclasses import dataclass

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from meetnear.config import settings
from meetnear.errors import DuplicateError, ValidationError
from meetnear.models.user import User
from meetnear.repositories.user import UserRepository

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
logger = logging.getLogger(__name__)

# --- AuthError for safe, classifiable failures ---
@dataclass
class AuthError(Exception):
    code: str                 # "NO_ACCOUNT" | "BAD_PASSWORD" | "INACTIVE" | "UNEXPECTED"
    public_detail: str        # safe message for clients
    log_detail: str = ""      # extra info for server logs

class AuthService:
    def __init__(self, user_repo: Optional[UserRepository] = None):
        self.user_repo = user_repo or UserRepository()

    # ---- password helpers ----
    def hash_password(self, password: str) -> str:
        return pwd_context.hash(password)

    def verify_password(self, plain: str, hashed: str) -> bool:
        return pwd_context.verify(plain, hashed)

    # ---- JWT helpers ----
    def create_access_token(self, user_id: int, minutes: Optional[int] = None) -> str:
        exp_min = minutes if minutes is not None else settings.JWT_EXPIRE_MIN
        payload = {"sub": str(user_id), "exp": datetime.utcnow() + timedelta(minutes=exp_min)}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)

    def verify(self, token: str) -> Optional[int]:
        """User id carried by a valid, unexpired token; None otherwise."""
        try:
            payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
            return int(payload.get("sub"))
        except (JWTError, TypeError, ValueError):
            return None

    # ---- high-level auth ----
    def authenticate(self, db: Session, email: str, password: str) -> Dict:
        """
        On failure, raises AuthError with a code you can safely surface to the client:
          - NO_ACCOUNT: no user row
          - BAD_PASSWORD: hash check failed
          - INACTIVE: account suspended or deactivated
        """
        email_norm = email.strip().lower()
        user = self.user_repo.get_by_email(db, email_norm)

        logger.info({
            "step": "authenticate_called",
            "email_norm": email_norm,
            "user_found": bool(user),
        })

        if not user:
            logger.warning({
                "step": "authenticate_failed",
                "reason": "user_not_found",
                "email_norm": email_norm,
            })
            raise AuthError(
                code="NO_ACCOUNT",
                public_detail="We couldn't find an account with that email.",
                log_detail=f"no user for {email_norm}",
            )

        try:
            ok = self.verify_password(password, user.password_hash)
        except Exception as e:
            # bcrypt backend problems and malformed hashes
            logger.exception({"step": "authenticate_verify_exception", "email_norm": email_norm})
            raise AuthError(
                code="UNEXPECTED",
                public_detail="We couldn't sign you in. Please try again.",
                log_detail=str(e),
            )

        if not ok:
            logger.warning({
                "step": "authenticate_failed",
                "reason": "bad_password",
                "user_id": user.id,
            })
            raise AuthError(
                code="BAD_PASSWORD",
                public_detail="Incorrect email or password.",
                log_detail=f"bad password for uid={user.id}",
            )

        if user.status != "active":
            logger.warning({"step": "authenticate_failed", "reason": "inactive", "user_id": user.id})
            raise AuthError(
                code="INACTIVE",
                public_detail="This account is not active.",
                log_detail=f"status={user.status} for uid={user.id}",
            )

        self.user_repo.update_last_login(db, user)

        token = self.create_access_token(user.id)
        logger.info({"step": "authenticate_success", "user_id": user.id})
        return {"user_id": user.id, "access_token": token, "token_type": "bearer"}

    def register_user(self, db: Session, email: str, password: str, name: str) -> User:
        """
        Create a member account.
        - Email is normalized (lowercase) and must not already be registered.
        - The new account counts as logged in.
        """
        email_norm = email.strip().lower()
        if not name or not name.strip():
            raise ValidationError("Name is required")
        if self.user_repo.get_by_email(db, email_norm):
            raise DuplicateError("Email already registered", {"email": email_norm})

        user = self.user_repo.create_user(db, email_norm, self.hash_password(password), name)
        self.user_repo.update_last_login(db, user)
        logger.info({"step": "register_success", "user_id": user.id})
        return user
