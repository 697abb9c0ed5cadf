# meetnear/routers/deps.py
"""
Shared FastAPI dependencies: repository/service providers and the
bearer-token identity check used by every authenticated route.
"""
from __future__ import annotations
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from meetnear.database import get_db
from meetnear.models.user import User
from meetnear.repositories.chat import ChatRepository
from meetnear.repositories.session import SessionRepository
from meetnear.repositories.user import UserRepository
from meetnear.services.auth_service import AuthService
from meetnear.services.session_service import SessionService

# ---- DI providers ----
def get_auth_service() -> AuthService:
    return AuthService()

def get_user_repo() -> UserRepository:
    return UserRepository()

def get_session_repo() -> SessionRepository:
    return SessionRepository()

def get_chat_repo() -> ChatRepository:
    return ChatRepository()

def get_session_service() -> SessionService:
    return SessionService()

# ---- Identity ----
def extract_bearer(authorization: Optional[str]) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing or invalid Authorization header")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid bearer token")
    return token

def get_current_user(
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
    user_repo: UserRepository = Depends(get_user_repo),
) -> User:
    token = extract_bearer(authorization)
    user_id = auth.verify(token)
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    user = user_repo.get(db, user_id)
    if user is None or user.status != "active":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account not found or inactive")
    return user
