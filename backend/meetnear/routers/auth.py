# meetnear/routers/auth.py
from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from meetnear.database import get_db
from meetnear.models.user import User
from meetnear.routers.deps import get_auth_service, get_current_user
from meetnear.schemas.user import AuthResponse, UserCreate, UserLogin
from meetnear.services.auth_service import AuthService, AuthError

router = APIRouter(prefix="/auth", tags=["auth"])

# ---- Schemas ----
class MeResponse(BaseModel):
    user_id: int
    email: Optional[EmailStr] = None
    name: str
    is_authenticated: bool = True

# ---- Routes ----
@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account and receive an access token",
)
def register(
    payload: UserCreate,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    # DuplicateError on a taken email renders as 409 through the app handler
    user = auth.register_user(db, payload.email, payload.password, payload.name)
    token = auth.create_access_token(user.id)
    return AuthResponse(user_id=user.id, access_token=token, token_type="bearer")

@router.post("/login", response_model=AuthResponse, summary="Login and receive an access token")
def login(
    payload: UserLogin,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    try:
        result = auth.authenticate(db, payload.email, payload.password)
        return AuthResponse(**result)
    except AuthError as e:
        # Always 401 to avoid account enumeration, but include a safe error_code for UX branching.
        #   NO_ACCOUNT   -> "No account found with this email. Create one?"
        #   BAD_PASSWORD -> "Incorrect email or password."
        #   INACTIVE     -> "This account is not active."
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.public_detail,
            headers={"X-Error-Code": e.code},
        )

@router.get("/me", response_model=MeResponse, summary="Return the current authenticated identity")
def me(user: User = Depends(get_current_user)):
    return MeResponse(user_id=user.id, email=user.email, name=user.name, is_authenticated=True)
