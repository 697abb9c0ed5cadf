# meetnear/routers/sessions.py
from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from meetnear.config import settings
from meetnear.database import get_db
from meetnear.models.session import Session as SessionModel
from meetnear.models.user import User
from meetnear.repositories.session import SessionRepository
from meetnear.routers.deps import get_current_user, get_session_repo, get_session_service
from meetnear.schemas.common import Address, GeoPoint, Location, Venue
from meetnear.schemas.session import (
    CancelRequest, FeedbackCreate, FeedbackResponse, ParticipantResponse, Rating,
    SessionCreate, SessionListResponse, SessionResponse, SessionUpdate,
)
from meetnear.services.session_service import SessionService

router = APIRouter(prefix="/sessions", tags=["sessions"])

# ----- Helpers -----
def to_session_response(s: SessionModel, distance_m: Optional[float] = None) -> SessionResponse:
    loc = s.location
    return SessionResponse(
        id=s.id,
        created_at=s.created_at,
        updated_at=s.updated_at,
        title=s.title,
        description=s.description,
        type=s.type,
        status=s.status,
        location=Location(
            coordinates=loc["coordinates"],
            address=Address(**loc["address"]),
            venue=Venue(**loc["venue"]),
        ),
        start_time=s.start_time,
        end_time=s.end_time,
        creator_id=s.creator_id,
        participants=[ParticipantResponse.model_validate(p) for p in s.participants],
        max_participants=s.max_participants,
        tags=s.tags or [],
        visibility=s.visibility,
        rating=Rating(**s.rating),
        feedback=[FeedbackResponse.model_validate(f) for f in s.feedback],
        cancellation_reason=s.cancellation_reason,
        cancellation_time=s.cancellation_time,
        cancelled_by_id=s.cancelled_by_id,
        meeting_point=GeoPoint(**s.meeting_point) if s.meeting_point else None,
        chat_id=s.chat_id,
        distance_m=round(distance_m, 1) if distance_m is not None else None,
    )

# ----- Routes -----
@router.post(
    "",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a session (and its group chat)",
)
def create_session(
    payload: SessionCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: SessionService = Depends(get_session_service),
):
    s = service.create(db, creator_id=user.id, payload=payload)
    return to_session_response(s)

@router.get("/nearby", response_model=SessionListResponse, summary="Upcoming sessions near a point")
def nearby_sessions(
    longitude: float = Query(..., ge=-180, le=180),
    latitude: float = Query(..., ge=-90, le=90),
    radius: Optional[float] = Query(None, gt=0, le=100000, description="Search radius in metres"),
    limit: Optional[int] = Query(None, ge=1, le=100),
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: SessionRepository = Depends(get_session_repo),
):
    hits = repo.find_nearby(
        db,
        [longitude, latitude],
        max_distance=radius or settings.NEARBY_DEFAULT_RADIUS_M,
        limit=limit or settings.NEARBY_MAX_RESULTS,
    )
    return SessionListResponse(items=[to_session_response(s, d) for s, d in hits])

@router.get("/mine", response_model=SessionListResponse, summary="Sessions the caller created or joined")
def my_sessions(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: SessionRepository = Depends(get_session_repo),
):
    sessions = repo.get_user_sessions(db, user.id, skip=skip, limit=limit)
    return SessionListResponse(items=[to_session_response(s) for s in sessions])

@router.get("/{session_id}", response_model=SessionResponse, summary="Get session details")
def get_session(
    session_id: int,
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: SessionRepository = Depends(get_session_repo),
):
    return to_session_response(repo.get_or_raise(db, session_id))

@router.put("/{session_id}", response_model=SessionResponse, summary="Edit a scheduled session (creator only)")
def update_session(
    session_id: int,
    payload: SessionUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: SessionRepository = Depends(get_session_repo),
    service: SessionService = Depends(get_session_service),
):
    s = repo.get_or_raise(db, session_id)
    return to_session_response(service.update(db, s, user.id, payload))

@router.post("/{session_id}/join", response_model=SessionResponse, summary="Join a session")
def join_session(
    session_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: SessionRepository = Depends(get_session_repo),
    service: SessionService = Depends(get_session_service),
):
    s = repo.get_or_raise(db, session_id)
    service.join(db, s, user.id)
    return to_session_response(s)

@router.post("/{session_id}/leave", response_model=SessionResponse, summary="Leave a session")
def leave_session(
    session_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: SessionRepository = Depends(get_session_repo),
    service: SessionService = Depends(get_session_service),
):
    s = repo.get_or_raise(db, session_id)
    service.leave(db, s, user.id)
    return to_session_response(s)

@router.post("/{session_id}/accept", response_model=SessionResponse, summary="Accept a session invitation")
def accept_session(
    session_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: SessionRepository = Depends(get_session_repo),
    service: SessionService = Depends(get_session_service),
):
    s = repo.get_or_raise(db, session_id)
    service.accept(db, s, user.id)
    return to_session_response(s)

@router.post("/{session_id}/start", response_model=SessionResponse, summary="Mark a session as started (creator only)")
def start_session(
    session_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: SessionRepository = Depends(get_session_repo),
    service: SessionService = Depends(get_session_service),
):
    s = repo.get_or_raise(db, session_id)
    return to_session_response(service.start(db, s, user.id))

@router.post("/{session_id}/complete", response_model=SessionResponse, summary="Mark a session as completed (creator only)")
def complete_session(
    session_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: SessionRepository = Depends(get_session_repo),
    service: SessionService = Depends(get_session_service),
):
    s = repo.get_or_raise(db, session_id)
    return to_session_response(service.complete(db, s, user.id))

@router.post("/{session_id}/cancel", response_model=SessionResponse, summary="Cancel a session (creator only)")
def cancel_session(
    session_id: int,
    payload: Optional[CancelRequest] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: SessionRepository = Depends(get_session_repo),
    service: SessionService = Depends(get_session_service),
):
    s = repo.get_or_raise(db, session_id)
    reason = payload.reason if payload else None
    return to_session_response(service.cancel(db, s, user.id, reason))

@router.post(
    "/{session_id}/feedback",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Rate a completed session",
)
def leave_feedback(
    session_id: int,
    payload: FeedbackCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: SessionRepository = Depends(get_session_repo),
    service: SessionService = Depends(get_session_service),
):
    s = repo.get_or_raise(db, session_id)
    service.leave_feedback(db, s, user.id, payload.rating, payload.comment)
    return to_session_response(s)

@router.post(
    "/{session_id}/meeting-point",
    response_model=SessionResponse,
    summary="Recompute the meeting point from the members' positions",
)
def update_meeting_point(
    session_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: SessionRepository = Depends(get_session_repo),
    service: SessionService = Depends(get_session_service),
):
    s = repo.get_or_raise(db, session_id)
    return to_session_response(service.update_meeting_point(db, s, user.id))
