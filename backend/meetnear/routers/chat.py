# meetnear/routers/chat.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from meetnear.database import get_db
from meetnear.errors import AuthorizationError
from meetnear.models.chat import Chat, ChatMessage
from meetnear.models.user import User
from meetnear.repositories.chat import ChatRepository
from meetnear.repositories.user import UserRepository
from meetnear.routers.deps import get_chat_repo, get_current_user, get_user_repo
from meetnear.schemas.chat import (
    ChatListResponse, ChatMetadata, ChatParticipantResponse, ChatResponse, ChatSettings,
    DirectChatCreate, MessageCreate, MessageListResponse, MessageResponse, ReadReceipt,
)

router = APIRouter(prefix="/chat", tags=["chat"])

# ------- Local request/response shapes -------
class AddParticipantRequest(BaseModel):
    user_id: int = Field(..., ge=1)

class ReadResponse(BaseModel):
    chat_id: int
    marked: int = Field(..., description="Messages newly marked as read")
    unread_count: int = 0

class UnreadCount(BaseModel):
    chat_id: int
    unread_count: int

class UnreadSummary(BaseModel):
    total: int
    chats: List[UnreadCount]

# ------- Helpers -------
def to_message_response(m: ChatMessage) -> MessageResponse:
    return MessageResponse(
        id=m.id,
        created_at=m.created_at,
        updated_at=m.updated_at,
        chat_id=m.chat_id,
        sender_id=m.sender_id,
        content=m.content,
        type=m.type,
        metadata=m.meta or {},
        read_by=[ReadReceipt(user_id=r.user_id, read_at=r.read_at) for r in m.read_by],
        deleted=m.deleted,
        deleted_at=m.deleted_at,
    )

def to_chat_response(db: Session, repo: ChatRepository, chat: Chat, user_id: int) -> ChatResponse:
    last = repo.last_message(db, chat)
    return ChatResponse(
        id=chat.id,
        created_at=chat.created_at,
        updated_at=chat.updated_at,
        type=chat.type,
        session_id=chat.session_id,
        status=chat.status,
        participants=[ChatParticipantResponse.model_validate(p) for p in chat.participants],
        settings=ChatSettings(notifications=chat.notifications_enabled, mute_until=chat.mute_until),
        metadata=ChatMetadata(title=chat.title, description=chat.description, image=chat.image),
        unread_count=repo.unread_count(db, chat, user_id),
        last_message=to_message_response(last) if last else None,
    )

def _chat_for_member(db: Session, repo: ChatRepository, chat_id: int, user: User) -> Chat:
    """Load a chat the caller belongs to (current or past member)."""
    chat = repo.get_or_raise(db, chat_id)
    if chat.find_participant(user.id) is None:
        raise AuthorizationError("User is not a participant of this chat", {"chat_id": chat_id})
    return chat

def _require_manager(chat: Chat, user: User) -> None:
    """Session chats are managed by their admins; direct chats by either side."""
    member = chat.find_participant(user.id)
    if chat.type == "session" and (member is None or member.role != "admin"):
        raise AuthorizationError("Only chat admins can do this", {"chat_id": chat.id})

# ------- Routes -------
@router.post("", response_model=ChatResponse, summary="Open (or reuse) a direct chat with another member")
def open_direct_chat(
    payload: DirectChatCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: ChatRepository = Depends(get_chat_repo),
    user_repo: UserRepository = Depends(get_user_repo),
):
    other = user_repo.get_or_raise(db, payload.participant_id)
    chat = repo.get_or_create_direct_chat(db, [user.id, other.id], requester_id=user.id)
    return to_chat_response(db, repo, chat, user.id)

@router.get("", response_model=ChatListResponse, summary="The caller's active chats with unread counts")
def list_chats(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: ChatRepository = Depends(get_chat_repo),
):
    chats = repo.find_user_chats(db, user.id, skip=skip, limit=limit)
    return ChatListResponse(items=[to_chat_response(db, repo, c, user.id) for c in chats])

@router.get("/unread", response_model=UnreadSummary, summary="Unread counts for the caller's chats")
def unread_summary(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: ChatRepository = Depends(get_chat_repo),
):
    counts = [UnreadCount(**row) for row in repo.unread_summary(db, user.id)]
    return UnreadSummary(total=sum(c.unread_count for c in counts), chats=counts)

@router.get("/{chat_id}", response_model=ChatResponse, summary="Get a chat")
def get_chat(
    chat_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: ChatRepository = Depends(get_chat_repo),
):
    chat = _chat_for_member(db, repo, chat_id, user)
    return to_chat_response(db, repo, chat, user.id)

@router.get(
    "/{chat_id}/messages",
    response_model=MessageListResponse,
    summary="Get a page of messages (oldest first, deleted ones hidden)",
)
def get_messages(
    chat_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: ChatRepository = Depends(get_chat_repo),
):
    chat = _chat_for_member(db, repo, chat_id, user)
    msgs = repo.get_messages(db, chat, skip=skip, limit=limit)
    return MessageListResponse(chat_id=chat.id, messages=[to_message_response(m) for m in msgs])

@router.post(
    "/{chat_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
)
def send_message(
    chat_id: int,
    payload: MessageCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: ChatRepository = Depends(get_chat_repo),
):
    chat = _chat_for_member(db, repo, chat_id, user)
    msg = repo.add_message(db, chat, user.id, payload.content, type=payload.type, metadata=payload.metadata)
    return to_message_response(msg)

@router.post("/{chat_id}/read", response_model=ReadResponse, summary="Mark every message as read")
def mark_read(
    chat_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: ChatRepository = Depends(get_chat_repo),
):
    chat = _chat_for_member(db, repo, chat_id, user)
    marked = repo.mark_as_read(db, chat, user.id)
    return ReadResponse(chat_id=chat.id, marked=marked, unread_count=repo.unread_count(db, chat, user.id))

@router.delete(
    "/{chat_id}/messages/{message_id}",
    response_model=MessageResponse,
    summary="Delete one of your own messages",
)
def delete_message(
    chat_id: int,
    message_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: ChatRepository = Depends(get_chat_repo),
):
    chat = _chat_for_member(db, repo, chat_id, user)
    msg = repo.delete_message(db, chat, message_id, user.id)
    return to_message_response(msg)

@router.post("/{chat_id}/participants", response_model=ChatResponse, summary="Add a member to a session chat")
def add_participant(
    chat_id: int,
    payload: AddParticipantRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: ChatRepository = Depends(get_chat_repo),
    user_repo: UserRepository = Depends(get_user_repo),
):
    chat = _chat_for_member(db, repo, chat_id, user)
    _require_manager(chat, user)
    user_repo.get_or_raise(db, payload.user_id)
    repo.add_participant(db, chat, payload.user_id)
    return to_chat_response(db, repo, chat, user.id)

@router.delete(
    "/{chat_id}/participants/{user_id}",
    response_model=ChatResponse,
    summary="Remove a member from a session chat",
)
def remove_participant(
    chat_id: int,
    user_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: ChatRepository = Depends(get_chat_repo),
):
    chat = _chat_for_member(db, repo, chat_id, user)
    _require_manager(chat, user)
    repo.remove_member(db, chat, user_id, removed_by=user.id)
    return to_chat_response(db, repo, chat, user.id)

@router.post("/{chat_id}/leave", status_code=status.HTTP_204_NO_CONTENT, summary="Leave a chat")
def leave_chat(
    chat_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: ChatRepository = Depends(get_chat_repo),
):
    chat = _chat_for_member(db, repo, chat_id, user)
    repo.remove_participant(db, chat, user.id)
    return

@router.post("/{chat_id}/archive", response_model=ChatResponse, summary="Archive a chat")
def archive_chat(
    chat_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: ChatRepository = Depends(get_chat_repo),
):
    chat = _chat_for_member(db, repo, chat_id, user)
    _require_manager(chat, user)
    repo.archive(db, chat)
    return to_chat_response(db, repo, chat, user.id)

@router.delete("/{chat_id}", response_model=ChatResponse, summary="Delete a chat (status only; history is kept)")
def delete_chat(
    chat_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    repo: ChatRepository = Depends(get_chat_repo),
):
    chat = _chat_for_member(db, repo, chat_id, user)
    _require_manager(chat, user)
    repo.mark_deleted(db, chat)
    return to_chat_response(db, repo, chat, user.id)
