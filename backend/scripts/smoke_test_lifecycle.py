#!/usr/bin/env python3
"""
Smoke test for the session/chat lifecycle against the configured database:
- Accounts (register two members)
- Sessions (create, join, nearby search, cancel)
- Chats (session chat messages, read receipts, soft delete, direct chat reuse)

Point DATABASE_URL at a scratch database; tables are created if missing.
"""

import sys
import uuid
from datetime import datetime, timedelta
from pathlib import Path

# Make "backend" importable
backend_dir = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(backend_dir))

from meetnear.database import create_all, get_db_context
from meetnear.errors import CapacityError, InvalidStateError
from meetnear.repositories.chat import ChatRepository
from meetnear.repositories.session import SessionRepository
from meetnear.schemas.common import Location
from meetnear.schemas.session import SessionCreate
from meetnear.services.auth_service import AuthService
from meetnear.services.session_service import SessionService

RUN = uuid.uuid4().hex[:8]
CAFE = [-122.4194, 37.7749]


def register(db, label: str):
    return AuthService().register_user(db, f"{label}-{RUN}@meetnear.app", "smoke-password", label.title())


def test_session_lifecycle():
    print("📍 Session lifecycle")
    with get_db_context() as db:
        host, guest = register(db, "host"), register(db, "guest")
        svc = SessionService()

        start = datetime.utcnow() + timedelta(hours=2)
        s = svc.create(db, host.id, SessionCreate(
            title="Smoke coffee",
            description="Checking the lifecycle end to end",
            location=Location(coordinates=CAFE),
            start_time=start,
            end_time=start + timedelta(hours=1),
            max_participants=2,
        ))
        print(f"  Created session {s.id} with chat {s.chat_id}")

        svc.join(db, s, guest.id)
        print(f"  Participants: {[(p.user_id, p.status) for p in s.participants]}")

        third = register(db, "late")
        svc.join(db, s, third.id)
        try:
            svc.join(db, s, register(db, "overflow").id)
            raise AssertionError("capacity should have been enforced")
        except CapacityError as e:
            print(f"  Capacity enforced: {e.message}")

        hits = SessionRepository().find_nearby(db, [CAFE[0] + 0.01, CAFE[1]], max_distance=5000)
        assert any(hit.id == s.id for hit, _ in hits), "session should be found nearby"
        print(f"  Nearby hits: {[(hit.id, round(d)) for hit, d in hits][:5]}")

        svc.cancel(db, s, host.id, "smoke test over")
        try:
            svc.cancel(db, s, host.id, "again")
            raise AssertionError("second cancel should fail")
        except InvalidStateError as e:
            print(f"  Second cancel rejected: {e.message}")
    print("✅ Sessions OK\n")


def test_chat_lifecycle():
    print("💬 Chat lifecycle")
    with get_db_context() as db:
        a, b = register(db, "alice"), register(db, "bob")
        chats = ChatRepository()

        chat = chats.get_or_create_direct_chat(db, [a.id, b.id])
        again = chats.get_or_create_direct_chat(db, [b.id, a.id])
        assert chat.id == again.id, "direct chat should be reused"

        m1 = chats.add_message(db, chat, a.id, "Hi Bob!")
        chats.add_message(db, chat, a.id, "Coffee later?")
        print(f"  Unread for bob: {chats.unread_count(db, chat, b.id)}")

        print(f"  Marked: {chats.mark_as_read(db, chat, b.id)}, then {chats.mark_as_read(db, chat, b.id)}")
        chats.delete_message(db, chat, m1.id, a.id)
        visible = chats.get_messages(db, chat)
        print(f"  Visible after delete: {[m.content for m in visible]}")
        assert len(visible) == 1
    print("✅ Chats OK\n")


def main():
    print("🚀 Smoke testing lifecycle (run=%s)" % RUN)
    print("=" * 52)
    create_all()
    test_session_lifecycle()
    test_chat_lifecycle()
    print("🎉 All lifecycle smoke tests passed!")


if __name__ == "__main__":
    main()
