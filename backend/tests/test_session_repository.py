"""
Tests for the session lifecycle in SessionRepository:
creation rules, participants, the state machine, feedback and the nearby search.
"""

from datetime import datetime, timedelta

import pytest

from meetnear.errors import (
    AuthorizationError, CapacityError, DuplicateError, InvalidStateError, NotFoundError, ValidationError,
)
from meetnear.models.session import Session as SessionModel
from meetnear.schemas.session import SessionUpdate

from helpers import HERE


def _shifted(d_lat: float):
    return [HERE[0], HERE[1] + d_lat]


class TestCreateSession:
    """Creation and the time-window rules."""

    def _create(self, db, session_repo, creator, start, end):
        return session_repo.create_session(
            db,
            creator_id=creator.id,
            title="Morning coffee",
            description="Espresso before work, all welcome",
            type="coffee",
            location={"type": "Point", "coordinates": HERE},
            start_time=start,
            end_time=end,
        )

    def test_future_window_creates_scheduled_session(self, db, session_repo, make_user):
        host = make_user("Host")
        now = datetime.utcnow()
        s = self._create(db, session_repo, host, now + timedelta(hours=1), now + timedelta(hours=2))

        assert s.id is not None
        assert s.status == "scheduled"
        assert s.creator_id == host.id
        assert s.participants == []
        assert s.max_participants == 10
        assert s.location["coordinates"] == HERE
        assert s.is_upcoming
        assert s.duration == timedelta(hours=1)

    def test_start_in_the_past_is_rejected(self, db, session_repo, make_user):
        host = make_user("Host")
        now = datetime.utcnow()
        with pytest.raises(ValidationError, match="Start time must be in the future"):
            self._create(db, session_repo, host, now - timedelta(hours=1), now + timedelta(hours=1))
        assert session_repo.count(db) == 0

    def test_end_not_after_start_is_rejected(self, db, session_repo, make_user):
        host = make_user("Host")
        start = datetime.utcnow() + timedelta(hours=1)
        with pytest.raises(ValidationError, match="End time must be after start time"):
            self._create(db, session_repo, host, start, start)
        with pytest.raises(ValidationError):
            self._create(db, session_repo, host, start, start - timedelta(minutes=5))
        assert session_repo.count(db) == 0

    def test_address_and_venue_are_kept(self, db, session_repo, make_user):
        start = datetime.utcnow() + timedelta(hours=3)
        s = session_repo.create_session(
            db,
            creator_id=make_user().id,
            title="Board games",
            description="Bring your favourite game along",
            type="activity",
            location={
                "coordinates": HERE,
                "address": {"city": "San Francisco"},
                "venue": {"name": "Game Parlour", "type": "bar"},
            },
            start_time=start,
            end_time=start + timedelta(hours=2),
            tags=["games"],
        )
        assert s.location["address"]["city"] == "San Francisco"
        assert s.location["venue"] == {"name": "Game Parlour", "type": "bar"}
        assert s.tags == ["games"]


class TestUpdateSession:

    def test_edits_scheduled_session(self, db, session_repo, make_session):
        s = make_session()
        session_repo.update_session(db, s, SessionUpdate(title="Coffee moved inside"))
        assert s.title == "Coffee moved inside"

    def test_new_window_is_validated(self, db, session_repo, make_session):
        s = make_session()
        with pytest.raises(ValidationError):
            session_repo.update_session(
                db, s, SessionUpdate(end_time=s.start_time - timedelta(minutes=1))
            )

    def test_capacity_cannot_drop_below_participants(self, db, session_repo, make_session, make_user):
        s = make_session()
        for _ in range(3):
            session_repo.add_participant(db, s, make_user().id)
        with pytest.raises(ValidationError):
            session_repo.update_session(db, s, SessionUpdate(max_participants=2))
        assert s.max_participants == 10

    def test_only_scheduled_sessions_are_editable(self, db, session_repo, make_session):
        s = make_session()
        session_repo.start(db, s)
        with pytest.raises(InvalidStateError):
            session_repo.update_session(db, s, SessionUpdate(title="Too late"))


class TestParticipants:

    def test_add_participant_appends_invited(self, db, session_repo, make_session, make_user):
        s = make_session()
        guest = make_user("Guest")

        p = session_repo.add_participant(db, s, guest.id)

        assert p.status == "invited"
        assert p.joined_at is not None
        assert [x.user_id for x in s.participants] == [guest.id]

    def test_duplicate_participant_is_rejected(self, db, session_repo, make_session, make_user):
        s = make_session()
        guest = make_user("Guest")
        session_repo.add_participant(db, s, guest.id)

        with pytest.raises(DuplicateError, match="User is already a participant"):
            session_repo.add_participant(db, s, guest.id)
        assert len(s.participants) == 1

    def test_full_session_rejects_and_does_not_change(self, db, session_repo, make_session, make_user):
        s = make_session(max_participants=2)
        for _ in range(2):
            session_repo.add_participant(db, s, make_user().id)
        before = [(p.user_id, p.status) for p in s.participants]

        for _ in range(3):
            with pytest.raises(CapacityError, match="Session is full"):
                session_repo.add_participant(db, s, make_user().id)

        assert [(p.user_id, p.status) for p in s.participants] == before
        db.expire_all()
        assert len(session_repo.get(db, s.id).participants) == 2

    def test_remove_participant_marks_declined(self, db, session_repo, make_session, make_user):
        s = make_session()
        guest = make_user("Guest")
        session_repo.add_participant(db, s, guest.id)

        p = session_repo.remove_participant(db, s, guest.id)

        assert p.status == "declined"
        assert p.left_at is not None
        assert len(s.participants) == 1

    def test_remove_unknown_participant(self, db, session_repo, make_session, make_user):
        s = make_session()
        with pytest.raises(NotFoundError, match="User is not a participant"):
            session_repo.remove_participant(db, s, make_user().id)

    def test_accept_then_attend(self, db, session_repo, make_session, make_user):
        s = make_session()
        guest = make_user("Guest")
        session_repo.add_participant(db, s, guest.id)

        assert session_repo.set_participant_status(db, s, guest.id, "accepted").status == "accepted"
        assert session_repo.set_participant_status(db, s, guest.id, "attended").status == "attended"

    def test_declined_participant_cannot_accept(self, db, session_repo, make_session, make_user):
        s = make_session()
        guest = make_user("Guest")
        session_repo.add_participant(db, s, guest.id)
        session_repo.remove_participant(db, s, guest.id)

        with pytest.raises(InvalidStateError):
            session_repo.set_participant_status(db, s, guest.id, "accepted")

    def test_unknown_status_is_rejected(self, db, session_repo, make_session, make_user):
        s = make_session()
        guest = make_user("Guest")
        session_repo.add_participant(db, s, guest.id)
        with pytest.raises(ValidationError):
            session_repo.set_participant_status(db, s, guest.id, "maybe")


class TestStateMachine:

    def test_cancel_records_reason_time_and_actor(self, db, session_repo, make_session):
        s = make_session()
        session_repo.cancel(db, s, s.creator_id, "Rain")

        assert s.status == "cancelled"
        assert s.cancellation_reason == "Rain"
        assert s.cancellation_time is not None
        assert s.cancelled_by_id == s.creator_id

    def test_second_cancel_fails_without_touching_metadata(self, db, session_repo, make_session, make_user):
        s = make_session()
        session_repo.cancel(db, s, s.creator_id, "Rain")
        reason, when, actor = s.cancellation_reason, s.cancellation_time, s.cancelled_by_id

        with pytest.raises(InvalidStateError, match="Session is already cancelled"):
            session_repo.cancel(db, s, make_user().id, "Snow")

        assert (s.cancellation_reason, s.cancellation_time, s.cancelled_by_id) == (reason, when, actor)

    def test_scheduled_active_completed(self, db, session_repo, make_session):
        s = make_session()
        session_repo.start(db, s)
        assert s.status == "active"
        session_repo.complete(db, s)
        assert s.status == "completed"

    def test_active_session_can_be_cancelled(self, db, session_repo, make_session):
        s = make_session()
        session_repo.start(db, s)
        session_repo.cancel(db, s, s.creator_id)
        assert s.status == "cancelled"
        assert s.cancellation_reason is None

    def test_cannot_complete_a_scheduled_session(self, db, session_repo, make_session):
        s = make_session()
        with pytest.raises(InvalidStateError):
            session_repo.complete(db, s)
        assert s.status == "scheduled"

    def test_terminal_states_are_final(self, db, session_repo, make_session):
        done = make_session()
        session_repo.start(db, done)
        session_repo.complete(db, done)
        with pytest.raises(InvalidStateError):
            session_repo.cancel(db, done, done.creator_id, "Changed my mind")
        with pytest.raises(InvalidStateError):
            session_repo.start(db, done)
        assert done.status == "completed"
        assert done.cancellation_time is None

        cancelled = make_session()
        session_repo.cancel(db, cancelled, cancelled.creator_id)
        with pytest.raises(InvalidStateError):
            session_repo.start(db, cancelled)


class TestFeedback:

    def _completed(self, db, session_repo, make_session, guests):
        s = make_session()
        for g in guests:
            session_repo.add_participant(db, s, g.id)
        session_repo.start(db, s)
        session_repo.complete(db, s)
        return s

    def test_ratings_are_averaged(self, db, session_repo, make_session, make_user):
        a, b = make_user("A"), make_user("B")
        s = self._completed(db, session_repo, make_session, [a, b])

        session_repo.add_feedback(db, s, a.id, 4, "Nice")
        session_repo.add_feedback(db, s, b.id, 5)

        assert s.rating == {"average": 4.5, "count": 2}
        assert [f.rating for f in s.feedback] == [4, 5]

    def test_creator_may_rate(self, db, session_repo, make_session):
        s = self._completed(db, session_repo, make_session, [])
        session_repo.add_feedback(db, s, s.creator_id, 3)
        assert s.rating_count == 1

    def test_one_rating_per_user(self, db, session_repo, make_session, make_user):
        a = make_user("A")
        s = self._completed(db, session_repo, make_session, [a])
        session_repo.add_feedback(db, s, a.id, 4)
        with pytest.raises(DuplicateError):
            session_repo.add_feedback(db, s, a.id, 1)
        assert s.rating == {"average": 4.0, "count": 1}

    def test_outsiders_cannot_rate(self, db, session_repo, make_session, make_user):
        s = self._completed(db, session_repo, make_session, [])
        with pytest.raises(AuthorizationError):
            session_repo.add_feedback(db, s, make_user("Stranger").id, 5)

    def test_only_completed_sessions_accept_feedback(self, db, session_repo, make_session, make_user):
        a = make_user("A")
        s = make_session()
        session_repo.add_participant(db, s, a.id)
        with pytest.raises(InvalidStateError):
            session_repo.add_feedback(db, s, a.id, 5)


class TestFindNearby:

    def test_orders_by_distance_and_respects_radius(self, db, session_repo, make_session, make_user):
        host = make_user("Host")
        three_km = make_session(host, coordinates=_shifted(0.027))
        one_km = make_session(host, coordinates=_shifted(0.009))
        two_km = make_session(host, coordinates=_shifted(0.018))
        make_session(host, coordinates=_shifted(0.5))  # ~55 km away

        hits = session_repo.find_nearby(db, HERE, max_distance=5000)

        assert [s.id for s, _ in hits] == [one_km.id, two_km.id, three_km.id]
        distances = [d for _, d in hits]
        assert distances == sorted(distances)
        assert 900 < distances[0] < 1100

    def test_only_future_scheduled_sessions(self, db, session_repo, make_session):
        upcoming = make_session()
        cancelled = make_session()
        session_repo.cancel(db, cancelled, cancelled.creator_id)
        started = make_session()
        session_repo.start(db, started)
        past = make_session()
        past.start_time = datetime.utcnow() - timedelta(hours=1)
        db.flush()

        hits = session_repo.find_nearby(db, HERE)

        assert [s.id for s, _ in hits] == [upcoming.id]

    def test_limit(self, db, session_repo, make_session):
        for i in range(5):
            make_session(coordinates=_shifted(0.001 * (i + 1)))
        assert len(session_repo.find_nearby(db, HERE, limit=3)) == 3

    def test_empty_when_nothing_close(self, db, session_repo, make_session):
        make_session(coordinates=[0.0, 0.0])
        assert session_repo.find_nearby(db, HERE, max_distance=1000) == []


class TestUserSessions:

    def test_created_and_joined_sessions_newest_start_first(self, db, session_repo, make_session, make_user):
        me = make_user("Me")
        mine = make_session(me, hours_ahead=1)
        joined = make_session(hours_ahead=5)
        session_repo.add_participant(db, joined, me.id)
        left = make_session(hours_ahead=3)
        session_repo.add_participant(db, left, me.id)
        session_repo.remove_participant(db, left, me.id)
        make_session(hours_ahead=2)  # someone else's

        result = session_repo.get_user_sessions(db, me.id)

        assert [s.id for s in result] == [joined.id, mine.id]
        assert all(isinstance(s, SessionModel) for s in result)
