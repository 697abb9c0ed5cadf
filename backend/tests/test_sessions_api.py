"""
API tests for /sessions: creation, discovery, membership, state changes and feedback.
"""

from datetime import datetime, timedelta

from helpers import HERE, register, session_payload


def _create(client, host, **overrides):
    resp = client.post("/sessions", json=session_payload(**overrides), headers=host["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestCreate:
    def test_create_opens_group_chat(self, client):
        host = register(client, "host@meetnear.app", name="Host")
        body = _create(client, host)

        assert body["status"] == "scheduled"
        assert body["creator_id"] == host["user_id"]
        assert body["participants"] == []
        assert body["location"]["venue"]["name"] == "Blue Bottle"
        assert body["rating"] == {"average": 0.0, "count": 0}
        assert body["chat_id"] is not None

        chat = client.get(f"/chat/{body['chat_id']}", headers=host["headers"]).json()
        assert chat["type"] == "session"
        assert chat["session_id"] == body["id"]
        assert chat["metadata"]["title"] == body["title"]

    def test_start_in_the_past(self, client):
        host = register(client, "host@meetnear.app")
        resp = client.post("/sessions", json=session_payload(hours_ahead=-1), headers=host["headers"])
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "validation_error"
        assert resp.json()["error"] == "Start time must be in the future"

    def test_end_before_start(self, client):
        host = register(client, "host@meetnear.app")
        resp = client.post("/sessions", json=session_payload(duration_hours=-0.5), headers=host["headers"])
        assert resp.status_code == 422
        assert resp.json()["error"] == "End time must be after start time"

    def test_schema_limits(self, client):
        host = register(client, "host@meetnear.app")
        resp = client.post("/sessions", json=session_payload(title="no"), headers=host["headers"])
        assert resp.status_code == 422
        resp = client.post("/sessions", json=session_payload(max_participants=51), headers=host["headers"])
        assert resp.status_code == 422

    def test_requires_auth(self, client):
        assert client.post("/sessions", json=session_payload()).status_code == 401


class TestDiscovery:
    def test_nearby_returns_distance(self, client):
        host = register(client, "host@meetnear.app")
        created = _create(client, host)
        _create(client, host, location={"type": "Point", "coordinates": [HERE[0], HERE[1] + 1.0]})

        resp = client.get(
            "/sessions/nearby",
            params={"longitude": HERE[0], "latitude": HERE[1], "radius": 5000},
            headers=host["headers"],
        )
        assert resp.status_code == 200
        items = resp.json()["items"]
        assert [s["id"] for s in items] == [created["id"]]
        assert items[0]["distance_m"] == 0.0

    def test_nearby_validates_query(self, client):
        host = register(client, "host@meetnear.app")
        resp = client.get("/sessions/nearby", params={"longitude": 181, "latitude": 0}, headers=host["headers"])
        assert resp.status_code == 422

    def test_mine_lists_created_and_joined(self, client):
        host = register(client, "host@meetnear.app")
        guest = register(client, "guest@meetnear.app")
        hosted = _create(client, host)
        joined = _create(client, guest)
        client.post(f"/sessions/{joined['id']}/join", headers=host["headers"])

        resp = client.get("/sessions/mine", headers=host["headers"])
        assert {s["id"] for s in resp.json()["items"]} == {hosted["id"], joined["id"]}

    def test_unknown_session(self, client):
        host = register(client, "host@meetnear.app")
        resp = client.get("/sessions/9999", headers=host["headers"])
        assert resp.status_code == 404
        assert resp.json()["error"] == "Session not found"


class TestMembership:
    def test_join_adds_to_session_and_chat(self, client):
        host = register(client, "host@meetnear.app")
        guest = register(client, "guest@meetnear.app")
        s = _create(client, host)

        resp = client.post(f"/sessions/{s['id']}/join", headers=guest["headers"])
        assert resp.status_code == 200
        assert [(p["user_id"], p["status"]) for p in resp.json()["participants"]] == [
            (guest["user_id"], "invited")
        ]

        chat = client.get(f"/chat/{s['chat_id']}", headers=guest["headers"]).json()
        roles = {p["user_id"]: p["role"] for p in chat["participants"]}
        assert roles == {host["user_id"]: "admin", guest["user_id"]: "member"}

    def test_accept_then_leave(self, client):
        host = register(client, "host@meetnear.app")
        guest = register(client, "guest@meetnear.app")
        s = _create(client, host)
        client.post(f"/sessions/{s['id']}/join", headers=guest["headers"])

        accepted = client.post(f"/sessions/{s['id']}/accept", headers=guest["headers"])
        assert accepted.json()["participants"][0]["status"] == "accepted"

        left = client.post(f"/sessions/{s['id']}/leave", headers=guest["headers"])
        assert left.status_code == 200
        assert left.json()["participants"][0]["status"] == "declined"
        assert left.json()["participants"][0]["left_at"] is not None

        # no longer a chat member
        chats = client.get("/chat", headers=guest["headers"]).json()["items"]
        assert chats == []

    def test_double_join_conflicts(self, client):
        host = register(client, "host@meetnear.app")
        guest = register(client, "guest@meetnear.app")
        s = _create(client, host)
        client.post(f"/sessions/{s['id']}/join", headers=guest["headers"])

        resp = client.post(f"/sessions/{s['id']}/join", headers=guest["headers"])
        assert resp.status_code == 409
        assert resp.json()["error_code"] == "duplicate"

    def test_creator_cannot_join(self, client):
        host = register(client, "host@meetnear.app")
        s = _create(client, host)
        assert client.post(f"/sessions/{s['id']}/join", headers=host["headers"]).status_code == 409

    def test_full_session(self, client):
        host = register(client, "host@meetnear.app")
        s = _create(client, host, max_participants=2)
        for name in ("a", "b"):
            guest = register(client, f"{name}@meetnear.app")
            assert client.post(f"/sessions/{s['id']}/join", headers=guest["headers"]).status_code == 200

        late = register(client, "late@meetnear.app")
        resp = client.post(f"/sessions/{s['id']}/join", headers=late["headers"])
        assert resp.status_code == 409
        assert resp.json()["error_code"] == "session_full"

        after = client.get(f"/sessions/{s['id']}", headers=host["headers"]).json()
        assert len(after["participants"]) == 2

    def test_leave_without_joining(self, client):
        host = register(client, "host@meetnear.app")
        stranger = register(client, "stranger@meetnear.app")
        s = _create(client, host)
        resp = client.post(f"/sessions/{s['id']}/leave", headers=stranger["headers"])
        assert resp.status_code == 404


class TestEditAndCancel:
    def test_creator_edits_title_and_chat_follows(self, client):
        host = register(client, "host@meetnear.app")
        s = _create(client, host)

        resp = client.put(f"/sessions/{s['id']}", json={"title": "Dinner instead"}, headers=host["headers"])
        assert resp.status_code == 200
        assert resp.json()["title"] == "Dinner instead"
        assert resp.json()["description"] == s["description"]

        chat = client.get(f"/chat/{s['chat_id']}", headers=host["headers"]).json()
        assert chat["metadata"]["title"] == "Dinner instead"

    def test_edit_rejects_bad_window(self, client):
        host = register(client, "host@meetnear.app")
        s = _create(client, host)
        past = (datetime.utcnow() - timedelta(hours=3)).isoformat()
        resp = client.put(f"/sessions/{s['id']}", json={"start_time": past}, headers=host["headers"])
        assert resp.status_code == 422

    def test_only_creator_edits(self, client):
        host = register(client, "host@meetnear.app")
        other = register(client, "other@meetnear.app")
        s = _create(client, host)
        resp = client.put(f"/sessions/{s['id']}", json={"title": "Mine now"}, headers=other["headers"])
        assert resp.status_code == 403

    def test_cancel_records_metadata_and_notifies_chat(self, client):
        host = register(client, "host@meetnear.app")
        s = _create(client, host)

        resp = client.post(f"/sessions/{s['id']}/cancel", json={"reason": "Rain"}, headers=host["headers"])
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "cancelled"
        assert body["cancellation_reason"] == "Rain"
        assert body["cancelled_by_id"] == host["user_id"]
        assert body["cancellation_time"] is not None

        msgs = client.get(f"/chat/{s['chat_id']}/messages", headers=host["headers"]).json()["messages"]
        assert msgs[-1]["type"] == "system"
        assert msgs[-1]["content"] == "This session has been cancelled: Rain"

    def test_cancel_without_body(self, client):
        host = register(client, "host@meetnear.app")
        s = _create(client, host)
        resp = client.post(f"/sessions/{s['id']}/cancel", headers=host["headers"])
        assert resp.status_code == 200
        assert resp.json()["cancellation_reason"] is None

    def test_cancel_is_creator_only(self, client):
        host = register(client, "host@meetnear.app")
        guest = register(client, "guest@meetnear.app")
        s = _create(client, host)
        client.post(f"/sessions/{s['id']}/join", headers=guest["headers"])

        resp = client.post(f"/sessions/{s['id']}/cancel", json={"reason": "nope"}, headers=guest["headers"])
        assert resp.status_code == 403
        assert resp.json()["error_code"] == "not_authorized"
        assert client.get(f"/sessions/{s['id']}", headers=host["headers"]).json()["status"] == "scheduled"

    def test_second_cancel_conflicts_and_keeps_first_reason(self, client):
        host = register(client, "host@meetnear.app")
        s = _create(client, host)
        client.post(f"/sessions/{s['id']}/cancel", json={"reason": "Rain"}, headers=host["headers"])

        resp = client.post(f"/sessions/{s['id']}/cancel", json={"reason": "Snow"}, headers=host["headers"])
        assert resp.status_code == 409
        assert resp.json()["error"] == "Session is already cancelled"
        after = client.get(f"/sessions/{s['id']}", headers=host["headers"]).json()
        assert after["cancellation_reason"] == "Rain"

    def test_cancelled_session_is_closed_to_joins(self, client):
        host = register(client, "host@meetnear.app")
        guest = register(client, "guest@meetnear.app")
        s = _create(client, host)
        client.post(f"/sessions/{s['id']}/cancel", headers=host["headers"])

        resp = client.post(f"/sessions/{s['id']}/join", headers=guest["headers"])
        assert resp.status_code == 409
        assert resp.json()["error_code"] == "invalid_state"


class TestFeedback:
    def _completed(self, client):
        host = register(client, "host@meetnear.app")
        guest = register(client, "guest@meetnear.app")
        s = _create(client, host)
        client.post(f"/sessions/{s['id']}/join", headers=guest["headers"])
        assert client.post(f"/sessions/{s['id']}/start", headers=host["headers"]).json()["status"] == "active"
        assert client.post(f"/sessions/{s['id']}/complete", headers=host["headers"]).json()["status"] == "completed"
        return host, guest, s

    def test_ratings_average(self, client):
        host, guest, s = self._completed(client)

        resp = client.post(f"/sessions/{s['id']}/feedback", json={"rating": 5, "comment": "Great"}, headers=guest["headers"])
        assert resp.status_code == 201
        resp = client.post(f"/sessions/{s['id']}/feedback", json={"rating": 4}, headers=host["headers"])
        assert resp.json()["rating"] == {"average": 4.5, "count": 2}
        assert len(resp.json()["feedback"]) == 2

    def test_one_rating_per_member(self, client):
        _, guest, s = self._completed(client)
        client.post(f"/sessions/{s['id']}/feedback", json={"rating": 5}, headers=guest["headers"])
        resp = client.post(f"/sessions/{s['id']}/feedback", json={"rating": 1}, headers=guest["headers"])
        assert resp.status_code == 409

    def test_outsiders_and_bad_ratings(self, client):
        _, guest, s = self._completed(client)
        stranger = register(client, "stranger@meetnear.app")
        resp = client.post(f"/sessions/{s['id']}/feedback", json={"rating": 3}, headers=stranger["headers"])
        assert resp.status_code == 403
        resp = client.post(f"/sessions/{s['id']}/feedback", json={"rating": 6}, headers=guest["headers"])
        assert resp.status_code == 422

    def test_feedback_needs_completed_session(self, client):
        host = register(client, "host@meetnear.app")
        s = _create(client, host)
        resp = client.post(f"/sessions/{s['id']}/feedback", json={"rating": 4}, headers=host["headers"])
        assert resp.status_code == 409

    def test_only_creator_starts(self, client):
        host = register(client, "host@meetnear.app")
        guest = register(client, "guest@meetnear.app")
        s = _create(client, host)
        assert client.post(f"/sessions/{s['id']}/start", headers=guest["headers"]).status_code == 403
        assert client.post(f"/sessions/{s['id']}/complete", headers=host["headers"]).status_code == 409


class TestChatLeaveThenLifecycle:
    def test_host_cannot_leave_open_session_chat(self, client):
        host = register(client, "host@meetnear.app")
        s = _create(client, host)

        resp = client.post(f"/chat/{s['chat_id']}/leave", headers=host["headers"])
        assert resp.status_code == 409
        assert resp.json()["error_code"] == "invalid_state"

        cancelled = client.post(f"/sessions/{s['id']}/cancel", json={"reason": "Rain"}, headers=host["headers"])
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"

    def test_host_may_leave_after_cancelling(self, client):
        host = register(client, "host@meetnear.app")
        s = _create(client, host)
        client.post(f"/sessions/{s['id']}/cancel", headers=host["headers"])

        assert client.post(f"/chat/{s['chat_id']}/leave", headers=host["headers"]).status_code == 204

    def test_cancel_after_guest_left_chat(self, client):
        host = register(client, "host@meetnear.app")
        guest = register(client, "guest@meetnear.app")
        s = _create(client, host)
        client.post(f"/sessions/{s['id']}/join", headers=guest["headers"])
        assert client.post(f"/chat/{s['chat_id']}/leave", headers=guest["headers"]).status_code == 204

        resp = client.post(f"/sessions/{s['id']}/cancel", json={"reason": "Rain"}, headers=host["headers"])
        assert resp.status_code == 200
        msgs = client.get(f"/chat/{s['chat_id']}/messages", headers=host["headers"]).json()["messages"]
        assert msgs[-1]["content"] == "This session has been cancelled: Rain"


class TestMeetingPoint:
    def _locate(self, client, member, coordinates):
        resp = client.put("/users/me/location", json={"coordinates": coordinates}, headers=member["headers"])
        assert resp.status_code == 200

    def test_members_meet_in_the_middle(self, client):
        host = register(client, "host@meetnear.app")
        guest = register(client, "guest@meetnear.app")
        s = _create(client, host)
        client.post(f"/sessions/{s['id']}/join", headers=guest["headers"])
        self._locate(client, host, [-122.40, 37.78])
        self._locate(client, guest, [-122.42, 37.80])

        resp = client.post(f"/sessions/{s['id']}/meeting-point", headers=guest["headers"])

        assert resp.status_code == 200
        lng, lat = resp.json()["meeting_point"]["coordinates"]
        assert abs(lng - -122.41) < 1e-3
        assert abs(lat - 37.79) < 1e-3

    def test_not_enough_positions(self, client):
        host = register(client, "host@meetnear.app")
        s = _create(client, host)
        self._locate(client, host, [-122.40, 37.78])

        resp = client.post(f"/sessions/{s['id']}/meeting-point", headers=host["headers"])
        assert resp.status_code == 422
        assert client.get(f"/sessions/{s['id']}", headers=host["headers"]).json()["meeting_point"] is None

    def test_outsider_is_forbidden(self, client):
        host = register(client, "host@meetnear.app")
        stranger = register(client, "stranger@meetnear.app")
        s = _create(client, host)
        resp = client.post(f"/sessions/{s['id']}/meeting-point", headers=stranger["headers"])
        assert resp.status_code == 403
