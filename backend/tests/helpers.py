"""Request builders shared by the API tests."""

from datetime import datetime, timedelta

# Union Square, San Francisco ([longitude, latitude])
HERE = [-122.4075, 37.7880]


def register(client, email: str, name: str = "Member", password: str = "correct-horse") -> dict:
    """Register through the API and return auth headers plus the user id."""
    resp = client.post("/auth/register", json={"email": email, "password": password, "name": name})
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return {"user_id": body["user_id"], "headers": {"Authorization": f"Bearer {body['access_token']}"}}


def session_payload(hours_ahead: float = 2, duration_hours: float = 1, **overrides) -> dict:
    start = datetime.utcnow() + timedelta(hours=hours_ahead)
    payload = {
        "title": "Lunch by the park",
        "description": "Sandwiches and a walk around the square",
        "type": "lunch",
        "location": {
            "type": "Point",
            "coordinates": HERE,
            "address": {"city": "San Francisco", "country": "US"},
            "venue": {"name": "Blue Bottle", "type": "cafe"},
        },
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(hours=duration_hours)).isoformat(),
        "max_participants": 4,
    }
    payload.update(overrides)
    return payload
