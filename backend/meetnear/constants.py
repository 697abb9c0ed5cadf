"""Limits and state machines shared by models, schemas and repositories."""

# Allowed session transitions; completed/cancelled are terminal
SESSION_TRANSITIONS = {
    "scheduled": ("active", "cancelled"),
    "active": ("completed", "cancelled"),
    "completed": (),
    "cancelled": (),
}

# Chats only move forward; there is no reactivation
CHAT_TRANSITIONS = {
    "active": ("archived", "deleted"),
    "archived": ("deleted",),
    "deleted": (),
}

MESSAGE_TYPES = ("text", "image", "location", "system")

TITLE_MIN, TITLE_MAX = 3, 100
DESCRIPTION_MIN, DESCRIPTION_MAX = 10, 1000
MIN_PARTICIPANTS, MAX_PARTICIPANTS = 2, 50
DEFAULT_MAX_PARTICIPANTS = 10
MESSAGE_MAX_LENGTH = 1000
RATING_MIN, RATING_MAX = 1, 5

EARTH_RADIUS_M = 6371000.0
