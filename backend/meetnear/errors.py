"""
Domain error taxonomy.

Lifecycle operations in the repositories raise these before touching any
state; the API layer renders them through a single exception handler.
"""

from __future__ import annotations
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for rule violations in the session/chat lifecycle."""

    status_code = 400
    code = "domain_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(DomainError):
    status_code = 422
    code = "validation_error"


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"


class DuplicateError(DomainError):
    status_code = 409
    code = "duplicate"


class CapacityError(DomainError):
    status_code = 409
    code = "session_full"


class AuthorizationError(DomainError):
    status_code = 403
    code = "not_authorized"


class InvalidStateError(DomainError):
    """Raised for a transition the session or chat state machine does not allow."""

    status_code = 409
    code = "invalid_state"
