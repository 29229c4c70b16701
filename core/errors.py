"""Domain errors raised by the matchmaking core.

Each error carries the HTTP status it maps to and a short machine-readable
code. Errors are terminal for the call that raised them; nothing in the core
retries internally.
"""

from fastapi import status


class ChatCoreError(Exception):
    """Base class for all domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.__class__.__doc__ or self.code
        super().__init__(self.detail)


class Unauthenticated(ChatCoreError):
    """No resolved caller identity."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"


class Unauthorized(ChatCoreError):
    """Caller is not a party to the referenced entity."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "unauthorized"


class NotFound(ChatCoreError):
    """Referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class AlreadyInActiveSession(ChatCoreError):
    """User already participates in an active chat session."""

    status_code = status.HTTP_409_CONFLICT
    code = "already_in_active_session"


class InvalidPhase(ChatCoreError):
    """Operation is not allowed in the session's current phase or status."""

    status_code = status.HTTP_409_CONFLICT
    code = "invalid_phase"


class Conflict(ChatCoreError):
    """Operation conflicts with the current state; retry after it changes."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class RateLimited(ChatCoreError):
    """Too many requests in the current window."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"


class ValidationError(ChatCoreError):
    """Input value rejected by a domain rule."""

    status_code = 422
    code = "validation_error"
