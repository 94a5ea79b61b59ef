class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthorizationError(DomainError):
    """Raised when an actor lacks permission for an action."""


class SessionNotFound(DomainError):
    """Raised when an attendance session id does not exist."""

    def __init__(self, session_id: int):
        super().__init__(f"Attendance session {session_id} not found")
        self.session_id = session_id


class SessionNotActive(DomainError):
    """Raised when marking against a completed or cancelled session."""

    def __init__(self, session_id: int, status: str):
        super().__init__(f"Attendance session {session_id} is {status}")
        self.session_id = session_id
        self.status = status


class StoreUnavailable(DomainError):
    """Transient failure talking to the persistent store."""


class RecomputeFailed(DomainError):
    """Raised when session counts could not be rewritten atomically."""
