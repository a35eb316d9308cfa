"""Error hierarchy for twentyq.

Every error a request can end in inherits from TwentyQError, which
carries the status_code and error_code the API exception handler uses
to build an ErrorResponse. None of them are fatal to the process.
"""

from __future__ import annotations
from enum import Enum


class ErrorCode(str, Enum):
    """Structured error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    REJECTED_TRANSITION = "REJECTED_TRANSITION"
    UNAUTHORIZED = "UNAUTHORIZED"
    RENDER_FAILED = "RENDER_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class TwentyQError(Exception):
    """Base class for request-terminating errors."""

    status_code: int = 500
    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class SessionNotFoundError(TwentyQError):
    """Unknown or already expired session identifier."""

    status_code = 404
    error_code = ErrorCode.SESSION_NOT_FOUND

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class TransitionRejectedError(TwentyQError):
    """Out-of-turn submission, empty submission, or submission after the game ended."""

    status_code = 400
    error_code = ErrorCode.REJECTED_TRANSITION


class UnauthorizedError(TwentyQError):
    """Privileged operation without a valid oracle credential.

    The message is the same whatever check failed.
    """

    status_code = 401
    error_code = ErrorCode.UNAUTHORIZED

    def __init__(self, message: str = "Oracle credential required") -> None:
        super().__init__(message)


class RenderError(TwentyQError):
    """The renderer failed; nothing was published for the event."""

    status_code = 500
    error_code = ErrorCode.RENDER_FAILED
