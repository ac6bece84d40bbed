"""Exception types shared across the session, routing and protocol layers."""

from __future__ import annotations


class MermaiderError(Exception):
    """Base class for mermaider-specific failures."""


class SessionError(MermaiderError):
    """Base class for session lookup and lifecycle failures."""


class MissingSessionIdError(SessionError, ValueError):
    """Raised when a write-endpoint call carries no session identifier."""


class SessionNotFoundError(SessionError, LookupError):
    """Raised when a session identifier matches no open stream."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"session {session_id} not found")
        self.session_id = session_id


class DuplicateSessionError(SessionError, RuntimeError):
    """Raised when a session identifier is registered twice."""


class HandshakeError(SessionError, RuntimeError):
    """Raised when a stream channel cannot disclose a usable session id."""


class InvalidEnvelopeError(MermaiderError, ValueError):
    """Raised when a posted body is not a valid JSON-RPC 2.0 message."""


class ProtocolError(MermaiderError):
    """JSON-RPC level failure reported back to the caller as an error response."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


__all__ = [
    "MermaiderError",
    "SessionError",
    "MissingSessionIdError",
    "SessionNotFoundError",
    "DuplicateSessionError",
    "HandshakeError",
    "InvalidEnvelopeError",
    "ProtocolError",
]
