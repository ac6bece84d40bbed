"""Routes write-endpoint calls to the protocol connection of their session."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mermaider.application.session_manager import SessionManager
from mermaider.errors import MissingSessionIdError, SessionNotFoundError

logger = logging.getLogger("mermaider.router")


@dataclass(frozen=True, slots=True)
class CallAccepted:
    """Acknowledgement that a call was handed to its protocol connection."""

    session_id: str


class RequestRouter:
    """Resolves session ids and forwards posted envelopes, one forward per call."""

    def __init__(self, sessions: SessionManager) -> None:
        self._sessions = sessions

    def route(self, session_id: str | None, body: bytes) -> CallAccepted:
        if session_id is None or not session_id.strip():
            raise MissingSessionIdError("missing sessionId query parameter")

        session = self._sessions.lookup(session_id)
        if session is None:
            logger.warning("call for unknown session", extra={"data": {"session_id": session_id}})
            raise SessionNotFoundError(session_id)

        # InvalidEnvelopeError propagates to the HTTP layer as a client error.
        session.connection.accept(body)
        return CallAccepted(session_id=session_id)


__all__ = ["CallAccepted", "RequestRouter"]
