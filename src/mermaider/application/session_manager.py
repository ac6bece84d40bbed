"""Session lifecycle use case: open, look up and close stream sessions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from mermaider.application.dto.session import Session
from mermaider.application.ports.protocol import ProtocolServerPort
from mermaider.application.ports.session_registry import SessionRegistryPort
from mermaider.application.ports.stream_channel import StreamChannelPort
from mermaider.errors import DuplicateSessionError, HandshakeError

logger = logging.getLogger("mermaider.sessions")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionManager:
    """Coordinates stream handshakes, protocol binding and session teardown."""

    def __init__(
        self,
        sessions: SessionRegistryPort,
        server: ProtocolServerPort,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._sessions = sessions
        self._server = server
        self._clock = clock

    def open_session(self, channel: StreamChannelPort, endpoint: str) -> Session:
        """Run the channel handshake, bind a protocol connection and register it.

        Raises ``HandshakeError`` without registering anything when the channel
        has no usable id, and ``DuplicateSessionError`` when the id is taken. In
        both cases the channel is closed and the caller must abort the connection.
        """
        session_id = channel.session_id
        if not session_id:
            channel.close()
            raise HandshakeError("stream channel did not produce a session id")

        channel.open(endpoint)
        connection = self._server.connect(channel)
        session = Session(
            session_id=session_id,
            channel=channel,
            connection=connection,
            opened_at=self._clock(),
        )
        try:
            self._sessions.register(session)
        except DuplicateSessionError:
            channel.close()
            raise
        logger.info(
            "session opened",
            extra={"data": {"session_id": session_id, "open_sessions": len(self._sessions)}},
        )
        return session

    def lookup(self, session_id: str) -> Session | None:
        return self._sessions.lookup(session_id)

    def close_session(self, session_id: str) -> bool:
        """Remove the session and close its channel; repeated calls are no-ops."""
        session = self._sessions.remove(session_id)
        if session is None:
            return False
        session.channel.close()
        logger.info(
            "session closed",
            extra={"data": {"session_id": session_id, "open_sessions": len(self._sessions)}},
        )
        return True

    def close_all(self) -> int:
        """Close every registered session; used on server shutdown."""
        closed = 0
        for session_id in self._sessions.session_ids():
            if self.close_session(session_id):
                closed += 1
        if closed:
            logger.info("closed sessions on shutdown", extra={"data": {"closed": closed}})
        return closed

    def count(self) -> int:
        return len(self._sessions)


__all__ = ["SessionManager"]
