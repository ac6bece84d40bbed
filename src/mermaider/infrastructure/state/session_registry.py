"""In-memory session registry implementation."""

from __future__ import annotations

from threading import Lock

from mermaider.application.dto.session import Session
from mermaider.application.ports.session_registry import SessionRegistryPort
from mermaider.errors import DuplicateSessionError


class InMemorySessionRegistry(SessionRegistryPort):
    """Stores open sessions in memory, one registry per server instance."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = Lock()

    def register(self, session: Session) -> None:
        with self._lock:
            if session.session_id in self._sessions:
                raise DuplicateSessionError(f"session {session.session_id} already registered")
            self._sessions[session.session_id] = session

    def lookup(self, session_id: str) -> Session | None:
        with self._lock:
            session = self._sessions.get(session_id)
        return session

    def remove(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.pop(session_id, None)

    def session_ids(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


__all__ = ["InMemorySessionRegistry"]
