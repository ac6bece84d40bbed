"""Port describing live session state access."""

from __future__ import annotations

from typing import Protocol

from mermaider.application.dto.session import Session


class SessionRegistryPort(Protocol):
    """In-memory registry of open stream sessions."""

    def register(self, session: Session) -> None:
        """Store a newly opened session; duplicate ids are an invariant violation."""

    def lookup(self, session_id: str) -> Session | None:
        """Return the session identified by ``session_id``."""

    def remove(self, session_id: str) -> Session | None:
        """Remove the session, if present, and return it."""

    def session_ids(self) -> tuple[str, ...]:
        """Snapshot of the currently registered ids."""

    def __len__(self) -> int:
        ...


__all__ = ["SessionRegistryPort"]
