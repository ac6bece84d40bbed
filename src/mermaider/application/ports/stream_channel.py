"""Port describing the server-to-client push channel of one connection."""

from __future__ import annotations

from typing import Protocol

from mermaider.domain.session import StreamState
from mermaider.json_types import JsonObject


class StreamChannelPort(Protocol):
    """One-way channel delivering protocol messages to a connected client."""

    @property
    def session_id(self) -> str:
        """Identifier generated for this connection."""

    @property
    def state(self) -> StreamState:
        """Current lifecycle state."""

    def open(self, endpoint: str) -> None:
        """Disclose ``endpoint`` (with the session id) to the client and move to OPEN."""

    def send(self, message: JsonObject) -> bool:
        """Queue ``message`` for delivery; return False when the channel is gone."""

    def close(self) -> None:
        """Move to CLOSED. Safe to call more than once."""


__all__ = ["StreamChannelPort"]
