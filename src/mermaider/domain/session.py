"""Stream channel lifecycle states."""

from __future__ import annotations

from enum import Enum


class StreamState(str, Enum):
    """Lifecycle states for a server-to-client stream channel.

    Transitions only move forward: ``CONNECTING -> OPEN -> CLOSED``. A channel
    that reached ``CLOSED`` is never reopened; reconnecting clients get a new
    channel and a new session id.
    """

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


__all__ = ["StreamState"]
