"""Session record tying a stream channel to its protocol connection."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from mermaider.application.ports.protocol import ProtocolConnectionPort
from mermaider.application.ports.stream_channel import StreamChannelPort


@dataclass(frozen=True, slots=True)
class Session:
    """Pairing of a session id with its stream channel for one connection."""

    session_id: str
    channel: StreamChannelPort
    connection: ProtocolConnectionPort
    opened_at: datetime

    def __post_init__(self) -> None:
        if not self.session_id:
            raise ValueError("session_id must be a non-empty string")


__all__ = ["Session"]
