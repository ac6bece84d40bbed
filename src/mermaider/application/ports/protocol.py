"""Ports binding the protocol engine to stream channels."""

from __future__ import annotations

from typing import Protocol

from mermaider.application.ports.stream_channel import StreamChannelPort


class ProtocolConnectionPort(Protocol):
    """Protocol engine bound to exactly one stream channel."""

    def accept(self, body: bytes) -> None:
        """Decode one posted envelope and schedule its handling.

        Raises ``InvalidEnvelopeError`` when ``body`` is not a JSON-RPC message.
        """


class ProtocolServerPort(Protocol):
    """Factory producing one protocol connection per stream channel."""

    def connect(self, channel: StreamChannelPort) -> ProtocolConnectionPort:
        """Bind a fresh connection to ``channel``."""


__all__ = ["ProtocolConnectionPort", "ProtocolServerPort"]
