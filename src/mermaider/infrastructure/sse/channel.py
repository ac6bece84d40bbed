"""Server-Sent-Events stream channel backing one client connection."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit
from uuid import uuid4

from mermaider.application.ports.stream_channel import StreamChannelPort
from mermaider.domain.session import StreamState
from mermaider.errors import HandshakeError
from mermaider.json_types import JsonObject

logger = logging.getLogger("mermaider.sse")

ENDPOINT_EVENT = "endpoint"
MESSAGE_EVENT = "message"
KEEPALIVE_FRAME = ": keepalive\n\n"
SESSION_ID_PARAM = "sessionId"


def _new_session_id() -> str:
    return str(uuid4())


def encode_sse_event(event: str, data: str) -> str:
    """Format a single SSE frame; multi-line data becomes several ``data:`` fields."""
    lines = data.splitlines() or [""]
    payload = "".join(f"data: {line}\n" for line in lines)
    return f"event: {event}\n{payload}\n"


def endpoint_with_session_id(endpoint: str, session_id: str) -> str:
    """Append the ``sessionId`` query parameter, keeping any existing query."""
    parts = urlsplit(endpoint)
    query = [(key, value) for key, value in parse_qsl(parts.query) if key != SESSION_ID_PARAM]
    query.append((SESSION_ID_PARAM, session_id))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class SseStreamChannel(StreamChannelPort):
    """Queue-backed push channel; the HTTP layer drains it through ``frames``."""

    def __init__(self, *, id_factory: Callable[[], str] = _new_session_id) -> None:
        self._session_id = id_factory()
        self._state = StreamState.CONNECTING
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def state(self) -> StreamState:
        return self._state

    def open(self, endpoint: str) -> None:
        if self._state is not StreamState.CONNECTING:
            raise HandshakeError(f"stream channel is {self._state.value}, expected connecting")
        if not self._session_id:
            raise HandshakeError("stream channel has no session id")
        self._queue.put_nowait(
            encode_sse_event(ENDPOINT_EVENT, endpoint_with_session_id(endpoint, self._session_id))
        )
        self._state = StreamState.OPEN

    def send(self, message: JsonObject) -> bool:
        if self._state is not StreamState.OPEN:
            logger.debug(
                "dropping message for inactive stream",
                extra={"data": {"session_id": self._session_id, "state": self._state.value}},
            )
            return False
        encoded = json.dumps(message, separators=(",", ":"), ensure_ascii=False)
        self._queue.put_nowait(encode_sse_event(MESSAGE_EVENT, encoded))
        return True

    def close(self) -> None:
        if self._state is StreamState.CLOSED:
            return
        self._state = StreamState.CLOSED
        # sentinel wakes a pending ``frames`` consumer so the response can end
        self._queue.put_nowait(None)

    async def frames(self, keepalive_seconds: float) -> AsyncIterator[str]:
        """Yield encoded frames until the channel closes, with idle keepalives."""
        while True:
            try:
                frame = await asyncio.wait_for(self._queue.get(), timeout=keepalive_seconds)
            except TimeoutError:
                if self._state is StreamState.CLOSED:
                    return
                yield KEEPALIVE_FRAME
                continue
            if frame is None:
                return
            yield frame


__all__ = [
    "ENDPOINT_EVENT",
    "KEEPALIVE_FRAME",
    "MESSAGE_EVENT",
    "SESSION_ID_PARAM",
    "SseStreamChannel",
    "encode_sse_event",
    "endpoint_with_session_id",
]
