"""HTTP route definitions for the SSE transport."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse, StreamingResponse
from starlette.types import Receive, Scope, Send

from mermaider.application.router import RequestRouter
from mermaider.application.session_manager import SessionManager
from mermaider.errors import (
    DuplicateSessionError,
    HandshakeError,
    InvalidEnvelopeError,
    MissingSessionIdError,
    SessionNotFoundError,
)
from mermaider.infrastructure.sse.channel import SseStreamChannel

logger = logging.getLogger("mermaider.http")

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@dataclass(frozen=True)
class StreamRouteDeps:
    session_manager: SessionManager
    request_router: RequestRouter
    channel_factory: Callable[[], SseStreamChannel]
    keepalive_seconds: float


class SessionStreamResponse(StreamingResponse):
    """Streaming response that closes its session however the stream ends.

    Covers normal completion, client disconnect, send failures and
    cancellation, including the case where the body iterator never started.
    """

    def __init__(
        self,
        content: AsyncIterable[str],
        *,
        on_close: Callable[[], object],
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(content, media_type="text/event-stream", headers=headers)
        self._on_close = on_close

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self._on_close()


def add_stream_routes(
    app: FastAPI,
    dependency_provider: Callable[[], StreamRouteDeps],
    *,
    stream_path: str = "/sse",
    message_path: str = "/messages",
) -> None:
    def get_dependencies() -> StreamRouteDeps:
        return dependency_provider()

    @app.get(
        stream_path,
        response_class=StreamingResponse,
        description="Open an SSE stream; the first event discloses the message endpoint.",
    )
    async def open_stream(
        deps: StreamRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> StreamingResponse:
        channel = deps.channel_factory()
        try:
            session = deps.session_manager.open_session(channel, message_path)
        except (HandshakeError, DuplicateSessionError) as exc:
            logger.error("failed to start SSE session", extra={"data": {"error": str(exc)}})
            raise HTTPException(status_code=500, detail="failed to start SSE session") from exc

        session_id = session.session_id
        return SessionStreamResponse(
            channel.frames(deps.keepalive_seconds),
            on_close=lambda: deps.session_manager.close_session(session_id),
            headers=SSE_HEADERS,
        )

    @app.post(
        message_path,
        status_code=202,
        response_class=PlainTextResponse,
        description="Submit one JSON-RPC message for the session named by sessionId.",
    )
    async def post_message(
        request: Request,
        session_id: str | None = Query(default=None, alias="sessionId"),  # noqa: B008
        deps: StreamRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> PlainTextResponse:
        body = await request.body()
        try:
            deps.request_router.route(session_id, body)
        except MissingSessionIdError as exc:
            raise HTTPException(status_code=400, detail="Missing sessionId query parameter.") from exc
        except SessionNotFoundError as exc:
            raise HTTPException(
                status_code=404,
                detail=f"No active SSE connection for session: {exc.session_id}",
            ) from exc
        except InvalidEnvelopeError as exc:
            logger.info(
                "rejected malformed message",
                extra={"data": {"session_id": session_id, "error": str(exc)}},
            )
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return PlainTextResponse("Accepted", status_code=202)


def add_health_routes(app: FastAPI, dependency_provider: Callable[[], StreamRouteDeps]) -> None:
    def get_dependencies() -> StreamRouteDeps:
        return dependency_provider()

    @app.get("/healthz", tags=["health"], description="Server health check.")
    async def health(
        deps: StreamRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> dict[str, object]:
        return {"status": "ok", "sessions": deps.session_manager.count()}


__all__ = [
    "SSE_HEADERS",
    "SessionStreamResponse",
    "StreamRouteDeps",
    "add_health_routes",
    "add_stream_routes",
]
