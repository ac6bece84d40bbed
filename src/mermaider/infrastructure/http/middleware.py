"""HTTP access logging keyed by MCP session."""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any
from uuid import uuid4

from fastapi import Request
from starlette.responses import Response

from mermaider.infrastructure.sse.channel import SESSION_ID_PARAM

logger = logging.getLogger("mermaider.http")

EVENT_STREAM_MEDIA_TYPE = "text/event-stream"
BODY_LOG_LIMIT = 1024


async def request_logging_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Any]],
) -> Any:
    """Log each call with its session id; SSE responses are logged as stream open/close."""
    fields: dict[str, Any] = {
        "request_id": request.headers.get("x-request-id", uuid4().hex),
        "method": request.method,
        "path": request.url.path,
        "session_id": request.query_params.get(SESSION_ID_PARAM),
    }
    # the SSE GET has no body and must not be buffered
    body = "" if request.method == "GET" else _preview(await request.body())
    logger.info("request_received", extra={"data": {**fields, "body": body}})

    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed", extra={"data": fields})
        raise

    fields["status_code"] = response.status_code
    if _is_event_stream(response):
        logger.info("stream_opened", extra={"data": fields})
        response.body_iterator = _track_stream(response.body_iterator, fields, started)
        return response

    logger.info("request_completed", extra={"data": {**fields, "duration_ms": _elapsed_ms(started)}})
    return response


async def _track_stream(
    frames: AsyncIterator[bytes | str],
    fields: dict[str, Any],
    started: float,
) -> AsyncIterator[bytes | str]:
    sent = 0
    try:
        async for frame in frames:
            sent += 1
            yield frame
    finally:
        logger.info(
            "stream_closed",
            extra={"data": {**fields, "frames": sent, "duration_ms": _elapsed_ms(started)}},
        )


def _is_event_stream(response: Response) -> bool:
    return response.headers.get("content-type", "").startswith(EVENT_STREAM_MEDIA_TYPE)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _preview(body: bytes) -> str:
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        return f"<binary data: {len(body)} bytes>"
    if len(text) > BODY_LOG_LIMIT:
        return text[:BODY_LOG_LIMIT] + "... (truncated)"
    return text


__all__ = ["request_logging_middleware"]
