"""MCP protocol engine: JSON-RPC dispatch bound to one stream channel per connection."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from opentelemetry import trace
from pydantic import ValidationError

from mermaider.application.ports.protocol import ProtocolConnectionPort, ProtocolServerPort
from mermaider.application.ports.stream_channel import StreamChannelPort
from mermaider.errors import ProtocolError
from mermaider.json_types import JsonObject
from mermaider.protocol.messages import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    decode_message,
    error_response,
    format_validation_error,
    result_response,
)
from mermaider.protocol.tools import ToolCallResult, ToolRegistry

logger = logging.getLogger("mermaider.protocol")
_tracer = trace.get_tracer("mermaider.protocol")

SERVER_NAME = "mermaider"
SERVER_VERSION = "0.1.0"

LATEST_PROTOCOL_VERSION = "2025-03-26"
SUPPORTED_PROTOCOL_VERSIONS: tuple[str, ...] = (
    LATEST_PROTOCOL_VERSION,
    "2024-11-05",
    "2024-10-07",
)


@dataclass(frozen=True, slots=True)
class ServerInfo:
    name: str = SERVER_NAME
    version: str = SERVER_VERSION


class McpServer(ProtocolServerPort):
    """Shared tool catalogue and request dispatcher.

    Holds no per-connection state; ``connect`` produces the binding that owns
    the stream channel for one connection's lifetime.
    """

    def __init__(self, tools: ToolRegistry, *, info: ServerInfo | None = None) -> None:
        self._tools = tools
        self._info = info or ServerInfo()

    def connect(self, channel: StreamChannelPort) -> ProtocolConnection:
        return ProtocolConnection(self, channel)

    async def handle_request(self, request: JsonRpcRequest, *, session_id: str) -> JsonObject:
        """Return the JSON-RPC response for ``request``; never raises."""
        try:
            result = await self._dispatch(request, session_id=session_id)
        except ProtocolError as exc:
            return error_response(request.id, exc.code, exc.message)
        except Exception:
            logger.exception(
                "request handling failed",
                extra={"data": {"method": request.method, "session_id": session_id}},
            )
            return error_response(request.id, INTERNAL_ERROR, f"Internal error in {request.method}")
        return result_response(request.id, result)

    def handle_notification(self, notification: JsonRpcNotification, *, session_id: str) -> None:
        logger.debug(
            "notification received",
            extra={"data": {"method": notification.method, "session_id": session_id}},
        )

    async def _dispatch(self, request: JsonRpcRequest, *, session_id: str) -> JsonObject:
        params = request.params or {}
        match request.method:
            case "initialize":
                return self._initialize(params)
            case "ping":
                return {}
            case "tools/list":
                return {"tools": [tool.describe() for tool in self._tools]}
            case "tools/call":
                return await self._call_tool(params, session_id=session_id)
            case _:
                raise ProtocolError(METHOD_NOT_FOUND, f"Method not found: {request.method}")

    def _initialize(self, params: JsonObject) -> JsonObject:
        requested = params.get("protocolVersion")
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION
        return {
            "protocolVersion": version,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": self._info.name, "version": self._info.version},
        }

    async def _call_tool(self, params: JsonObject, *, session_id: str) -> JsonObject:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise ProtocolError(INVALID_PARAMS, "name is required")
        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ProtocolError(INVALID_PARAMS, "arguments must be an object")

        tool = self._tools.get(name)
        if tool is None:
            raise ProtocolError(INVALID_PARAMS, f"Tool {name} not found")

        try:
            parsed = tool.arguments_model.model_validate(arguments)
        except ValidationError as exc:
            raise ProtocolError(
                INVALID_PARAMS,
                f"Invalid arguments for tool {name}: {format_validation_error(exc)}",
            ) from exc

        with _tracer.start_as_current_span("mcp.tools.call") as span:
            span.set_attribute("mcp.tool.name", name)
            span.set_attribute("mcp.session.id", session_id)
            try:
                outcome = await tool.handler(parsed)
            except Exception as exc:
                logger.exception(
                    "tool execution failed",
                    extra={"data": {"tool": name, "session_id": session_id}},
                )
                span.record_exception(exc)
                outcome = ToolCallResult.text(str(exc) or type(exc).__name__, is_error=True)
            span.set_attribute("mcp.tool.is_error", outcome.is_error)
        return outcome.to_json()


class ProtocolConnection(ProtocolConnectionPort):
    """One protocol binding: decodes posted envelopes, replies on its channel."""

    def __init__(self, server: McpServer, channel: StreamChannelPort) -> None:
        self._server = server
        self._channel = channel
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def channel(self) -> StreamChannelPort:
        return self._channel

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def accept(self, body: bytes) -> None:
        message = decode_message(body)
        session_id = self._channel.session_id
        match message:
            case JsonRpcRequest():
                task = asyncio.create_task(self._respond(message), name=f"mcp:{message.method}")
                self._tasks.add(task)
                task.add_done_callback(self._reap)
            case JsonRpcNotification():
                self._server.handle_notification(message, session_id=session_id)
            case JsonRpcResponse():
                logger.debug("ignoring client response", extra={"data": {"session_id": session_id}})

    async def drain(self) -> None:
        """Wait for every in-flight request handled by this connection."""
        while self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)

    def _reap(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "reply task failed",
                exc_info=exc,
                extra={"data": {"session_id": self._channel.session_id, "task": task.get_name()}},
            )

    async def _respond(self, request: JsonRpcRequest) -> None:
        response = await self._server.handle_request(request, session_id=self._channel.session_id)
        # in-flight calls outlive their stream; the channel drops late replies
        if not self._channel.send(response):
            logger.debug(
                "reply discarded for closed stream",
                extra={"data": {"session_id": self._channel.session_id, "method": request.method}},
            )


__all__ = [
    "LATEST_PROTOCOL_VERSION",
    "SERVER_NAME",
    "SERVER_VERSION",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "McpServer",
    "ProtocolConnection",
    "ServerInfo",
]
