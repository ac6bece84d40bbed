"""JSON-RPC 2.0 envelopes exchanged over the SSE transport."""

from __future__ import annotations

import json
from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, ValidationError
from pydantic import JsonValue as PydanticJsonValue

from mermaider.errors import InvalidEnvelopeError
from mermaider.json_types import JsonObject, RequestId

JSONRPC_VERSION = "2.0"

METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class JsonRpcRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    jsonrpc: Literal["2.0"]
    id: StrictStr | StrictInt
    method: str
    params: dict[str, PydanticJsonValue] | None = None


class JsonRpcNotification(BaseModel):
    model_config = ConfigDict(frozen=True)

    jsonrpc: Literal["2.0"]
    method: str
    params: dict[str, PydanticJsonValue] | None = None


class JsonRpcErrorDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: int
    message: str
    data: PydanticJsonValue | None = None


class JsonRpcResponse(BaseModel):
    """Response sent by the client to a server-initiated request."""

    model_config = ConfigDict(frozen=True)

    jsonrpc: Literal["2.0"]
    id: StrictStr | StrictInt | None
    result: dict[str, PydanticJsonValue] | None = None
    error: JsonRpcErrorDTO | None = None


IncomingMessage: TypeAlias = JsonRpcRequest | JsonRpcNotification | JsonRpcResponse


def decode_message(body: bytes) -> IncomingMessage:
    """Parse one posted envelope, raising ``InvalidEnvelopeError`` on any mismatch."""
    try:
        payload: Any = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidEnvelopeError(f"Parse error: {exc}") from exc

    if not isinstance(payload, dict):
        raise InvalidEnvelopeError("Invalid Request: expected a single JSON-RPC object")

    model: type[BaseModel]
    if "method" in payload:
        model = JsonRpcRequest if "id" in payload else JsonRpcNotification
    elif "result" in payload or "error" in payload:
        model = JsonRpcResponse
    else:
        raise InvalidEnvelopeError("Invalid Request: not a JSON-RPC 2.0 message")

    try:
        return model.model_validate(payload)  # type: ignore[return-value]
    except ValidationError as exc:
        raise InvalidEnvelopeError(f"Invalid Request: {format_validation_error(exc)}") from exc


def format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors(include_url=False):
        location = ".".join(str(item) for item in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


def result_response(req_id: RequestId, result: JsonObject) -> JsonObject:
    return {"jsonrpc": JSONRPC_VERSION, "id": req_id, "result": result}


def error_response(req_id: RequestId | None, code: int, message: str) -> JsonObject:
    return {"jsonrpc": JSONRPC_VERSION, "id": req_id, "error": {"code": code, "message": message}}


__all__ = [
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "JSONRPC_VERSION",
    "METHOD_NOT_FOUND",
    "IncomingMessage",
    "JsonRpcErrorDTO",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "decode_message",
    "error_response",
    "format_validation_error",
    "result_response",
]
