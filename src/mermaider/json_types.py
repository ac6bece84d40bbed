"""Shared type aliases for JSON-compatible values.

These types keep `pydantic` quarantined to the protocol boundary while the
application layer still models JSON-RPC payloads precisely.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeAlias

from typing_extensions import TypeAliasType

JsonPrimitive: TypeAlias = str | int | float | bool | None

if TYPE_CHECKING:
    JsonValue: TypeAlias = JsonPrimitive | list["JsonValue"] | dict[str, "JsonValue"]
    JsonObject: TypeAlias = dict[str, JsonValue]
else:
    JsonValue = TypeAliasType(
        "JsonValue",
        JsonPrimitive | list["JsonValue"] | dict[str, "JsonValue"],
    )
    JsonObject = TypeAliasType("JsonObject", dict[str, JsonValue])

RequestId: TypeAlias = str | int

__all__ = [
    "JsonPrimitive",
    "JsonValue",
    "JsonObject",
    "RequestId",
]
