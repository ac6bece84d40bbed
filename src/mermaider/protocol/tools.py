"""Tool catalogue exposed through ``tools/list`` and ``tools/call``."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mermaider.application.ports.syntax_checker import SyntaxCheckerPort
from mermaider.domain.validation import SyntaxInvalid, SyntaxValid
from mermaider.json_types import JsonObject

VALIDATE_SYNTAX_TOOL = "validate_syntax"


@dataclass(frozen=True, slots=True)
class ToolCallResult:
    """Text content returned by a tool plus the MCP ``isError`` flag."""

    texts: tuple[str, ...]
    is_error: bool = False

    @classmethod
    def text(cls, text: str, *, is_error: bool = False) -> ToolCallResult:
        return cls(texts=(text,), is_error=is_error)

    def to_json(self) -> JsonObject:
        return {
            "content": [{"type": "text", "text": text} for text in self.texts],
            "isError": self.is_error,
        }


ToolHandler = Callable[[Any], Awaitable[ToolCallResult]]


@dataclass(frozen=True, slots=True)
class RegisteredTool:
    """A callable tool with the pydantic model describing its arguments."""

    name: str
    description: str
    arguments_model: type[BaseModel]
    handler: ToolHandler

    def describe(self) -> JsonObject:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.arguments_model.model_json_schema(),
        }


class ToolRegistry:
    """In-memory registry of tools, keyed by name."""

    def __init__(self, tools: Iterable[RegisteredTool] = ()) -> None:
        self._tools: dict[str, RegisteredTool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: RegisteredTool) -> RegisteredTool:
        if tool.name in self._tools:
            raise ValueError(f"tool {tool.name!r} is already registered")
        self._tools[tool.name] = tool
        return tool

    def get(self, name: str) -> RegisteredTool | None:
        return self._tools.get(name)

    def __iter__(self) -> Iterator[RegisteredTool]:
        return iter(self._tools.values())


class ValidateSyntaxArguments(BaseModel):
    model_config = ConfigDict(frozen=True)

    diagram_code: str = Field(description="Mermaid diagram code")


def syntax_validation_tool(checker: SyntaxCheckerPort) -> RegisteredTool:
    """Wrap ``checker`` as the ``validate_syntax`` tool.

    A valid diagram yields an empty, non-error text result. An invalid one
    yields an error result whose text is the checker's message, unchanged.
    """

    async def validate_syntax(arguments: ValidateSyntaxArguments) -> ToolCallResult:
        result = await checker.check(arguments.diagram_code)
        match result:
            case SyntaxValid():
                return ToolCallResult.text("")
            case SyntaxInvalid(message=message):
                return ToolCallResult.text(message, is_error=True)
            case _:
                raise TypeError(f"unexpected syntax check result: {result!r}")

    return RegisteredTool(
        name=VALIDATE_SYNTAX_TOOL,
        description="Validates Mermaid diagram syntax.",
        arguments_model=ValidateSyntaxArguments,
        handler=validate_syntax,
    )


__all__ = [
    "VALIDATE_SYNTAX_TOOL",
    "RegisteredTool",
    "ToolCallResult",
    "ToolHandler",
    "ToolRegistry",
    "ValidateSyntaxArguments",
    "syntax_validation_tool",
]
