from __future__ import annotations

import pytest

from mermaider.domain.validation import SyntaxInvalid
from mermaider.protocol.tools import (
    RegisteredTool,
    ToolCallResult,
    ToolRegistry,
    ValidateSyntaxArguments,
    syntax_validation_tool,
)
from tests.fixtures.fakes import FakeSyntaxChecker


def test_tool_call_result_json_shape() -> None:
    assert ToolCallResult.text("").to_json() == {"content": [{"type": "text", "text": ""}], "isError": False}
    assert ToolCallResult.text("boom", is_error=True).to_json() == {
        "content": [{"type": "text", "text": "boom"}],
        "isError": True,
    }


def test_registry_rejects_duplicate_names() -> None:
    tool = syntax_validation_tool(FakeSyntaxChecker())
    registry = ToolRegistry([tool])

    with pytest.raises(ValueError):
        registry.register(tool)

    assert registry.get("validate_syntax") is tool
    assert registry.get("render") is None
    assert [item.name for item in registry] == ["validate_syntax"]


@pytest.mark.anyio
async def test_validate_syntax_handler_maps_checker_outcome() -> None:
    tool = syntax_validation_tool(FakeSyntaxChecker(SyntaxInvalid("Parse error on line 1:")))

    result = await tool.handler(ValidateSyntaxArguments(diagram_code="graph"))

    assert result == ToolCallResult(texts=("Parse error on line 1:",), is_error=True)


@pytest.mark.anyio
async def test_validate_syntax_handler_rejects_unknown_outcome() -> None:
    class OddChecker(FakeSyntaxChecker):
        async def check(self, diagram_code: str):  # type: ignore[override]
            return "valid"

    tool = syntax_validation_tool(OddChecker())

    with pytest.raises(TypeError):
        await tool.handler(ValidateSyntaxArguments(diagram_code="graph"))


def test_registered_tool_describe_uses_arguments_model_schema() -> None:
    async def _noop(_: ValidateSyntaxArguments) -> ToolCallResult:
        return ToolCallResult.text("")

    tool = RegisteredTool(
        name="echo",
        description="Echo.",
        arguments_model=ValidateSyntaxArguments,
        handler=_noop,
    )

    assert tool.describe() == {
        "name": "echo",
        "description": "Echo.",
        "inputSchema": ValidateSyntaxArguments.model_json_schema(),
    }
