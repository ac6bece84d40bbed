from __future__ import annotations

import pytest

from mermaider.domain.validation import SyntaxInvalid, SyntaxValid
from mermaider.infrastructure.checkers.precheck import MermaidPrecheck
from tests.fixtures.fakes import FakeSyntaxChecker

PARSER_ERROR = SyntaxInvalid("Parse error on line 2:\nthis is not valid at all\n^\nExpecting 'participant'")


def _precheck(result=None) -> tuple[MermaidPrecheck, FakeSyntaxChecker]:
    delegate = FakeSyntaxChecker(result or SyntaxValid())
    return MermaidPrecheck(delegate), delegate


@pytest.mark.parametrize(
    "diagram",
    [
        "graph TD\nA-->B",
        "flowchart LR\n  A[Start] --> B{Is it?}\n  B -->|Yes| C(Done)",
        "graph TD;A-->B;",
        "graph\nA-->B",
        "graph LR\nA>label] --> B",
        'graph TD\nA["a (b"] --> B',
        "sequenceDiagram\nAlice->>Bob: Hello",
        "classDiagram\nclass Animal",
        "stateDiagram-v2\n[*] --> Still",
        "pie title Pets\n\"Dogs\" : 386",
        "%% leading comment\ngraph TD\nA-->B",
        "---\ntitle: Example\n---\ngraph TD\nA-->B",
        "%%{init: {'theme': 'dark'}}%%\nsequenceDiagram\nA->>B: hi",
    ],
)
def test_passes_plausible_diagrams_through(diagram: str) -> None:
    precheck, _ = _precheck()

    assert precheck.precheck(diagram) is None


@pytest.mark.parametrize(
    "diagram",
    [
        "graph TD\nA--->>>B -- --",
        "sequenceDiagram\nthis is not valid at all",
        'pie\n"a": notanumber',
        "classDiagram\nclass {",
    ],
)
@pytest.mark.anyio
async def test_never_declares_a_diagram_valid_on_its_own(diagram: str) -> None:
    precheck, delegate = _precheck(PARSER_ERROR)

    result = await precheck.check(diagram)

    assert result == PARSER_ERROR
    assert delegate.calls == [diagram]


@pytest.mark.anyio
async def test_rejected_diagrams_never_reach_the_parser() -> None:
    precheck, delegate = _precheck()

    result = await precheck.check("graph XY\nA-->B")

    assert isinstance(result, SyntaxInvalid)
    assert delegate.calls == []


@pytest.mark.parametrize("diagram", ["", "   \n", "not a diagram", "%% only a comment"])
def test_unknown_diagram_type(diagram: str) -> None:
    precheck, _ = _precheck()

    result = precheck.precheck(diagram)

    assert isinstance(result, SyntaxInvalid)
    assert result.message.startswith("No diagram type detected matching given configuration for text:")


def test_unknown_diagram_type_quotes_the_input() -> None:
    precheck, _ = _precheck()

    assert precheck.precheck("  hello world  ") == SyntaxInvalid(
        "No diagram type detected matching given configuration for text: hello world"
    )


def test_invalid_flowchart_direction() -> None:
    precheck, _ = _precheck()

    assert precheck.precheck("graph XY\nA-->B") == SyntaxInvalid(
        "Parse error on line 1:\ngraph XY\n------^\nExpecting 'DIR', got 'XY'"
    )


def test_unclosed_bracket_reports_its_opening_line() -> None:
    precheck, _ = _precheck()

    assert precheck.precheck("graph TD\nA[Start --> B") == SyntaxInvalid(
        "Parse error on line 2:\nA[Start --> B\n-^\nExpecting ']', got 'EOF'"
    )


def test_mismatched_bracket() -> None:
    precheck, _ = _precheck()

    assert precheck.precheck("graph TD\nA[Start) --> B") == SyntaxInvalid(
        "Parse error on line 2:\nA[Start) --> B\n-------^\nExpecting ']', got ')'"
    )


def test_line_numbers_survive_front_matter() -> None:
    precheck, _ = _precheck()

    result = precheck.precheck("---\ntitle: x\n---\ngraph TD\nA{Decide")

    assert isinstance(result, SyntaxInvalid)
    assert result.message.startswith("Parse error on line 5:\nA{Decide\n")


def test_restricted_keyword_set() -> None:
    precheck = MermaidPrecheck(FakeSyntaxChecker(), keywords={"sequenceDiagram"})

    assert precheck.precheck("sequenceDiagram\nA->>B: hi") is None
    assert isinstance(precheck.precheck("graph TD\nA-->B"), SyntaxInvalid)
