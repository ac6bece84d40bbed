"""Fast pre-check in front of the full Mermaid parser.

Catches the errors Mermaid reports before grammar parsing (unknown diagram
type, bad flowchart direction, unbalanced brackets) without spawning the CLI.
It never decides that a diagram is valid: anything it lets through goes to the
wrapped checker.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from mermaider.application.ports.syntax_checker import SyntaxCheckerPort
from mermaider.domain.validation import SyntaxCheckResult, SyntaxInvalid

logger = logging.getLogger("mermaider.checkers.precheck")

FLOWCHART_KEYWORDS: frozenset[str] = frozenset({"graph", "flowchart", "flowchart-elk"})

DIAGRAM_KEYWORDS: frozenset[str] = FLOWCHART_KEYWORDS | {
    "sequenceDiagram",
    "classDiagram",
    "classDiagram-v2",
    "stateDiagram",
    "stateDiagram-v2",
    "erDiagram",
    "journey",
    "gantt",
    "pie",
    "gitGraph",
    "mindmap",
    "timeline",
    "quadrantChart",
    "requirement",
    "requirementDiagram",
    "C4Context",
    "C4Container",
    "C4Component",
    "C4Dynamic",
    "C4Deployment",
    "sankey-beta",
    "xychart-beta",
    "block-beta",
    "packet-beta",
    "architecture-beta",
    "kanban",
    "zenuml",
    "info",
}

FLOWCHART_DIRECTIONS: frozenset[str] = frozenset({"TB", "TD", "BT", "RL", "LR", ">", "<", "^", "v"})

_FRONT_MATTER = re.compile(r"\A\s*---[ \t]*\r?\n.*?\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_DIRECTIVE = re.compile(r"%%\{.*?\}%%", re.DOTALL)
_COMMENT = re.compile(r"^\s*%%")
_FIRST_TOKEN = re.compile(r"[^\s;]+")

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")", "]", "}"}


class MermaidPrecheck(SyntaxCheckerPort):
    """Rejects obviously broken diagrams, then defers to ``delegate``."""

    def __init__(self, delegate: SyntaxCheckerPort, keywords: Iterable[str] = DIAGRAM_KEYWORDS) -> None:
        self._delegate = delegate
        self._keywords = frozenset(keywords)

    async def check(self, diagram_code: str) -> SyntaxCheckResult:
        rejected = self.precheck(diagram_code)
        if rejected is not None:
            logger.debug("diagram rejected by pre-check", extra={"data": {"chars": len(diagram_code)}})
            return rejected
        return await self._delegate.check(diagram_code)

    def precheck(self, diagram_code: str) -> SyntaxInvalid | None:
        """Return the error Mermaid would raise before parsing, or None."""
        statements = _significant_lines(diagram_code)
        if not statements:
            return SyntaxInvalid(_unknown_diagram(diagram_code))

        _, first_line = statements[0]
        match = _FIRST_TOKEN.match(first_line.strip())
        keyword = match.group(0) if match else ""
        if keyword not in self._keywords:
            return SyntaxInvalid(_unknown_diagram(diagram_code))

        if keyword in FLOWCHART_KEYWORDS:
            return _check_flowchart(statements, keyword)
        return None


def _significant_lines(text: str) -> list[tuple[int, str]]:
    """Return ``(line_number, line)`` pairs, skipping front-matter, directives and comments."""

    def _blank_out(match: re.Match[str]) -> str:
        return "\n" * match.group(0).count("\n")

    cleaned = _FRONT_MATTER.sub(_blank_out, text)
    cleaned = _DIRECTIVE.sub(_blank_out, cleaned)
    return [
        (number, line)
        for number, line in enumerate(cleaned.splitlines(), start=1)
        if line.strip() and not _COMMENT.match(line)
    ]


def _unknown_diagram(text: str) -> str:
    return f"No diagram type detected matching given configuration for text: {text.strip()}"


def _check_flowchart(statements: list[tuple[int, str]], keyword: str) -> SyntaxInvalid | None:
    line_number, header_line = statements[0]
    header = header_line.strip()[len(keyword) :]
    head, _, _ = header.partition(";")
    tokens = head.split()
    if tokens and tokens[0] not in FLOWCHART_DIRECTIONS:
        column = header_line.index(tokens[0], header_line.index(keyword) + len(keyword))
        return SyntaxInvalid(
            _parse_error(
                line_number,
                header_line,
                column,
                expected="DIR",
                found=tokens[0],
            )
        )
    return _check_brackets(statements)


def _check_brackets(statements: list[tuple[int, str]]) -> SyntaxInvalid | None:
    # (expected closer, line number, line text, column)
    stack: list[tuple[str, int, str, int]] = []
    for line_number, line in statements:
        in_quotes = False
        for column, char in enumerate(line):
            if char == '"':
                in_quotes = not in_quotes
                continue
            if in_quotes:
                continue
            if char in _OPENERS:
                stack.append((_OPENERS[char], line_number, line, column))
            elif char in _CLOSERS:
                if not stack:
                    # asymmetric node shapes such as ``A>label]`` close without an opener
                    continue
                expected, _, _, _ = stack[-1]
                if char != expected:
                    return SyntaxInvalid(_parse_error(line_number, line, column, expected=expected, found=char))
                stack.pop()
    if stack:
        expected, line_number, line, column = stack[-1]
        return SyntaxInvalid(_parse_error(line_number, line, column, expected=expected, found="EOF"))
    return None


def _parse_error(line_number: int, line: str, column: int, *, expected: str, found: str) -> str:
    pointer = "-" * column + "^"
    return f"Parse error on line {line_number}:\n{line}\n{pointer}\nExpecting '{expected}', got '{found}'"


__all__ = [
    "DIAGRAM_KEYWORDS",
    "FLOWCHART_DIRECTIONS",
    "FLOWCHART_KEYWORDS",
    "MermaidPrecheck",
]
