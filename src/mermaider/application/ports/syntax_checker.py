"""Port describing the diagram syntax capability."""

from __future__ import annotations

from typing import Protocol

from mermaider.domain.validation import SyntaxCheckResult


class SyntaxCheckerPort(Protocol):
    """Checks diagram source text and reports ok or a human-readable error."""

    async def check(self, diagram_code: str) -> SyntaxCheckResult:
        """Return ``SyntaxValid`` or ``SyntaxInvalid`` for ``diagram_code``."""


__all__ = ["SyntaxCheckerPort"]
