"""Outcome of a diagram syntax check."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias


@dataclass(frozen=True, slots=True)
class SyntaxValid:
    """The diagram parsed cleanly."""


@dataclass(frozen=True, slots=True)
class SyntaxInvalid:
    """The diagram failed to parse; ``message`` is shown to the caller verbatim."""

    message: str

    def __post_init__(self) -> None:
        if not isinstance(self.message, str):
            raise TypeError("message must be a string")


SyntaxCheckResult: TypeAlias = SyntaxValid | SyntaxInvalid


__all__ = ["SyntaxCheckResult", "SyntaxInvalid", "SyntaxValid"]
