"""Syntax checker delegating to the Mermaid CLI (``mmdc``) in a subprocess."""

from __future__ import annotations

import asyncio
import logging
import tempfile
from collections.abc import Sequence
from pathlib import Path

from mermaider.application.ports.syntax_checker import SyntaxCheckerPort
from mermaider.domain.validation import SyntaxCheckResult, SyntaxInvalid, SyntaxValid

logger = logging.getLogger("mermaider.checkers.cli")

DEFAULT_COMMAND: tuple[str, ...] = ("mmdc",)


class MermaidCliChecker(SyntaxCheckerPort):
    """Renders the diagram with the Mermaid CLI and reports its parser error, if any."""

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_COMMAND,
        *,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not command:
            raise ValueError("command must not be empty")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._command = tuple(command)
        self._timeout_seconds = timeout_seconds

    async def check(self, diagram_code: str) -> SyntaxCheckResult:
        with tempfile.TemporaryDirectory(prefix="mermaider-") as workdir:
            source = Path(workdir) / "diagram.mmd"
            output = Path(workdir) / "diagram.svg"
            source.write_text(diagram_code, encoding="utf-8")
            try:
                process = await asyncio.create_subprocess_exec(
                    *self._command,
                    "--input",
                    str(source),
                    "--output",
                    str(output),
                    "--quiet",
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except FileNotFoundError as exc:
                raise RuntimeError(f"mermaid CLI not found: {self._command[0]}") from exc

            try:
                _, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout_seconds)
            except TimeoutError:
                process.kill()
                await process.wait()
                logger.warning(
                    "mermaid CLI timed out",
                    extra={"data": {"timeout_s": self._timeout_seconds}},
                )
                return SyntaxInvalid(f"Syntax check timed out after {self._timeout_seconds:g}s")

        if process.returncode == 0:
            return SyntaxValid()
        return SyntaxInvalid(extract_cli_error(stderr.decode("utf-8", errors="replace"), process.returncode))


def extract_cli_error(stderr: str, returncode: int | None = None) -> str:
    """Pull the parser message out of ``mmdc`` stderr, dropping the JS stack trace."""
    lines = stderr.splitlines()
    start = next((index for index, line in enumerate(lines) if "Error:" in line), None)
    if start is None:
        text = stderr.strip()
        return text or f"mermaid CLI exited with status {returncode}"

    first = lines[start]
    message = [first[first.index("Error:") + len("Error:") :].strip()]
    for line in lines[start + 1 :]:
        if line.lstrip().startswith("at "):
            break
        message.append(line)
    return "\n".join(message).strip()


__all__ = ["DEFAULT_COMMAND", "MermaidCliChecker", "extract_cli_error"]
