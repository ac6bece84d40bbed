"""Runtime wiring for the mermaider server."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from mermaider.application.ports.syntax_checker import SyntaxCheckerPort
from mermaider.application.router import RequestRouter
from mermaider.application.session_manager import SessionManager
from mermaider.infrastructure.checkers.mermaid_cli import MermaidCliChecker
from mermaider.infrastructure.checkers.precheck import MermaidPrecheck
from mermaider.infrastructure.http.routes import StreamRouteDeps
from mermaider.infrastructure.sse.channel import SseStreamChannel
from mermaider.infrastructure.state.session_registry import InMemorySessionRegistry
from mermaider.protocol.engine import McpServer
from mermaider.protocol.tools import ToolRegistry, syntax_validation_tool
from mermaider.runtime.settings import CheckerSettings, Settings

logger = logging.getLogger("mermaider.runtime")


@dataclass(frozen=True, slots=True)
class RuntimeContext:
    """Aggregated runtime components for one server instance."""

    settings: Settings
    syntax_checker: SyntaxCheckerPort
    protocol_server: McpServer
    session_registry: InMemorySessionRegistry
    session_manager: SessionManager
    request_router: RequestRouter
    stream_deps_provider: Callable[[], StreamRouteDeps]


def build_runtime(
    settings: Settings | None = None,
    *,
    syntax_checker: SyntaxCheckerPort | None = None,
) -> RuntimeContext:
    """Build a fresh, independent set of components.

    Nothing is shared between runtimes, so several servers (or tests) can live
    in one process.
    """
    resolved = settings or Settings.load()
    checker = syntax_checker or create_syntax_checker(resolved.checker)

    protocol_server = McpServer(ToolRegistry([syntax_validation_tool(checker)]))
    registry = InMemorySessionRegistry()
    session_manager = SessionManager(registry, protocol_server)
    request_router = RequestRouter(session_manager)

    deps = StreamRouteDeps(
        session_manager=session_manager,
        request_router=request_router,
        channel_factory=SseStreamChannel,
        keepalive_seconds=resolved.keepalive_seconds,
    )

    return RuntimeContext(
        settings=resolved,
        syntax_checker=checker,
        protocol_server=protocol_server,
        session_registry=registry,
        session_manager=session_manager,
        request_router=request_router,
        stream_deps_provider=_make_dependency_provider(deps),
    )


def create_syntax_checker(settings: CheckerSettings) -> SyntaxCheckerPort:
    checker: SyntaxCheckerPort = MermaidCliChecker(settings.cli_argv, timeout_seconds=settings.timeout_seconds)
    logger.info(
        "using mermaid CLI syntax checker",
        extra={
            "data": {
                "command": list(settings.cli_argv),
                "timeout_s": settings.timeout_seconds,
                "precheck": settings.precheck,
            }
        },
    )
    if settings.precheck:
        checker = MermaidPrecheck(checker)
    return checker


def _make_dependency_provider(deps: StreamRouteDeps) -> Callable[[], StreamRouteDeps]:
    def provider() -> StreamRouteDeps:
        return deps

    return provider


__all__ = ["RuntimeContext", "build_runtime", "create_syntax_checker"]
