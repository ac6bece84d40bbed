"""Entrypoint for running the mermaider MCP server under uvicorn."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from types import FrameType

import uvicorn
from fastapi import FastAPI

from mermaider.application.session_manager import SessionManager
from mermaider.infrastructure.http.middleware import request_logging_middleware
from mermaider.infrastructure.http.routes import add_health_routes, add_stream_routes
from mermaider.observability.logging import enable_cloud_logging, init_logging, shutdown_logging
from mermaider.observability.tracing import configure_tracing
from mermaider.protocol.engine import SERVER_VERSION
from mermaider.runtime.bootstrap import RuntimeContext, build_runtime

logger = logging.getLogger("mermaider.server")


def create_app(runtime: RuntimeContext | None = None) -> FastAPI:
    resolved = runtime or build_runtime()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        del app
        logger.info("mermaider starting up")
        yield
        resolved.session_manager.close_all()
        logger.info("mermaider shut down")

    app = FastAPI(title="Mermaider MCP Server", version=SERVER_VERSION, lifespan=lifespan)
    app.middleware("http")(request_logging_middleware)

    add_stream_routes(app, resolved.stream_deps_provider, message_path=resolved.settings.message_path)
    add_health_routes(app, resolved.stream_deps_provider)

    return app


class SessionAwareServer(uvicorn.Server):
    """uvicorn server that ends open SSE streams as soon as an exit signal lands.

    Without this, graceful shutdown would wait on streams that never finish on
    their own.
    """

    def __init__(
        self,
        config: uvicorn.Config,
        *,
        session_manager: SessionManager,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        super().__init__(config)
        self._session_manager = session_manager
        self._loop = loop

    def handle_exit(self, sig: int, frame: FrameType | None) -> None:
        super().handle_exit(sig, frame)
        # signal handlers run outside the loop's callback queue
        self._loop.call_soon_threadsafe(self._session_manager.close_all)


def main() -> None:
    init_logging()
    configure_tracing(service_name="mermaider")
    runtime = build_runtime()
    observability = runtime.settings.observability
    if observability.enable_cloud_logging:
        if observability.gcp_project_id is None:
            raise RuntimeError("Cloud logging enabled but no GCP project configured")
        enable_cloud_logging(
            gcp_project=observability.gcp_project_id,
            cloud_log_labels={"service": "mermaider"},
        )

    app = create_app(runtime)

    async def _run() -> None:
        loop = asyncio.get_running_loop()
        config = uvicorn.Config(
            app,
            host=runtime.settings.listen_host,
            port=runtime.settings.port,
            timeout_graceful_shutdown=runtime.settings.shutdown_timeout_seconds,
            # logging already setup
            log_config=None,
        )
        server = SessionAwareServer(config, session_manager=runtime.session_manager, loop=loop)
        logger.info(
            "mermaider MCP server listening",
            extra={
                "data": {
                    "url": f"http://{runtime.settings.listen_host}:{runtime.settings.port}/sse",
                }
            },
        )
        await server.serve()

    try:
        asyncio.run(_run())
    finally:
        shutdown_logging()


__all__ = ["SessionAwareServer", "create_app", "main"]
