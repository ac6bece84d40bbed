from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from mermaider.application.router import RequestRouter
from mermaider.application.session_manager import SessionManager
from mermaider.infrastructure.http.routes import StreamRouteDeps, add_health_routes, add_stream_routes
from mermaider.infrastructure.sse.channel import SseStreamChannel
from mermaider.infrastructure.state.session_registry import InMemorySessionRegistry
from mermaider.protocol.engine import McpServer
from mermaider.protocol.tools import ToolRegistry, syntax_validation_tool
from tests.fixtures.fakes import FakeSyntaxChecker, RecordingChannel, RecordingProtocolServer

PING = b'{"jsonrpc":"2.0","id":1,"method":"ping"}'


class DemoDependencyProvider:
    def __init__(self, manager: SessionManager, *, channel_factory=SseStreamChannel) -> None:
        self.manager = manager
        self._deps = StreamRouteDeps(
            session_manager=manager,
            request_router=RequestRouter(manager),
            channel_factory=channel_factory,
            keepalive_seconds=15.0,
        )

    def __call__(self) -> StreamRouteDeps:
        return self._deps


def create_test_app(provider: DemoDependencyProvider) -> FastAPI:
    """Create a test app with stream and health routes only."""
    app = FastAPI()
    add_stream_routes(app, provider)
    add_health_routes(app, provider)
    return app


def _recording_provider() -> tuple[DemoDependencyProvider, RecordingProtocolServer]:
    server = RecordingProtocolServer()
    return DemoDependencyProvider(SessionManager(InMemorySessionRegistry(), server)), server


def test_post_without_session_id_is_bad_request() -> None:
    provider, server = _recording_provider()
    provider.manager.open_session(RecordingChannel("s1"), "/messages")
    client = TestClient(create_test_app(provider))

    response = client.post("/messages", content=PING)

    assert response.status_code == 400
    assert response.json() == {"detail": "Missing sessionId query parameter."}
    assert server.connections["s1"].bodies == []


def test_post_with_empty_session_id_is_bad_request() -> None:
    provider, _ = _recording_provider()
    client = TestClient(create_test_app(provider))

    response = client.post("/messages", params={"sessionId": ""}, content=PING)

    assert response.status_code == 400


def test_post_for_unknown_session_is_not_found() -> None:
    provider, server = _recording_provider()
    provider.manager.open_session(RecordingChannel("s1"), "/messages")
    client = TestClient(create_test_app(provider))

    response = client.post("/messages", params={"sessionId": "never-issued"}, content=PING)

    assert response.status_code == 404
    assert response.json() == {"detail": "No active SSE connection for session: never-issued"}
    assert server.connections["s1"].bodies == []


def test_post_for_open_session_is_accepted_and_forwarded() -> None:
    provider, server = _recording_provider()
    provider.manager.open_session(RecordingChannel("s1"), "/messages")
    client = TestClient(create_test_app(provider))

    response = client.post("/messages", params={"sessionId": "s1"}, content=PING)

    assert response.status_code == 202
    assert response.text == "Accepted"
    assert server.connections["s1"].bodies == [PING]


def test_post_for_closed_session_is_not_found() -> None:
    provider, _ = _recording_provider()
    provider.manager.open_session(RecordingChannel("s2"), "/messages")
    provider.manager.close_session("s2")
    client = TestClient(create_test_app(provider))

    response = client.post("/messages", params={"sessionId": "s2"}, content=PING)

    assert response.status_code == 404


def test_malformed_envelope_is_bad_request() -> None:
    server = McpServer(ToolRegistry([syntax_validation_tool(FakeSyntaxChecker())]))
    provider = DemoDependencyProvider(SessionManager(InMemorySessionRegistry(), server))
    channel = RecordingChannel("s1")
    provider.manager.open_session(channel, "/messages")
    client = TestClient(create_test_app(provider))

    response = client.post("/messages", params={"sessionId": "s1"}, content=b"{not json")

    assert response.status_code == 400
    assert response.json()["detail"].startswith("Parse error")
    assert channel.sent == []


def test_failed_handshake_is_server_error_and_registers_nothing() -> None:
    provider, _ = _recording_provider()
    provider = DemoDependencyProvider(
        provider.manager,
        channel_factory=lambda: SseStreamChannel(id_factory=lambda: ""),
    )
    client = TestClient(create_test_app(provider))

    response = client.get("/sse")

    assert response.status_code == 500
    assert response.json() == {"detail": "failed to start SSE session"}
    assert provider.manager.count() == 0


def test_healthz_reports_open_sessions() -> None:
    provider, _ = _recording_provider()
    provider.manager.open_session(RecordingChannel("s1"), "/messages")
    provider.manager.open_session(RecordingChannel("s2"), "/messages")
    client = TestClient(create_test_app(provider))

    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "sessions": 2}


def test_reused_session_id_is_server_error_and_keeps_the_live_session() -> None:
    provider, _ = _recording_provider()
    live = RecordingChannel("dup")
    provider.manager.open_session(live, "/messages")
    provider = DemoDependencyProvider(
        provider.manager,
        channel_factory=lambda: SseStreamChannel(id_factory=lambda: "dup"),
    )
    client = TestClient(create_test_app(provider))

    response = client.get("/sse")

    assert response.status_code == 500
    assert response.json() == {"detail": "failed to start SSE session"}
    assert provider.manager.count() == 1
    assert provider.manager.lookup("dup").channel is live
