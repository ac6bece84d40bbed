from __future__ import annotations

from datetime import UTC, datetime
from threading import Thread

import pytest

from mermaider.application.dto.session import Session
from mermaider.errors import DuplicateSessionError
from mermaider.infrastructure.state.session_registry import InMemorySessionRegistry
from tests.fixtures.fakes import RecordingChannel, RecordingConnection


def _session(session_id: str) -> Session:
    return Session(
        session_id=session_id,
        channel=RecordingChannel(session_id),
        connection=RecordingConnection(),
        opened_at=datetime.now(UTC),
    )


def test_register_and_lookup() -> None:
    registry = InMemorySessionRegistry()
    session = _session("a")

    registry.register(session)

    assert registry.lookup("a") is session
    assert registry.lookup("b") is None
    assert len(registry) == 1


def test_register_duplicate_id_raises_and_keeps_original() -> None:
    registry = InMemorySessionRegistry()
    original = _session("a")
    registry.register(original)

    with pytest.raises(DuplicateSessionError):
        registry.register(_session("a"))

    assert registry.lookup("a") is original


def test_remove_is_idempotent() -> None:
    registry = InMemorySessionRegistry()
    session = _session("a")
    registry.register(session)

    assert registry.remove("a") is session
    assert registry.remove("a") is None
    assert registry.remove("never-issued") is None
    assert len(registry) == 0


def test_session_ids_is_a_snapshot() -> None:
    registry = InMemorySessionRegistry()
    for session_id in ("a", "b", "c"):
        registry.register(_session(session_id))

    ids = registry.session_ids()
    registry.remove("b")

    assert ids == ("a", "b", "c")
    assert registry.session_ids() == ("a", "c")


def test_concurrent_registrations_keep_every_session() -> None:
    registry = InMemorySessionRegistry()

    def _register(prefix: str) -> None:
        for index in range(200):
            registry.register(_session(f"{prefix}-{index}"))

    threads = [Thread(target=_register, args=(f"t{n}",)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(registry) == 800


def test_session_requires_an_id() -> None:
    with pytest.raises(ValueError):
        _session("")
