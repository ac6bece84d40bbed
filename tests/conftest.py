from __future__ import annotations

import pytest


@pytest.fixture
def anyio_backend() -> str:
    # Stream channels and protocol tasks are asyncio-bound
    return "asyncio"
