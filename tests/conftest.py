from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import pytest

from mcp_host.config import ServerConfig
from mcp_host.errors import ToolServerError
from mcp_host.lifetime import AliveCounter, Lifetime

from tests.fakes import FakeClient

PROJECT_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def counter() -> AliveCounter:
    return AliveCounter()


@pytest.fixture
def lifetime():
    lifetime = Lifetime()
    yield lifetime
    lifetime.cancel()
    lifetime.join(timeout=10)


@pytest.fixture
def make_factory() -> Callable[..., Callable[[str, ServerConfig], FakeClient]]:
    """Build a client_factory that hands out FakeClients keyed by server name."""

    def _factory(clients: dict[str, FakeClient], fail_create: set[str] | None = None):
        fail_create = fail_create or set()

        def _create(name: str, config: ServerConfig) -> FakeClient:
            if name in fail_create:
                raise ToolServerError(f"executable not found: {config.command}")
            return clients[name]

        return _create

    return _factory


@pytest.fixture
def echo_server_config() -> ServerConfig:
    return ServerConfig(
        command=sys.executable,
        args=("-m", "mcp_host.servers.echo"),
        env={"PYTHONPATH": str(PROJECT_ROOT)},
    )
