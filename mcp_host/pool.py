"""
Connection pool — launches, tracks and releases MCP tool server clients.

Usage:
    lifetime = Lifetime.on_interrupt()
    pool, tools = load_mcp_clients(".mcp.json", lifetime)

    client = pool.get("fs")
    result = client.call_tool("list_dir", {"path": "."})

    lifetime.cancel()            # every client closed exactly once
    load_alive_client_count()    # reaches 0 once the releases ran

Startup is all-or-nothing: if any server fails to launch, handshake or
list its tools, every client created so far is closed and SetupError
names the failing server. A partial tool catalog is never returned.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping

from mcp_host.catalog import Tool, flatten
from mcp_host.client import Handshake, ToolServerClient
from mcp_host.config import ServerConfig, load_config
from mcp_host.errors import SetupError
from mcp_host.lifetime import AliveCounter, Lifetime, recover

logger = logging.getLogger(__name__)

DEFAULT_INIT_TIMEOUT = 30.0
DEFAULT_LIST_TIMEOUT = 10.0

ClientFactory = Callable[[str, ServerConfig], ToolServerClient]

# Process-wide count of live clients, watched by shutdown draining.
_alive_clients = AliveCounter()


def load_alive_client_count() -> int:
    return _alive_clients.load()


class _Lease:
    """Ties one registered client to the counter; released exactly once."""

    def __init__(self, name: str, client: ToolServerClient, counter: AliveCounter):
        self.name = name
        self.client = client
        self.counter = counter
        self.stop_callback: Callable[[], bool] = lambda: False
        self._released = False
        self._lock = threading.Lock()

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
        self.stop_callback()
        recover(self.client.close, f"closing MCP client {self.name}")
        remaining = self.counter.decrement()
        logger.debug(f"Released {self.name}; {remaining} clients alive")


class ConnectionPool:
    """
    One ToolServerClient per configured server.

    Responsibilities:
    - Launch and handshake servers sequentially, in config order
    - Count live clients and release each one exactly once, either
      on unwind or when the governing Lifetime is cancelled
    - List every server's tools, failing fast on the first error
    """

    def __init__(self, lifetime: Lifetime, counter: AliveCounter | None = None):
        self.lifetime = lifetime
        self.counter = counter if counter is not None else _alive_clients
        self._leases: dict[str, _Lease] = {}
        self._catalog: dict[str, list[Tool]] = {}

    @classmethod
    def build(
        cls,
        configs: Mapping[str, ServerConfig],
        lifetime: Lifetime,
        init_timeout: float = DEFAULT_INIT_TIMEOUT,
        counter: AliveCounter | None = None,
        client_factory: ClientFactory = ToolServerClient.from_config,
        handshake: Handshake | None = None,
    ) -> "ConnectionPool":
        """
        Create and initialize a client for every server.

        Args:
            configs: server name → ServerConfig
            lifetime: Cancelling it releases every registered client
            init_timeout: Bound on each initialize handshake, in seconds
            counter: Alive counter (defaults to the process-wide one)
            client_factory: Builds a started client from a config

        Raises:
            SetupError: A server failed to launch or handshake. Nothing
                        stays open when this is raised.
        """
        pool = cls(lifetime, counter)
        handshake = handshake or Handshake()

        for name, config in configs.items():
            try:
                client = client_factory(name, config)
            except Exception as e:
                pool.close_all()
                raise SetupError(name, f"failed to create MCP client for {name}: {e}") from e

            try:
                client.initialize(handshake, timeout=init_timeout)
            except Exception as e:
                recover(client.close, f"closing MCP client {name}")
                pool.close_all()
                raise SetupError(name, f"failed to initialize MCP client for {name}: {e}") from e

            pool._register(name, client)

        return pool

    def _register(self, name: str, client: ToolServerClient) -> None:
        lease = _Lease(name, client, self.counter)
        self._leases[name] = lease
        self.counter.increment()
        lease.stop_callback = self.lifetime.after(lease.release)
        logger.info(f"Started MCP client {name}")

    def list_all(self, timeout: float = DEFAULT_LIST_TIMEOUT) -> dict[str, list[dict[str, Any]]]:
        """
        List tools on every registered server and build the tool catalog.

        Raises:
            SetupError: Listing failed on some server, or its reply was
                        malformed. Every client has been released.
        """
        listed: dict[str, list[dict[str, Any]]] = {}
        catalog: dict[str, list[Tool]] = {}
        for name, lease in list(self._leases.items()):
            try:
                listed[name] = lease.client.list_tools(timeout=timeout)
                catalog[name] = flatten(name, listed[name])
            except Exception as e:
                self.close_all()
                raise SetupError(name, f"failed to list tools for {name}: {e}") from e

            tool_names = [t["name"] for t in listed[name]]
            logger.info(f"[{name}] tools: {tool_names}")
        self._catalog = catalog
        return listed

    def catalog(self) -> list[Tool]:
        """Flat tool list from the last successful list_all, in server order."""
        return [tool for tools in self._catalog.values() for tool in tools]

    def close_all(self) -> None:
        """Release every registered client."""
        leases, self._leases = self._leases, {}
        self._catalog = {}
        for lease in leases.values():
            lease.release()

    def alive_count(self) -> int:
        return self.counter.load()

    def get(self, name: str) -> ToolServerClient | None:
        lease = self._leases.get(name)
        return lease.client if lease else None

    def names(self) -> list[str]:
        return list(self._leases)

    def __contains__(self, name: object) -> bool:
        return name in self._leases

    def __len__(self) -> int:
        return len(self._leases)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._leases))


def load_mcp_clients(
    config_path: str | Path,
    lifetime: Lifetime,
    init_timeout: float = DEFAULT_INIT_TIMEOUT,
    list_timeout: float = DEFAULT_LIST_TIMEOUT,
    counter: AliveCounter | None = None,
    client_factory: ClientFactory = ToolServerClient.from_config,
) -> tuple[ConnectionPool, list[Tool]]:
    """
    Read the server config, start every server and build the tool catalog.

    Raises:
        ConfigError: The config file is missing, malformed or empty.
        SetupError: A server failed to start or list its tools.
    """
    config = load_config(config_path)
    pool = ConnectionPool.build(
        config.servers,
        lifetime,
        init_timeout=init_timeout,
        counter=counter,
        client_factory=client_factory,
    )

    pool.list_all(timeout=list_timeout)
    tools = pool.catalog()

    logger.info(f"Loaded {len(pool)} MCP servers with {len(tools)} tools")
    return pool, tools
