"""
ToolServerClient — one handle per configured MCP tool server.

Wraps a Transport with the four MCP calls the host needs:

    client = ToolServerClient.from_config("fs", server_config)
    client.initialize(Handshake(), timeout=30)
    tools = client.list_tools(timeout=10)
    result = client.call_tool("list_dir", {"path": "."})
    client.close()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from mcp_host.config import ServerConfig
from mcp_host.errors import ToolServerError
from mcp_host.transport import JsonRpcRequest, StdioTransport, Transport

logger = logging.getLogger(__name__)

LATEST_PROTOCOL_VERSION = "2024-11-05"
CLIENT_NAME = "mcphost"
CLIENT_VERSION = "0.1.0"


@dataclass(frozen=True)
class Handshake:
    """Parameters of the MCP initialize request."""
    protocol_version: str = LATEST_PROTOCOL_VERSION
    client_name: str = CLIENT_NAME
    client_version: str = CLIENT_VERSION
    capabilities: dict[str, Any] = field(default_factory=dict)

    def to_params(self) -> dict[str, Any]:
        return {
            "protocolVersion": self.protocol_version,
            "clientInfo": {"name": self.client_name, "version": self.client_version},
            "capabilities": dict(self.capabilities),
        }


@dataclass
class CallToolResult:
    content: list[Any] | None
    is_error: bool = False


class ToolServerClient:
    """
    Client side of one MCP tool server.

    Not shared across servers. close() may be called any number of times.
    """

    def __init__(self, name: str, transport: Transport):
        self.name = name
        self.transport = transport
        self.server_info: dict[str, Any] = {}
        self._closed = False

    @classmethod
    def from_config(cls, name: str, config: ServerConfig) -> "ToolServerClient":
        """Launch the server process described by a ServerConfig."""
        transport = StdioTransport([config.command, *config.args], config.env)
        try:
            transport.start()
        except OSError as e:
            raise ToolServerError(f"Failed to launch {config.command!r}: {e}") from e
        return cls(name, transport)

    @property
    def closed(self) -> bool:
        return self._closed

    def initialize(self, handshake: Handshake, timeout: float | None = None) -> dict[str, Any]:
        """Perform the MCP initialize handshake."""
        result = self._request("initialize", handshake.to_params(), timeout)
        self.server_info = (result or {}).get("serverInfo", {})
        self.transport.notify("notifications/initialized")
        logger.debug(f"[{self.name}] initialized: {self.server_info}")
        return result or {}

    def list_tools(self, timeout: float | None = None) -> list[dict[str, Any]]:
        """Return the raw MCP tool descriptions exposed by the server."""
        result = self._request("tools/list", {}, timeout)
        if isinstance(result, dict):
            return list(result.get("tools") or [])
        return list(result or [])

    def call_tool(
        self,
        name: str,
        arguments: dict[str, Any],
        timeout: float | None = None,
    ) -> CallToolResult:
        """
        Invoke a tool on this server.

        Args:
            name: The server-local tool name (not namespaced)
            arguments: Tool parameters

        Returns:
            The tool result. content is None when the server sent none.
        """
        result = self._request("tools/call", {"name": name, "arguments": arguments}, timeout)
        if not isinstance(result, dict):
            return CallToolResult(content=None)
        return CallToolResult(
            content=result.get("content"),
            is_error=bool(result.get("isError", False)),
        )

    def close(self) -> None:
        """Stop the server process. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self.transport.stop()
        logger.info(f"Closed MCP client {self.name}")

    def _request(self, method: str, params: dict[str, Any], timeout: float | None) -> Any:
        if self._closed:
            raise ToolServerError(f"Client {self.name} is closed")

        request = JsonRpcRequest(method=method, params=params, id=self.transport.next_id())
        response = self.transport.send(request, timeout=timeout)
        if response.is_error:
            raise ToolServerError(f"{method} failed ({self.name}): {response.error_message}")
        return response.result
