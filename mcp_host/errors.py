"""
Error taxonomy for the host.

    ConfigError              bad or empty server config      (fatal, no retry)
    SetupError               client launch/handshake/listing (fatal, full rollback)
    ToolServerError          a tool server misbehaved        (turned into tool_result text)
    ToolServerTimeout        a request exceeded its timeout
    ProviderOverloadedError  retry budget exhausted on overload
"""

from __future__ import annotations


class McpHostError(Exception):
    """Base class for errors raised by mcp_host."""


class ConfigError(McpHostError, ValueError):
    """The MCP server configuration is missing, unreadable or empty."""


class SetupError(McpHostError, RuntimeError):
    """Starting the tool servers failed; every client has been closed."""

    def __init__(self, server: str, message: str):
        super().__init__(message)
        self.server = server


class ToolServerError(McpHostError, RuntimeError):
    """A tool server process failed or answered with a JSON-RPC error."""


class ToolServerTimeout(ToolServerError, TimeoutError):
    """A tool server did not answer within the request timeout."""


class ProviderOverloadedError(McpHostError, RuntimeError):
    """The model provider stayed overloaded for the whole retry budget."""
