"""
mcp_host — run a chat model against a set of MCP tool servers.

Architecture:
    ┌──────────────┐  bind_tools   ┌──────────────┐     stdio      ┌──────────────┐
    │  Chat model  │ ◄──────────── │ Conversation │ ────────────── │  Tool Server │
    │ (LangChain)  │ ────────────► │    Engine    │   JSON-RPC     │ (subprocess) │
    └──────────────┘  tool calls   └──────────────┘     pipes      └──────────────┘

Each tool server is a standalone process that communicates via
stdin/stdout using JSON-RPC 2.0 messages (the MCP protocol).

The ConnectionPool launches one ToolServerClient per configured server,
handshakes it, and releases every client exactly once when the governing
Lifetime is cancelled. Tools are exposed to the model as
"<server>__<tool>" and routed back by splitting on "__".
"""

from mcp_host.catalog import Tool, ToolSchema, flatten, split_tool_name
from mcp_host.client import Handshake, ToolServerClient
from mcp_host.config import HostConfig, ServerConfig, load_config
from mcp_host.errors import (
    ConfigError,
    McpHostError,
    ProviderOverloadedError,
    SetupError,
    ToolServerError,
    ToolServerTimeout,
)
from mcp_host.lifetime import AliveCounter, Lifetime
from mcp_host.pool import ConnectionPool, load_alive_client_count, load_mcp_clients
from mcp_host.server import StdioToolServer, ToolHandler


# The engine and bridge require langchain; lazy import keeps the servers standalone
def __getattr__(name):
    if name in ("ConversationEngine", "RetryPolicy"):
        from mcp_host import engine
        return getattr(engine, name)
    if name in ("LangChainProvider", "build_chat_model", "Message", "ToolCall"):
        from mcp_host import bridge
        return getattr(bridge, name)
    raise AttributeError(f"module 'mcp_host' has no attribute {name!r}")


__all__ = [
    "AliveCounter",
    "ConfigError",
    "ConnectionPool",
    "ConversationEngine",
    "Handshake",
    "HostConfig",
    "LangChainProvider",
    "Lifetime",
    "McpHostError",
    "Message",
    "ProviderOverloadedError",
    "RetryPolicy",
    "ServerConfig",
    "SetupError",
    "StdioToolServer",
    "Tool",
    "ToolCall",
    "ToolHandler",
    "ToolSchema",
    "ToolServerClient",
    "ToolServerError",
    "ToolServerTimeout",
    "build_chat_model",
    "flatten",
    "load_alive_client_count",
    "load_config",
    "load_mcp_clients",
    "split_tool_name",
]
