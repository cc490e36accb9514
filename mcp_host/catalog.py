"""
Tool catalog — one flat list of tools across every server.

Each MCP tool is exposed to the model as "<server>__<tool>". The engine
splits the name again to route a call, so server names and tool names
must not themselves contain "__".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

NAMESPACE_SEPARATOR = "__"


@dataclass(frozen=True)
class ToolSchema:
    type: str = "object"
    properties: dict[str, Any] = field(default_factory=dict)
    required: frozenset[str] = frozenset()


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    input_schema: ToolSchema


def namespaced_name(server_name: str, tool_name: str) -> str:
    return f"{server_name}{NAMESPACE_SEPARATOR}{tool_name}"


def split_tool_name(name: str) -> tuple[str, str] | None:
    """Recover (server, tool) from a namespaced name, or None if malformed."""
    parts = name.split(NAMESPACE_SEPARATOR)
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def flatten(server_name: str, mcp_tools: Iterable[dict[str, Any]]) -> list[Tool]:
    """
    Map one server's MCP tool list onto namespaced catalog entries.

    Raises:
        ValueError: An entry is not an object with a string "name".
    """
    tools = []
    for mcp_tool in mcp_tools:
        if not isinstance(mcp_tool, dict) or not isinstance(mcp_tool.get("name"), str):
            raise ValueError(f"malformed tool entry from {server_name}: {mcp_tool!r:.200}")
        schema = mcp_tool.get("inputSchema") or {}
        tools.append(Tool(
            name=namespaced_name(server_name, mcp_tool["name"]),
            description=mcp_tool.get("description", ""),
            input_schema=ToolSchema(
                type=schema.get("type", "object"),
                properties=dict(schema.get("properties") or {}),
                required=frozenset(schema.get("required") or ()),
            ),
        ))
    return tools


def to_provider_schema(tool: Tool) -> dict[str, Any]:
    """Function-tool definition accepted by LangChain's bind_tools."""
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": {
                "type": tool.input_schema.type,
                "properties": tool.input_schema.properties,
                "required": sorted(tool.input_schema.required),
            },
        },
    }
