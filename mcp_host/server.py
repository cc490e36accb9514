"""
MCP tool server base class.

A tool server is a standalone process that:
1. Reads JSON-RPC requests from stdin
2. Dispatches to registered ToolHandlers
3. Writes JSON-RPC responses to stdout

To create a tool server:

    from mcp_host.server import StdioToolServer, ToolHandler

    class MyTool(ToolHandler):
        name = "my_tool"
        description = "Does something useful"
        parameters = {
            "input": {"type": "string", "description": "The input"},
        }
        required = ["input"]

        def handle(self, params: dict) -> dict:
            return {"result": f"processed: {params['input']}"}

    if __name__ == "__main__":
        server = StdioToolServer("my-server")
        server.register(MyTool())
        server.run()
"""

from __future__ import annotations

import json
import logging
import sys
from abc import ABC, abstractmethod
from typing import Any, TextIO

from mcp_host.client import LATEST_PROTOCOL_VERSION

logger = logging.getLogger(__name__)

PARSE_ERROR = -32700
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class ToolHandler(ABC):
    """
    Base class for a tool implementation.

    Subclasses define what a tool does. The server handles transport.
    """

    # Subclasses must set these
    name: str = ""
    description: str = ""
    parameters: dict[str, dict] = {}
    required: list[str] = []

    @abstractmethod
    def handle(self, params: dict[str, Any]) -> Any:
        """
        Execute the tool with the given parameters.

        Returns:
            A string, or anything JSON-serializable. It is sent back as
            a single text content item.
        """
        ...

    def get_schema(self) -> dict:
        """Return the MCP tool description for tools/list."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": {
                "type": "object",
                "properties": self.parameters,
                "required": list(self.required),
            },
        }


class JsonRpcError(Exception):
    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code


class StdioToolServer:
    """
    MCP tool server that communicates via stdin/stdout.

    Protocol:
    - One JSON-RPC message per line
    - Supports methods:
        - "initialize"  → protocol version and server identity
        - "tools/list"  → registered tool descriptions
        - "tools/call"  → calls a tool by name with arguments
        - "ping"        → health check
    - Notifications (no id) are accepted and never answered
    """

    def __init__(self, name: str = "mcp-host-server", version: str = "0.1.0"):
        self.name = name
        self.version = version
        self._handlers: dict[str, ToolHandler] = {}

    def register(self, handler: ToolHandler) -> None:
        """Register a tool handler."""
        if not handler.name:
            raise ValueError(f"ToolHandler {handler.__class__.__name__} has no name")
        self._handlers[handler.name] = handler
        logger.info(f"Registered tool: {handler.name}")

    def run(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        """
        Main loop: read requests from stdin, dispatch, write responses to stdout.

        This blocks until stdin is closed (parent process terminates).
        """
        stdin = stdin or sys.stdin
        stdout = stdout or sys.stdout
        logger.info(f"Tool server starting with {len(self._handlers)} tools: "
                    f"{list(self._handlers.keys())}")

        for line in stdin:
            line = line.strip()
            if not line:
                continue
            response = self.handle_line(line)
            if response is not None:
                stdout.write(json.dumps(response) + "\n")
                stdout.flush()

    def handle_line(self, line: str) -> dict | None:
        """Process one JSON-RPC line. Returns the response, or None for notifications."""
        try:
            request = json.loads(line)
        except json.JSONDecodeError as e:
            return self._error(None, PARSE_ERROR, f"Parse error: {e}")

        if "id" not in request:
            logger.debug(f"Notification: {request.get('method')}")
            return None

        request_id = request.get("id")
        try:
            result = self._dispatch(request.get("method", ""), request.get("params") or {})
        except JsonRpcError as e:
            return self._error(request_id, e.code, str(e))
        except Exception as e:
            return self._error(request_id, INTERNAL_ERROR, str(e))
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    def _dispatch(self, method: str, params: dict) -> Any:
        """Route a method call to the appropriate handler."""

        if method == "initialize":
            return {
                "protocolVersion": params.get("protocolVersion", LATEST_PROTOCOL_VERSION),
                "capabilities": {"tools": {}},
                "serverInfo": {"name": self.name, "version": self.version},
            }

        if method == "ping":
            return {}

        if method == "tools/list":
            return {"tools": [h.get_schema() for h in self._handlers.values()]}

        if method == "tools/call":
            tool_name = params.get("name", "")
            handler = self._handlers.get(tool_name)
            if not handler:
                raise JsonRpcError(
                    INVALID_PARAMS,
                    f"Unknown tool: '{tool_name}'. Available: {list(self._handlers.keys())}",
                )

            output = handler.handle(params.get("arguments") or {})
            text = output if isinstance(output, str) else json.dumps(output)
            return {"content": [{"type": "text", "text": text}], "isError": False}

        raise JsonRpcError(METHOD_NOT_FOUND, f"Unknown method: '{method}'")

    @staticmethod
    def _error(request_id: Any, code: int, message: str) -> dict:
        return {
            "jsonrpc": "2.0",
            "id": request_id,
            "error": {"code": code, "message": message},
        }
