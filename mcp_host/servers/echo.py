"""
Echo MCP tool server — minimal reference implementation.

Use this as a template for building new tool servers, or point a
config entry at it to try the host without any external server:

    {"mcpServers": {"echo": {"command": "python", "args": ["-m", "mcp_host.servers.echo"]}}}

Test:
    echo '{"jsonrpc":"2.0","method":"ping","params":{},"id":1}' | python -m mcp_host.servers.echo
"""

import os

from mcp_host.server import StdioToolServer, ToolHandler


class EchoTool(ToolHandler):
    name = "echo"
    description = "Echoes back the input message. Useful for testing."
    parameters = {
        "message": {
            "type": "string",
            "description": "The message to echo back",
        },
    }
    required = ["message"]

    def handle(self, params: dict) -> str:
        return params.get("message", "")


class ListDirTool(ToolHandler):
    name = "list_dir"
    description = "List the entries of a directory, space separated."
    parameters = {
        "path": {"type": "string", "description": "Directory to list"},
    }
    required = ["path"]

    def handle(self, params: dict) -> str:
        return " ".join(sorted(os.listdir(params.get("path") or ".")))


def main() -> None:
    server = StdioToolServer("echo")
    server.register(EchoTool())
    server.register(ListDirTool())
    server.run()


if __name__ == "__main__":
    main()
