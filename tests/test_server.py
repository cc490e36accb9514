from __future__ import annotations

import io
import json

from mcp_host.server import INVALID_PARAMS, METHOD_NOT_FOUND, PARSE_ERROR, StdioToolServer
from mcp_host.servers.echo import EchoTool, ListDirTool


def _server() -> StdioToolServer:
    server = StdioToolServer("echo")
    server.register(EchoTool())
    server.register(ListDirTool())
    return server


def _request(method: str, params: dict | None = None, id: int = 1) -> str:
    return json.dumps({"jsonrpc": "2.0", "id": id, "method": method, "params": params or {}})


def test_initialize_reports_server_identity():
    response = _server().handle_line(_request("initialize", {"protocolVersion": "2024-11-05"}))

    assert response["result"]["serverInfo"] == {"name": "echo", "version": "0.1.0"}
    assert response["result"]["protocolVersion"] == "2024-11-05"


def test_tools_list_uses_mcp_input_schema():
    response = _server().handle_line(_request("tools/list"))

    tools = {t["name"]: t for t in response["result"]["tools"]}
    assert set(tools) == {"echo", "list_dir"}
    assert tools["echo"]["inputSchema"]["required"] == ["message"]


def test_tools_call_wraps_output_as_text_content():
    response = _server().handle_line(
        _request("tools/call", {"name": "echo", "arguments": {"message": "hi"}})
    )

    assert response["result"] == {"content": [{"type": "text", "text": "hi"}], "isError": False}


def test_list_dir_tool(tmp_path):
    (tmp_path / "b.txt").write_text("")
    (tmp_path / "a.txt").write_text("")

    assert ListDirTool().handle({"path": str(tmp_path)}) == "a.txt b.txt"


def test_errors_use_json_rpc_codes():
    server = _server()

    assert server.handle_line("{oops")["error"]["code"] == PARSE_ERROR
    assert server.handle_line(_request("resources/list"))["error"]["code"] == METHOD_NOT_FOUND
    unknown = server.handle_line(_request("tools/call", {"name": "nope"}))
    assert unknown["error"]["code"] == INVALID_PARAMS
    assert "Unknown tool" in unknown["error"]["message"]


def test_notifications_get_no_response():
    line = json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"})

    assert _server().handle_line(line) is None


def test_run_loop_writes_one_line_per_request():
    stdin = io.StringIO(
        _request("ping", id=1) + "\n\n"
        + json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}) + "\n"
        + _request("tools/list", id=2) + "\n"
    )
    stdout = io.StringIO()

    _server().run(stdin=stdin, stdout=stdout)

    lines = [json.loads(l) for l in stdout.getvalue().splitlines()]
    assert [l["id"] for l in lines] == [1, 2]
