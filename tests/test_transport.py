from __future__ import annotations

import sys
import textwrap

import pytest

from mcp_host.transport import JsonRpcRequest, JsonRpcResponse, StdioTransport

# Prints log noise that is valid JSON but not a JSON-RPC object before each reply
CHATTY_SERVER = textwrap.dedent("""
    import json, sys
    for line in sys.stdin:
        request = json.loads(line)
        print(42)
        print('"ready"')
        print("[1, 2]")
        print("starting up...")
        print(json.dumps({"jsonrpc": "2.0", "id": request["id"], "result": {"ok": True}}))
        sys.stdout.flush()
""")


@pytest.mark.parametrize("line", ["42", '"ready"', "[1, 2]", "null"])
def test_from_json_rejects_non_objects(line):
    with pytest.raises(ValueError):
        JsonRpcResponse.from_json(line)


def test_from_json_reads_error_reply():
    response = JsonRpcResponse.from_json('{"jsonrpc": "2.0", "id": 3, "error": {"code": -32601, "message": "nope"}}')

    assert response.id == 3
    assert response.is_error
    assert response.error_message == "nope"


def test_send_skips_output_that_is_not_a_json_rpc_object():
    transport = StdioTransport([sys.executable, "-c", CHATTY_SERVER])
    transport.start()
    try:
        first = transport.send(JsonRpcRequest("ping", {}, id=transport.next_id()), timeout=30)
        second = transport.send(JsonRpcRequest("ping", {}, id=transport.next_id()), timeout=30)
    finally:
        transport.stop()

    assert (first.id, first.result) == (1, {"ok": True})
    assert (second.id, second.result) == (2, {"ok": True})
    assert not transport.is_alive()
