"""End-to-end runs against the reference echo server subprocess."""
from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from mcp_host.bridge import Message, ToolCall
from mcp_host.config import ServerConfig
from mcp_host.engine import ConversationEngine
from mcp_host.errors import SetupError
from mcp_host.history import TOOL_RESULT
from mcp_host.pool import ConnectionPool, load_mcp_clients

from tests.fakes import StubProvider


PROJECT_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / ".mcp.json"
    path.write_text(json.dumps({
        "mcpServers": {
            "fs": {
                "command": sys.executable,
                "args": ["-m", "mcp_host.servers.echo"],
                "env": {"PYTHONPATH": str(PROJECT_ROOT)},
            }
        }
    }))
    return path


def test_list_files_conversation(tmp_path: Path, config_file: Path, lifetime, counter):
    workdir = tmp_path / "work"
    workdir.mkdir()
    (workdir / "a.txt").write_text("a")
    (workdir / "b.txt").write_text("b")

    pool, tools = load_mcp_clients(config_file, lifetime, counter=counter)
    assert {t.name for t in tools} == {"fs__echo", "fs__list_dir"}
    assert counter.load() == 1

    provider = StubProvider([
        Message("assistant", "", [ToolCall("call_1", "fs__list_dir", {"path": str(workdir)})]),
        Message("assistant", "You have a.txt and b.txt.", []),
    ])
    engine = ConversationEngine(provider, pool, tools, sleep=lambda _: None, tool_timeout=30)

    assert engine.run("list files") == "You have a.txt and b.txt."

    result = engine.history[2].content[0]
    assert result.type == TOOL_RESULT
    assert result.text == "a.txt b.txt"

    lifetime.cancel()
    lifetime.join(timeout=10)
    assert counter.load() == 0


def test_server_side_error_becomes_tool_result_text(config_file: Path, lifetime, counter):
    pool, tools = load_mcp_clients(config_file, lifetime, counter=counter)
    provider = StubProvider([
        Message("assistant", "", [ToolCall("call_1", "fs__missing_tool", {})]),
        Message("assistant", "That tool does not exist.", []),
    ])
    engine = ConversationEngine(provider, pool, tools, sleep=lambda _: None, tool_timeout=30)

    assert engine.run("use the missing tool") == "That tool does not exist."

    result = engine.history[2].content[0]
    assert result.text.startswith("Error calling tool missing_tool:")
    assert "Unknown tool" in result.text


def test_handshake_timeout_unwinds_pool(lifetime, counter, echo_server_config):
    silent = ServerConfig(command=sys.executable, args=("-c", "import time; time.sleep(60)"))
    configs = {"echo": echo_server_config, "silent": silent}

    with pytest.raises(SetupError, match="failed to initialize MCP client for silent") as exc_info:
        ConnectionPool.build(configs, lifetime, init_timeout=0.5, counter=counter)

    assert exc_info.value.server == "silent"
    assert counter.load() == 0
