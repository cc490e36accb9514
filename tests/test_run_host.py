from __future__ import annotations

import signal

import pytest
from langchain_core.messages import AIMessage

import run_host
from mcp_host.catalog import flatten
from mcp_host.config import ServerConfig
from mcp_host.errors import ConfigError
from mcp_host.lifetime import AliveCounter
from mcp_host.pool import ConnectionPool

from tests.fakes import FakeClient, StubChatModel


@pytest.fixture(autouse=True)
def restore_sigint():
    previous = signal.getsignal(signal.SIGINT)
    yield
    signal.signal(signal.SIGINT, previous)


def test_config_error_exits_with_status_1(monkeypatch, capsys):
    def _fail(*args, **kwargs):
        raise ConfigError("no MCP servers found in config file")

    monkeypatch.setattr(run_host, "load_mcp_clients", _fail)

    assert run_host.main(["hello"]) == 1
    assert "no MCP servers" in capsys.readouterr().err


@pytest.mark.parametrize("argv", [
    ["what files are there?"],
    ["--prompt", "what files are there?"],
])
def test_prints_answer_and_shuts_servers_down(monkeypatch, capsys, argv):
    client = FakeClient("fs", tools=[{"name": "list_dir"}], results={"list_dir": [{"type": "text", "text": "a.txt"}]})
    counter = AliveCounter()

    def _load(config_path, lifetime, **kwargs):
        pool = ConnectionPool.build(
            {"fs": ServerConfig(command="fs")},
            lifetime,
            counter=counter,
            client_factory=lambda name, config: client,
        )
        return pool, flatten("fs", client.tools)

    monkeypatch.setattr(run_host, "load_mcp_clients", _load)
    chat_model = StubChatModel(AIMessage(content="Only a.txt."))
    monkeypatch.setattr(run_host, "build_chat_model", lambda **kwargs: chat_model)
    monkeypatch.setattr(run_host, "load_alive_client_count", counter.load)
    monkeypatch.setattr(run_host.time, "sleep", lambda _: None)

    assert run_host.main(argv) == 0
    assert chat_model.invocations[0][-1].content == "what files are there?"

    out = capsys.readouterr().out
    assert "Only a.txt." in out
    assert "MCP servers stopped." in out
    assert client.close_calls == 1
    assert counter.load() == 0


def test_prompt_given_twice_is_a_usage_error():
    with pytest.raises(SystemExit) as exc_info:
        run_host.main(["--prompt", "one", "two"])

    assert exc_info.value.code == 2
