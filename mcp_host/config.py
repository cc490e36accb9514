"""
Configuration for the host.

Two sources:

  - the MCP server file (``.mcp.json`` by default)::

        {"mcpServers": {"fs": {"command": "npx", "args": ["-y", "server-fs", "."], "env": {}}}}

  - runtime settings (provider, model, timeouts), resolved as
    explicit override > environment variable > default.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from mcp_host.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = ".mcp.json"
DEFAULT_PROVIDER = "ollama"
DEFAULT_MODEL = "mistral-small"
DEFAULT_OLLAMA_URL = "http://localhost:11434"

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant with access to external tools. "
    "Call a tool whenever it helps you answer, using the exact tool names provided, "
    "and answer the user directly once you have what you need."
)


@dataclass(frozen=True)
class ServerConfig:
    """How to launch one MCP tool server. Immutable once loaded."""
    command: str
    args: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_dict(cls, name: str, data: Any) -> "ServerConfig":
        if not isinstance(data, dict):
            raise ConfigError(f"Server '{name}' must be an object")
        command = data.get("command")
        if not command or not isinstance(command, str):
            raise ConfigError(f"Server '{name}' has no command")
        args = data.get("args") or []
        env = data.get("env") or {}
        if not isinstance(args, list) or not isinstance(env, dict):
            raise ConfigError(f"Server '{name}': 'args' must be a list and 'env' an object")
        return cls(
            command=command,
            args=tuple(str(a) for a in args),
            env=MappingProxyType({str(k): str(v) for k, v in env.items()}),
        )


@dataclass(frozen=True)
class HostConfig:
    servers: dict[str, ServerConfig]
    source: Path | None = None


def parse_config(data: Any, source: Path | None = None) -> HostConfig:
    """Validate a decoded config document."""
    if not isinstance(data, dict):
        raise ConfigError("Config root must be a JSON object")
    raw_servers = data.get("mcpServers") or {}
    if not isinstance(raw_servers, dict):
        raise ConfigError("'mcpServers' must be an object")
    if not raw_servers:
        raise ConfigError("no MCP servers found in config file")

    servers = {name: ServerConfig.from_dict(name, spec) for name, spec in raw_servers.items()}
    return HostConfig(servers=servers, source=source)


def load_config(path: str | Path) -> HostConfig:
    """Read and validate the MCP server file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed to open config file {path}: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"failed to decode config file {path}: {e}") from e

    config = parse_config(data, source=path)
    logger.debug(f"Loaded {len(config.servers)} MCP servers from {path}")
    return config


@dataclass
class Settings:
    provider: str = DEFAULT_PROVIDER
    model: str = DEFAULT_MODEL
    config_path: Path = Path(DEFAULT_CONFIG_PATH)
    ollama_base_url: str = DEFAULT_OLLAMA_URL
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    init_timeout: float = 30.0
    list_timeout: float = 10.0


def load_settings(
    provider: str | None = None,
    model: str | None = None,
    config_path: str | None = None,
    system_prompt: str | None = None,
) -> Settings:
    """Resolve runtime settings from overrides, environment variables and defaults."""
    return Settings(
        provider=(provider or os.getenv("MCPHOST_PROVIDER") or DEFAULT_PROVIDER).lower(),
        model=model or os.getenv("MCPHOST_MODEL") or DEFAULT_MODEL,
        config_path=Path(config_path or os.getenv("MCPHOST_CONFIG") or DEFAULT_CONFIG_PATH),
        ollama_base_url=os.getenv("OLLAMA_HOST") or DEFAULT_OLLAMA_URL,
        system_prompt=system_prompt or DEFAULT_SYSTEM_PROMPT,
    )
