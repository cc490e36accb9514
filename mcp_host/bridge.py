"""
Bridge between the host's conversation history and LangChain chat models.

The engine only needs one call from a model provider:

    message = provider.create_message(prompt, history, tools)

LangChainProvider implements it on top of any BaseChatModel that
supports bind_tools (ChatOllama, ChatAnthropic, ...):

    chat_model = build_chat_model(provider="ollama", model="mistral-small")
    provider = LangChainProvider(chat_model, system_prompt="...")
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from mcp_host.catalog import Tool, to_provider_schema
from mcp_host.config import DEFAULT_OLLAMA_URL
from mcp_host.errors import ConfigError
from mcp_host.history import HistoryMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Message:
    """One model turn."""
    role: str
    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)


class ProviderAdapter(Protocol):
    def create_message(
        self,
        prompt: str,
        messages: Sequence[HistoryMessage],
        tools: Sequence[Tool],
    ) -> Message:
        ...


class LangChainProvider:
    """
    ProviderAdapter backed by a LangChain chat model.

    Provider exceptions propagate unchanged; the engine decides which of
    them are worth retrying.
    """

    def __init__(self, chat_model: BaseChatModel, system_prompt: str | None = None):
        self.chat_model = chat_model
        self.system_prompt = system_prompt

    def create_message(
        self,
        prompt: str,
        messages: Sequence[HistoryMessage],
        tools: Sequence[Tool],
    ) -> Message:
        """
        Send the whole history plus the tool catalog, return the reply.

        Args:
            prompt: The prompt of the current turn, empty on continuation
                    turns. It is already part of messages; only logged.
            messages: Full conversation history
            tools: Full tool catalog
        """
        model = self.chat_model
        if tools:
            model = model.bind_tools([to_provider_schema(t) for t in tools])

        logger.debug(f"Calling model with {len(messages)} messages, {len(tools)} tools (prompt={prompt!r})")
        response = model.invoke(to_langchain_messages(messages, self.system_prompt))
        return from_langchain_message(response)


def to_langchain_messages(
    history: Sequence[HistoryMessage],
    system_prompt: str | None = None,
) -> list[BaseMessage]:
    """Render host history as LangChain messages."""
    rendered: list[BaseMessage] = []
    if system_prompt:
        rendered.append(SystemMessage(content=system_prompt))

    for message in history:
        if message.role == "assistant":
            rendered.append(AIMessage(
                content=message.text,
                tool_calls=[
                    {"id": block.id, "name": block.name, "args": _decode_arguments(block.input)}
                    for block in message.tool_uses
                ],
            ))
            continue

        if message.text:
            rendered.append(HumanMessage(content=message.text))
        for block in message.tool_results:
            rendered.append(ToolMessage(
                content=block.text,
                tool_call_id=block.tool_use_id,
                status="error" if block.is_error else "success",
            ))

    return rendered


def from_langchain_message(response: BaseMessage) -> Message:
    """Convert a chat model reply into a host Message."""
    tool_calls = [
        ToolCall(
            id=call.get("id") or f"call_{index}",
            name=call["name"],
            arguments=call.get("args") or {},
        )
        for index, call in enumerate(getattr(response, "tool_calls", None) or [])
    ]
    return Message(role="assistant", content=_text_of(response.content), tool_calls=tool_calls)


def _text_of(content: Any) -> str:
    # Anthropic-style replies carry a list of typed parts
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


def _decode_arguments(raw: str) -> dict[str, Any]:
    try:
        decoded = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        return {}
    return decoded if isinstance(decoded, dict) else {}


def build_chat_model(
    *,
    provider: str,
    model: str,
    temperature: float = 0,
    ollama_base_url: str = DEFAULT_OLLAMA_URL,
    max_tokens: int = 4096,
) -> BaseChatModel:
    """Build a tool-calling chat model for the given provider.

    Args:
        provider: One of "ollama", "anthropic".
        model: Model name for the selected provider.
        temperature: Sampling temperature.
        ollama_base_url: Ollama server URL (only used when provider="ollama").
        max_tokens: Completion limit (only used when provider="anthropic").

    Raises:
        ConfigError: If the provider is unknown.
    """
    provider = provider.lower().strip()

    if provider == "ollama":
        from langchain_ollama import ChatOllama

        logger.info(f"Building ChatOllama (model={model})")
        return ChatOllama(model=model, temperature=temperature, base_url=ollama_base_url)

    if provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        logger.info(f"Building ChatAnthropic (model={model})")
        return ChatAnthropic(model=model, temperature=temperature, max_tokens=max_tokens)

    raise ConfigError(f"Unsupported provider: '{provider}'. Must be 'ollama' or 'anthropic'.")
