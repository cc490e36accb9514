"""
Conversation engine — drives the model/tool loop.

Each turn:
    1. send the history and the tool catalog to the provider
       (retrying with backoff while it reports overload)
    2. record the assistant turn, dispatching every tool call in order
    3. if any tool produced a result, append the results as a user turn
       and go again; otherwise return the assistant's text

Tool dispatch failures never end the conversation. They fall in two
groups that are handled differently on purpose:

  - malformed routing (bad namespaced name, unknown server, arguments
    that are not a JSON object) is dropped silently; the model sees no
    tool_result for that call
  - a tool invocation that raises becomes a tool_result carrying the
    error text, so the model can react to it on the next turn
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Sequence

from mcp_host.bridge import Message, ProviderAdapter, ToolCall
from mcp_host.catalog import Tool, split_tool_name
from mcp_host.errors import ProviderOverloadedError
from mcp_host.history import ContentBlock, HistoryMessage
from mcp_host.pool import ConnectionPool

logger = logging.getLogger(__name__)

OVERLOADED_MESSAGE = (
    "the model provider is currently overloaded. please wait a few minutes and try again"
)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 5
    initial_backoff: float = 1.0
    max_backoff: float = 30.0

    def delays(self) -> Iterator[float]:
        """Sleep before each retry: doubling, capped at max_backoff."""
        backoff = self.initial_backoff
        for _ in range(self.max_retries):
            yield backoff
            backoff = min(backoff * 2, self.max_backoff)


def is_overloaded(exc: BaseException) -> bool:
    """True for transient provider overload (Anthropic's overloaded_error / HTTP 529)."""
    if getattr(exc, "status_code", None) == 529:
        return True
    return "overloaded_error" in str(exc)


def flatten_result_text(content: Sequence[Any]) -> str:
    """Space-join the text of every content item that has one."""
    parts = []
    for item in content:
        if isinstance(item, dict) and "text" in item:
            parts.append(f"{item['text']} ")
    return "".join(parts).strip()


class ConversationEngine:
    """
    Owns the conversation history and runs it to a final answer.

    Usage:
        engine = ConversationEngine(provider, pool, tools)
        answer = engine.run("list files")
    """

    def __init__(
        self,
        provider: ProviderAdapter,
        pool: ConnectionPool,
        tools: Sequence[Tool],
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        tool_timeout: float | None = None,
    ):
        self.provider = provider
        self.pool = pool
        self.tools = list(tools)
        self.retry = retry or RetryPolicy()
        self.tool_timeout = tool_timeout
        self._sleep = sleep
        self._history: list[HistoryMessage] = []

    @property
    def history(self) -> tuple[HistoryMessage, ...]:
        return tuple(self._history)

    def run(self, prompt: str = "") -> str:
        """
        Run turns until the model replies without tool results.

        Args:
            prompt: User prompt. Empty continues the existing history.

        Returns:
            Text of the final assistant turn.

        Raises:
            ProviderOverloadedError: Overload outlasted the retry budget.
            Exception: Any other provider error, unchanged.
        """
        next_prompt = prompt
        while True:
            if next_prompt:
                self._history.append(HistoryMessage(
                    role="user",
                    content=(ContentBlock.text_block(next_prompt),),
                ))

            message = self._create_message(next_prompt)

            content: list[ContentBlock] = []
            if message.content:
                content.append(ContentBlock.text_block(message.content))

            results: list[ContentBlock] = []
            for call in message.tool_calls:
                arguments = json.dumps(call.arguments, default=str)
                content.append(ContentBlock.tool_use(call.id, call.name, arguments))

                result = self._dispatch(call, arguments)
                if result is not None:
                    results.append(result)

            self._history.append(HistoryMessage(role=message.role, content=tuple(content)))

            if not results:
                return message.content

            self._history.append(HistoryMessage(role="user", content=tuple(results)))
            next_prompt = ""

    def _create_message(self, prompt: str) -> Message:
        delays = self.retry.delays()
        while True:
            try:
                return self.provider.create_message(prompt, tuple(self._history), self.tools)
            except Exception as e:
                if not is_overloaded(e):
                    raise
                delay = next(delays, None)
                if delay is None:
                    raise ProviderOverloadedError(OVERLOADED_MESSAGE) from e
                logger.warning(f"Provider overloaded, retrying in {delay:g}s")
                self._sleep(delay)

    def _dispatch(self, call: ToolCall, arguments: str) -> ContentBlock | None:
        route = split_tool_name(call.name)
        if route is None:
            logger.debug(f"Skipping tool call with malformed name {call.name!r}")
            return None
        server_name, tool_name = route

        client = self.pool.get(server_name)
        if client is None:
            logger.debug(f"Skipping tool call for unknown server {server_name!r}")
            return None

        try:
            parsed = json.loads(arguments)
        except json.JSONDecodeError:
            return None
        if not isinstance(parsed, dict):
            return None

        try:
            result = client.call_tool(tool_name, parsed, timeout=self.tool_timeout)
        except Exception as e:
            error_message = f"Error calling tool {tool_name}: {e}"
            logger.error(error_message)
            return ContentBlock.tool_result(
                call.id,
                [{"type": "text", "text": error_message}],
                error_message,
                is_error=True,
            )

        if result.content is None:
            return None

        return ContentBlock.tool_result(
            call.id,
            result.content,
            flatten_result_text(result.content),
            is_error=result.is_error,
        )
