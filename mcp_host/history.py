"""Conversation history kept by the engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

TEXT = "text"
TOOL_USE = "tool_use"
TOOL_RESULT = "tool_result"


@dataclass(frozen=True)
class ContentBlock:
    """
    One tagged piece of a history message.

    text         text
    tool_use     id, name, input (JSON string)
    tool_result  tool_use_id, content (raw MCP content), text (flattened)
    """
    type: str
    text: str = ""
    id: str = ""
    name: str = ""
    input: str = ""
    tool_use_id: str = ""
    content: tuple[Any, ...] = ()
    is_error: bool = False

    @classmethod
    def text_block(cls, text: str) -> "ContentBlock":
        return cls(type=TEXT, text=text)

    @classmethod
    def tool_use(cls, id: str, name: str, input: str) -> "ContentBlock":
        return cls(type=TOOL_USE, id=id, name=name, input=input)

    @classmethod
    def tool_result(
        cls,
        tool_use_id: str,
        content: list[Any],
        text: str,
        is_error: bool = False,
    ) -> "ContentBlock":
        return cls(
            type=TOOL_RESULT,
            tool_use_id=tool_use_id,
            content=tuple(content),
            text=text,
            is_error=is_error,
        )


@dataclass(frozen=True)
class HistoryMessage:
    role: str
    content: tuple[ContentBlock, ...]

    @property
    def text(self) -> str:
        return " ".join(b.text for b in self.content if b.type == TEXT)

    @property
    def tool_uses(self) -> list[ContentBlock]:
        return [b for b in self.content if b.type == TOOL_USE]

    @property
    def tool_results(self) -> list[ContentBlock]:
        return [b for b in self.content if b.type == TOOL_RESULT]
