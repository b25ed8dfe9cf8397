"""
Type definitions for LLM API interactions.

These types provide a provider-agnostic interface for conversation turns,
tool schemas and the normalized events produced by stream dialect parsers.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import typing as _typing

StreamEventType = _typing.Literal[
    "text_delta",
    "tool_call_start",
    "tool_call_delta",
    "tool_call_end",
    "turn_end",
]


@_dataclasses.dataclass(frozen=True)
class StreamEvent:
    """
    Provider-agnostic stream event.

    Different backends emit different records, but every dialect parser
    normalizes them to this structure. Only the fields relevant to the
    event type are populated.
    """

    type: StreamEventType

    # Text content (text_delta)
    text: str | None = None

    # Tool call identity (tool_call_start, tool_call_delta, tool_call_end)
    call_id: str | None = None
    tool_name: str | None = None

    # Partial tool input JSON (tool_call_delta)
    fragment: str | None = None

    # Why the model stopped (turn_end)
    stop_reason: str | None = None

    @classmethod
    def text_delta(cls, text: str) -> StreamEvent:
        return cls(type="text_delta", text=text)

    @classmethod
    def tool_call_start(cls, call_id: str, tool_name: str) -> StreamEvent:
        return cls(type="tool_call_start", call_id=call_id, tool_name=tool_name)

    @classmethod
    def tool_call_delta(cls, call_id: str, fragment: str) -> StreamEvent:
        return cls(type="tool_call_delta", call_id=call_id, fragment=fragment)

    @classmethod
    def tool_call_end(cls, call_id: str) -> StreamEvent:
        return cls(type="tool_call_end", call_id=call_id)

    @classmethod
    def turn_end(cls, stop_reason: str | None = None) -> StreamEvent:
        return cls(type="turn_end", stop_reason=stop_reason)


@_dataclasses.dataclass
class ContentBlock:
    """A content block within a turn (text, tool invocation, or tool result)."""

    type: _typing.Literal["text", "tool_use", "tool_result"]

    # For text blocks
    text: str | None = None

    # For tool_use blocks
    id: str | None = None
    name: str | None = None
    input: dict[str, _typing.Any] | None = None

    # For tool_result blocks
    tool_use_id: str | None = None
    content: str | None = None
    is_error: bool = False

    @classmethod
    def text_block(cls, text: str) -> ContentBlock:
        return cls(type="text", text=text)

    @classmethod
    def tool_use(cls, call_id: str, name: str, input: dict[str, _typing.Any]) -> ContentBlock:
        return cls(type="tool_use", id=call_id, name=name, input=input)

    @classmethod
    def tool_result(cls, call_id: str, content: str, *, is_error: bool = False) -> ContentBlock:
        return cls(type="tool_result", tool_use_id=call_id, content=content, is_error=is_error)

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to the block layout used in requests (Anthropic-style)."""
        if self.type == "text":
            return {"type": "text", "text": self.text or ""}
        if self.type == "tool_use":
            return {
                "type": "tool_use",
                "id": self.id,
                "name": self.name,
                "input": self.input or {},
            }
        block: dict[str, _typing.Any] = {
            "type": "tool_result",
            "tool_use_id": self.tool_use_id,
            "content": self.content or "",
        }
        if self.is_error:
            block["is_error"] = True
        return block


@_dataclasses.dataclass
class ConversationTurn:
    """One role-tagged unit of conversation content."""

    role: _typing.Literal["user", "assistant"]
    content: str | list[ContentBlock]

    @property
    def blocks(self) -> list[ContentBlock]:
        """Content as a block list (plain text becomes a single text block)."""
        if isinstance(self.content, str):
            return [ContentBlock.text_block(self.content)] if self.content else []
        return list(self.content)

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        if isinstance(self.content, str):
            return self.content
        return "".join(b.text or "" for b in self.content if b.type == "text")

    def tool_uses(self) -> list[ContentBlock]:
        return [b for b in self.blocks if b.type == "tool_use"]

    def tool_results(self) -> list[ContentBlock]:
        return [b for b in self.blocks if b.type == "tool_result"]

    def to_dict(self) -> dict[str, _typing.Any]:
        if isinstance(self.content, str):
            return {"role": self.role, "content": self.content}
        return {"role": self.role, "content": [b.to_dict() for b in self.content]}


@_dataclasses.dataclass
class Tool:
    """Tool definition for the API."""

    name: str
    description: str
    input_schema: dict[str, _typing.Any]

    def to_anthropic_format(self) -> dict[str, _typing.Any]:
        """Convert to Anthropic API format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    def to_openai_format(self) -> dict[str, _typing.Any]:
        """Convert to OpenAI/Ollama function format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }
