"""
LLM API layer for Ronin.

Providers turn a conversation into a backend request and return the raw
response stream; dialect parsers turn that stream into normalized events.

Supported backends:
- Anthropic Messages API
- Ollama (local or remote models)
- Any OpenAI-compatible chat-completions server
"""

from ronin.api.base import LLMProvider, TransportError
from ronin.api.dialects import (
    AnthropicSSEParser,
    OllamaNDJSONParser,
    OpenAISSEParser,
    StreamDialectParser,
    StreamProtocolError,
    create_parser,
)
from ronin.api.factory import create_provider, get_available_providers
from ronin.api.types import (
    ContentBlock,
    ConversationTurn,
    StreamEvent,
    Tool,
)

__all__ = [
    # Base class
    "LLMProvider",
    # Factory
    "create_provider",
    "get_available_providers",
    # Exceptions
    "StreamProtocolError",
    "TransportError",
    # Parsers
    "AnthropicSSEParser",
    "OllamaNDJSONParser",
    "OpenAISSEParser",
    "StreamDialectParser",
    "create_parser",
    # Types
    "ContentBlock",
    "ConversationTurn",
    "StreamEvent",
    "Tool",
]


import typing as _typing


# Lazy imports for providers (avoid constructing HTTP machinery unless needed)
def __getattr__(name: str) -> _typing.Any:
    if name == "AnthropicProvider":
        from ronin.api.providers.anthropic.provider import AnthropicProvider

        return AnthropicProvider
    if name == "OllamaProvider":
        from ronin.api.providers.ollama.provider import OllamaProvider

        return OllamaProvider
    if name == "OpenAICompatibleProvider":
        from ronin.api.providers.openai_compat.provider import OpenAICompatibleProvider

        return OpenAICompatibleProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
