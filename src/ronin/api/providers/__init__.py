"""
Provider implementations for LLM APIs.

Each provider is in its own submodule for clean separation.
Built-in providers: anthropic, ollama, openai (any OpenAI-compatible server)
"""

import ronin.api.providers.anthropic.provider as _anthropic
import ronin.api.providers.ollama.provider as _ollama
import ronin.api.providers.openai_compat.provider as _openai_compat

# Re-export providers for convenient access
AnthropicProvider = _anthropic.AnthropicProvider
OllamaProvider = _ollama.OllamaProvider
OpenAICompatibleProvider = _openai_compat.OpenAICompatibleProvider

__all__ = [
    "AnthropicProvider",
    "OllamaProvider",
    "OpenAICompatibleProvider",
]
