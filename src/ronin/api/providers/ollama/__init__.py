"""Ollama provider package."""

import ronin.api.providers.ollama.provider as _provider

OllamaProvider = _provider.OllamaProvider

__all__ = ["OllamaProvider"]
