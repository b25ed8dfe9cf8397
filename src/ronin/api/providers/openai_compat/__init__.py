"""OpenAI-compatible provider package."""

import ronin.api.providers.openai_compat.provider as _provider

OpenAICompatibleProvider = _provider.OpenAICompatibleProvider

__all__ = ["OpenAICompatibleProvider"]
