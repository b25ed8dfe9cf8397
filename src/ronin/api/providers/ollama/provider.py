"""
Ollama API provider implementation.

Uses Ollama's native ``/api/chat`` endpoint, which streams one JSON object
per line. Supports both local servers and remote Ollama instances.
"""

from __future__ import annotations

import logging as _logging
import os as _os
import typing as _typing

import httpx as _httpx

import ronin.api.base as base
import ronin.api.types as types
import ronin.constants as _constants

_logger = _logging.getLogger(__name__)


class OllamaProvider(base.LLMProvider):
    """
    Ollama API provider.

    Supports RONIN_OLLAMA_HOST (preferred) or OLLAMA_HOST (fallback) for
    remote servers.
    """

    DEFAULT_HOST = "localhost"
    DEFAULT_PORT = 11434

    dialect = "ollama-ndjson"

    def __init__(
        self,
        model: str = "llama3.1",
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float = _constants.DEFAULT_PROVIDER_TIMEOUT,
        transport: _httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the Ollama provider.

        Args:
            model: Model to use (e.g., 'llama3.1', 'qwen2.5-coder').
            base_url: Server URL. Defaults to RONIN_OLLAMA_HOST or
                OLLAMA_HOST env var, or http://localhost:11434.
            api_key: API key for authenticated Ollama servers.
            timeout: Request timeout in seconds (default 300s for large models).
            transport: Optional httpx transport (used by tests).
        """
        self._base_url = (base_url or self._base_url_from_env()).rstrip("/")
        self._model = model

        headers: dict[str, str] = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._client = _httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def _base_url_from_env(cls) -> str:
        env_host = _os.environ.get("RONIN_OLLAMA_HOST") or _os.environ.get("OLLAMA_HOST", "")
        if not env_host:
            return f"http://{cls.DEFAULT_HOST}:{cls.DEFAULT_PORT}"
        # OLLAMA_HOST can be "hostname" or "hostname:port" or "http://hostname:port"
        if env_host.startswith(("http://", "https://")):
            return env_host
        if ":" in env_host:
            return f"http://{env_host}"
        return f"http://{env_host}:{cls.DEFAULT_PORT}"

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def model(self) -> str:
        return self._model

    @property
    def base_url(self) -> str:
        """Base URL being used for the Ollama server."""
        return self._base_url

    async def stream(
        self,
        turns: list[types.ConversationTurn],
        *,
        system: str | None = None,
        tools: list[types.Tool] | None = None,
        max_tokens: int = _constants.DEFAULT_MAX_TOKENS,
    ) -> _typing.AsyncIterator[bytes]:
        """Stream a chat response as raw NDJSON bytes."""
        payload: dict[str, _typing.Any] = {
            "model": self._model,
            "messages": self._format_messages(turns, system),
            "stream": True,
            "options": {"num_predict": max_tokens},
        }
        if tools:
            payload["tools"] = [t.to_openai_format() for t in tools]

        async for chunk in base.stream_post(
            self._client, "/api/chat", payload, provider_name=self.name
        ):
            yield chunk

    @staticmethod
    def _format_messages(
        turns: list[types.ConversationTurn],
        system: str | None,
    ) -> list[dict[str, _typing.Any]]:
        """
        Format turns for /api/chat.

        Tool calls go out with decoded ``arguments``; each tool result
        becomes its own ``tool`` message carrying the tool's name.
        """
        formatted: list[dict[str, _typing.Any]] = []
        if system:
            formatted.append({"role": "system", "content": system})

        tool_names: dict[str, str] = {}
        for turn in turns:
            if turn.role == "assistant":
                message: dict[str, _typing.Any] = {"role": "assistant", "content": turn.text}
                uses = turn.tool_uses()
                if uses:
                    message["tool_calls"] = [
                        {"function": {"name": u.name, "arguments": u.input or {}}}
                        for u in uses
                    ]
                    for u in uses:
                        tool_names[u.id or ""] = u.name or ""
                formatted.append(message)
                continue

            for result in turn.tool_results():
                formatted.append({
                    "role": "tool",
                    "content": result.content or "",
                    "tool_name": tool_names.get(result.tool_use_id or "", ""),
                })
            if turn.text:
                formatted.append({"role": "user", "content": turn.text})

        return formatted

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
