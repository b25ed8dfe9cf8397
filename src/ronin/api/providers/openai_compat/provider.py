"""
OpenAI-compatible chat-completions provider.

Works against any server that implements ``/chat/completions`` with
server-sent-event streaming: OpenAI itself, vLLM, LM Studio, llama.cpp
server, and Ollama's compatibility endpoint.
"""

from __future__ import annotations

import json as _json
import logging as _logging
import os as _os
import typing as _typing

import httpx as _httpx

import ronin.api.base as base
import ronin.api.types as types
import ronin.constants as _constants

_logger = _logging.getLogger(__name__)


class OpenAICompatibleProvider(base.LLMProvider):
    """OpenAI-compatible API provider."""

    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    dialect = "openai-sse"

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        timeout: float = _constants.DEFAULT_PROVIDER_TIMEOUT,
        transport: _httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the provider.

        Args:
            model: Model name as the server knows it.
            api_key: Bearer token. Defaults to OPENAI_API_KEY; local servers
                usually need none.
            base_url: API root including the version segment (e.g.
                'http://localhost:8000/v1').
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self._model = model
        self._base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")

        headers: dict[str, str] = {"Content-Type": "application/json"}
        effective_key = api_key or _os.environ.get("OPENAI_API_KEY")
        if effective_key:
            headers["Authorization"] = f"Bearer {effective_key}"

        self._client = _httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "openai"

    @property
    def model(self) -> str:
        return self._model

    async def stream(
        self,
        turns: list[types.ConversationTurn],
        *,
        system: str | None = None,
        tools: list[types.Tool] | None = None,
        max_tokens: int = _constants.DEFAULT_MAX_TOKENS,
    ) -> _typing.AsyncIterator[bytes]:
        """Stream a chat completion as raw SSE bytes."""
        payload: dict[str, _typing.Any] = {
            "model": self._model,
            "messages": self._format_messages(turns, system),
            "max_tokens": max_tokens,
            "stream": True,
        }
        if tools:
            payload["tools"] = [t.to_openai_format() for t in tools]

        async for chunk in base.stream_post(
            self._client, "/chat/completions", payload, provider_name=self.name
        ):
            yield chunk

    @staticmethod
    def _format_messages(
        turns: list[types.ConversationTurn],
        system: str | None,
    ) -> list[dict[str, _typing.Any]]:
        """Format turns for the chat-completions API."""
        formatted: list[dict[str, _typing.Any]] = []
        if system:
            formatted.append({"role": "system", "content": system})

        for turn in turns:
            if turn.role == "assistant":
                message: dict[str, _typing.Any] = {"role": "assistant"}
                uses = turn.tool_uses()
                if uses:
                    message["tool_calls"] = [
                        {
                            "id": u.id,
                            "type": "function",
                            "function": {
                                "name": u.name,
                                "arguments": _json.dumps(u.input or {}),
                            },
                        }
                        for u in uses
                    ]
                    if turn.text:
                        message["content"] = turn.text
                else:
                    message["content"] = turn.text
                formatted.append(message)
                continue

            for result in turn.tool_results():
                formatted.append({
                    "role": "tool",
                    "tool_call_id": result.tool_use_id or "",
                    "content": result.content or "",
                })
            if turn.text:
                formatted.append({"role": "user", "content": turn.text})

        return formatted

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
