"""Tests for the HTTP providers and the provider factory."""

import json as _json
import os as _os
import unittest.mock as _mock

import httpx as _httpx
import pytest as _pytest

import ronin.api.base as api_base
import ronin.api.factory as factory
import ronin.api.providers.anthropic.provider as anthropic_provider
import ronin.api.providers.ollama.provider as ollama_provider
import ronin.api.providers.openai_compat.provider as openai_provider
import ronin.api.types as types


class _Capture:
    """MockTransport handler that records requests and answers with a fixed body."""

    def __init__(self, body: bytes = b"", status_code: int = 200) -> None:
        self.body = body
        self.status_code = status_code
        self.requests: list[_httpx.Request] = []

    def __call__(self, request: _httpx.Request) -> _httpx.Response:
        self.requests.append(request)
        return _httpx.Response(self.status_code, content=self.body)

    @property
    def transport(self) -> _httpx.MockTransport:
        return _httpx.MockTransport(self)

    @property
    def payload(self) -> dict:
        return _json.loads(self.requests[-1].content)


async def _drain(provider: api_base.LLMProvider, turns, **kwargs) -> bytes:
    chunks = [chunk async for chunk in provider.stream(turns, **kwargs)]
    return b"".join(chunks)


def _tool_exchange() -> list[types.ConversationTurn]:
    return [
        types.ConversationTurn(role="user", content="List the files"),
        types.ConversationTurn(role="assistant", content=[
            types.ContentBlock.text_block("Looking."),
            types.ContentBlock.tool_use("call_1", "file_list", {"path": "."}),
        ]),
        types.ConversationTurn(role="user", content=[
            types.ContentBlock.tool_result("call_1", "a.txt\nb.txt"),
        ]),
    ]


_TOOL = types.Tool(
    name="file_list",
    description="List a directory",
    input_schema={"type": "object", "properties": {"path": {"type": "string"}}},
)


class TestAnthropicProvider:
    def test_missing_key_raises(self, isolated_env) -> None:
        with isolated_env, _pytest.raises(ValueError, match="API key required"):
            anthropic_provider.AnthropicProvider()

    def test_key_read_from_environment(self, isolated_env) -> None:
        with isolated_env:
            _os.environ["ANTHROPIC_API_KEY"] = "env-key"
            provider = anthropic_provider.AnthropicProvider()
        assert provider.name == "anthropic"

    @_pytest.mark.asyncio
    async def test_request_shape(self) -> None:
        capture = _Capture(b"event: message_stop\ndata: {}\n\n")
        provider = anthropic_provider.AnthropicProvider(
            "claude-test", api_key="sk-test", transport=capture.transport
        )

        body = await _drain(provider, _tool_exchange(), system="Be brief", tools=[_TOOL],
                            max_tokens=512)
        await provider.close()

        assert body == capture.body
        request = capture.requests[0]
        assert request.url.path == "/v1/messages"
        assert request.headers["x-api-key"] == "sk-test"
        assert "anthropic-version" in request.headers
        payload = capture.payload
        assert payload["model"] == "claude-test"
        assert payload["max_tokens"] == 512
        assert payload["stream"] is True
        assert payload["system"] == "Be brief"
        assert payload["tools"][0]["input_schema"]["type"] == "object"
        assert payload["messages"][1]["content"][1] == {
            "type": "tool_use", "id": "call_1", "name": "file_list", "input": {"path": "."},
        }
        assert payload["messages"][2]["content"][0]["tool_use_id"] == "call_1"

    @_pytest.mark.asyncio
    async def test_empty_assistant_text_is_dropped(self) -> None:
        capture = _Capture()
        provider = anthropic_provider.AnthropicProvider(api_key="k", transport=capture.transport)
        turns = [
            types.ConversationTurn(role="user", content="hi"),
            types.ConversationTurn(role="assistant", content=[types.ContentBlock.text_block("")]),
            types.ConversationTurn(role="user", content="again"),
        ]

        await _drain(provider, turns)

        assert [m["role"] for m in capture.payload["messages"]] == ["user", "user"]
        assert "system" not in capture.payload
        assert "tools" not in capture.payload

    @_pytest.mark.asyncio
    async def test_error_status_raises_transport_error(self) -> None:
        capture = _Capture(b'{"error": "overloaded"}', status_code=529)
        provider = anthropic_provider.AnthropicProvider(api_key="k", transport=capture.transport)

        with _pytest.raises(api_base.TransportError, match="HTTP 529"):
            await _drain(provider, [types.ConversationTurn(role="user", content="hi")])

    @_pytest.mark.asyncio
    async def test_connection_failure_raises_transport_error(self) -> None:
        def refuse(request: _httpx.Request) -> _httpx.Response:
            raise _httpx.ConnectError("connection refused", request=request)

        provider = anthropic_provider.AnthropicProvider(
            api_key="k", transport=_httpx.MockTransport(refuse)
        )

        with _pytest.raises(api_base.TransportError, match="request failed"):
            await _drain(provider, [types.ConversationTurn(role="user", content="hi")])


class TestOllamaProvider:
    @_pytest.mark.parametrize("env_value, expected", [
        ("", "http://localhost:11434"),
        ("gpu-box", "http://gpu-box:11434"),
        ("gpu-box:9000", "http://gpu-box:9000"),
        ("https://ollama.example.com", "https://ollama.example.com"),
    ])
    def test_base_url_from_environment(self, isolated_env, env_value: str, expected: str) -> None:
        with isolated_env:
            if env_value:
                _os.environ["OLLAMA_HOST"] = env_value
            provider = ollama_provider.OllamaProvider()
        assert provider.base_url == expected

    def test_prefixed_host_wins(self, isolated_env) -> None:
        with isolated_env:
            _os.environ["OLLAMA_HOST"] = "other"
            _os.environ["RONIN_OLLAMA_HOST"] = "preferred"
            provider = ollama_provider.OllamaProvider()
        assert provider.base_url == "http://preferred:11434"

    @_pytest.mark.asyncio
    async def test_request_shape(self) -> None:
        capture = _Capture(b'{"done": true}\n')
        provider = ollama_provider.OllamaProvider(
            "qwen", base_url="http://ollama.test", transport=capture.transport
        )

        await _drain(provider, _tool_exchange(), system="sys", tools=[_TOOL], max_tokens=99)

        assert capture.requests[0].url.path == "/api/chat"
        assert "authorization" not in capture.requests[0].headers
        payload = capture.payload
        assert payload["options"] == {"num_predict": 99}
        assert payload["tools"][0]["function"]["name"] == "file_list"
        messages = payload["messages"]
        assert messages[0] == {"role": "system", "content": "sys"}
        assert messages[2]["tool_calls"] == [
            {"function": {"name": "file_list", "arguments": {"path": "."}}}
        ]
        assert messages[3] == {"role": "tool", "content": "a.txt\nb.txt", "tool_name": "file_list"}

    @_pytest.mark.asyncio
    async def test_api_key_sent_as_bearer(self) -> None:
        capture = _Capture()
        provider = ollama_provider.OllamaProvider(
            base_url="http://ollama.test", api_key="secret", transport=capture.transport
        )
        await _drain(provider, [types.ConversationTurn(role="user", content="hi")])
        assert capture.requests[0].headers["authorization"] == "Bearer secret"


class TestOpenAICompatibleProvider:
    @_pytest.mark.asyncio
    async def test_request_shape(self, isolated_env) -> None:
        capture = _Capture(b"data: [DONE]\n\n")
        with isolated_env:
            provider = openai_provider.OpenAICompatibleProvider(
                "local-model",
                api_key="tok",
                base_url="http://vllm.test/v1/",
                transport=capture.transport,
            )

        await _drain(provider, _tool_exchange(), tools=[_TOOL], max_tokens=64)

        request = capture.requests[0]
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer tok"
        payload = capture.payload
        assert payload["max_tokens"] == 64
        assistant = payload["messages"][1]
        assert assistant["content"] == "Looking."
        call = assistant["tool_calls"][0]
        assert call["id"] == "call_1"
        assert call["type"] == "function"
        assert _json.loads(call["function"]["arguments"]) == {"path": "."}
        assert payload["messages"][2] == {
            "role": "tool", "tool_call_id": "call_1", "content": "a.txt\nb.txt",
        }

    @_pytest.mark.asyncio
    async def test_no_key_sends_no_authorization(self, isolated_env) -> None:
        capture = _Capture()
        with isolated_env:
            provider = openai_provider.OpenAICompatibleProvider(
                base_url="http://local.test/v1", transport=capture.transport
            )
        await _drain(provider, [types.ConversationTurn(role="user", content="hi")])
        assert "authorization" not in capture.requests[0].headers


class TestProviderFactory:
    def test_creates_named_provider(self, clean_settings) -> None:
        provider = factory.create_provider("ollama", "mistral", settings=clean_settings)
        assert isinstance(provider, ollama_provider.OllamaProvider)
        assert provider.model == "mistral"

    def test_provider_name_from_settings(self, clean_settings) -> None:
        clean_settings.provider.name = "OpenAI"
        provider = factory.create_provider(settings=clean_settings)
        assert isinstance(provider, openai_provider.OpenAICompatibleProvider)

    def test_anthropic_key_from_settings(self, clean_settings) -> None:
        clean_settings.anthropic_api_key = "from-settings"
        provider = factory.create_provider("anthropic", settings=clean_settings)
        assert provider.name == "anthropic"

    def test_anthropic_without_key_raises(self, clean_settings, isolated_env) -> None:
        with isolated_env, _pytest.raises(ValueError, match="API key required"):
            factory.create_provider("anthropic", settings=clean_settings)

    def test_unknown_provider_raises(self, clean_settings) -> None:
        with _pytest.raises(ValueError, match="Unknown provider: carrier-pigeon"):
            factory.create_provider("carrier-pigeon", settings=clean_settings)

    def test_available_providers_listed(self) -> None:
        names = [p["name"] for p in factory.get_available_providers()]
        assert names == ["anthropic", "ollama", "openai"]

    def test_provider_dialects(self) -> None:
        with _mock.patch.dict(_os.environ, {"ANTHROPIC_API_KEY": "k"}):
            provider = anthropic_provider.AnthropicProvider()
        assert provider.dialect == "anthropic-sse"
        assert ollama_provider.OllamaProvider.dialect == "ollama-ndjson"
        assert openai_provider.OpenAICompatibleProvider.dialect == "openai-sse"
