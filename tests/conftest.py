"""
Shared pytest fixtures for Ronin tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import json as _json
import os as _os
import pathlib as _pathlib
import typing as _typing
import unittest.mock as _mock

import pytest as _pytest

import ronin.api.base as api_base
import ronin.api.types as api_types
import ronin.config as config
import ronin.constants as _constants
import ronin.hosts.config as host_config
import ronin.hosts.manager as hosts_manager
import ronin.permissions.store as permissions_store

# Environment keys that should be cleared for isolated tests
ENV_KEYS_TO_CLEAR = [
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "OLLAMA_HOST",
    "RONIN_ENV_FILE",
    "RONIN_OLLAMA_HOST",
]


@_pytest.fixture
def clean_env() -> dict[str, str]:
    """
    Return environment dict with test-related keys removed.

    Use with mock.patch.dict to isolate tests from the actual environment.
    """
    return {
        k: v
        for k, v in _os.environ.items()
        if k not in ENV_KEYS_TO_CLEAR and not k.startswith("RONIN_")
    }


@_pytest.fixture
def isolated_env(clean_env: dict[str, str]):
    """
    Context manager that isolates tests from environment variables.

    Usage:
        def test_something(isolated_env):
            with isolated_env:
                settings = config.Settings.construct_without_dotenv()
    """
    return _mock.patch.dict(_os.environ, clean_env, clear=True)


@_pytest.fixture
def clean_settings(isolated_env, tmp_path: _pathlib.Path) -> config.Settings:
    """Settings isolated from environment and .env, with data under tmp_path."""
    with isolated_env:
        return config.Settings.construct_without_dotenv(data_dir=str(tmp_path / "data"))


# =============================================================================
# Raw stream builders
# =============================================================================


def sse(payload: dict[str, _typing.Any]) -> bytes:
    """One server-sent event carrying a JSON payload."""
    event = payload.get("type", "message")
    return f"event: {event}\ndata: {_json.dumps(payload)}\n\n".encode()


class AnthropicStream:
    """Builds Anthropic-style SSE bodies for scripted providers."""

    @staticmethod
    def text(text: str, stop_reason: str = "end_turn") -> bytes:
        return b"".join([
            sse({"type": "message_start", "message": {"id": "msg_1", "role": "assistant"}}),
            sse({"type": "content_block_start", "index": 0,
                 "content_block": {"type": "text", "text": ""}}),
            sse({"type": "content_block_delta", "index": 0,
                 "delta": {"type": "text_delta", "text": text}}),
            sse({"type": "content_block_stop", "index": 0}),
            sse({"type": "message_delta", "delta": {"stop_reason": stop_reason}}),
            sse({"type": "message_stop"}),
        ])

    @staticmethod
    def tool_calls(
        calls: list[tuple[str, str, list[str]]],
        *,
        text: str | None = None,
    ) -> bytes:
        """
        Body with optional leading text and one or more tool calls.

        Args:
            calls: (call_id, tool_name, argument fragments) per call
            text: Text emitted before the calls
        """
        parts = [sse({"type": "message_start", "message": {"id": "msg_1"}})]
        index = 0
        if text:
            parts.append(sse({"type": "content_block_start", "index": index,
                              "content_block": {"type": "text", "text": ""}}))
            parts.append(sse({"type": "content_block_delta", "index": index,
                              "delta": {"type": "text_delta", "text": text}}))
            parts.append(sse({"type": "content_block_stop", "index": index}))
            index += 1
        for call_id, name, fragments in calls:
            parts.append(sse({
                "type": "content_block_start",
                "index": index,
                "content_block": {"type": "tool_use", "id": call_id, "name": name, "input": {}},
            }))
            for fragment in fragments:
                parts.append(sse({
                    "type": "content_block_delta",
                    "index": index,
                    "delta": {"type": "input_json_delta", "partial_json": fragment},
                }))
            parts.append(sse({"type": "content_block_stop", "index": index}))
            index += 1
        parts.append(sse({"type": "message_delta", "delta": {"stop_reason": "tool_use"}}))
        parts.append(sse({"type": "message_stop"}))
        return b"".join(parts)


def split_chunks(body: bytes, size: int) -> list[bytes]:
    """Split a body into fixed-size chunks, ignoring record boundaries."""
    return [body[i:i + size] for i in range(0, len(body), size)]


# =============================================================================
# Scripted provider
# =============================================================================


class ScriptedProvider(api_base.LLMProvider):
    """
    Provider that replays prepared raw bodies, one per round.

    A round given as an exception instance raises it instead of streaming.
    Each request's turns and tool names are recorded for assertions.
    """

    dialect = "anthropic-sse"

    def __init__(
        self,
        rounds: list[bytes | list[bytes] | Exception],
        *,
        dialect: str = "anthropic-sse",
    ) -> None:
        self._rounds = list(rounds)
        self.dialect = dialect
        self.requests: list[dict[str, _typing.Any]] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def model(self) -> str:
        return "scripted-model"

    async def stream(
        self,
        turns: list[api_types.ConversationTurn],
        *,
        system: str | None = None,
        tools: list[api_types.Tool] | None = None,
        max_tokens: int = _constants.DEFAULT_MAX_TOKENS,
    ) -> _typing.AsyncIterator[bytes]:
        self.requests.append({
            "turns": [turn.to_dict() for turn in turns],
            "system": system,
            "tools": [tool.name for tool in tools or []],
        })
        if not self._rounds:
            raise AssertionError("ScriptedProvider ran out of rounds")
        body = self._rounds.pop(0)
        if isinstance(body, Exception):
            raise body
        for chunk in body if isinstance(body, list) else split_chunks(body, 37):
            yield chunk

    async def close(self) -> None:
        self.closed = True


@_pytest.fixture
def anthropic_stream() -> type[AnthropicStream]:
    return AnthropicStream


@_pytest.fixture
def scripted_provider() -> type[ScriptedProvider]:
    return ScriptedProvider


# =============================================================================
# Stores and hosts
# =============================================================================


@_pytest.fixture
def permission_store(tmp_path: _pathlib.Path) -> permissions_store.PermissionStore:
    """PermissionStore backed by a file in tmp_path."""
    return permissions_store.PermissionStore(tmp_path / "permissions.json")


@_pytest.fixture
def workspace(tmp_path: _pathlib.Path) -> _pathlib.Path:
    """A small directory tree for the file tools."""
    root = tmp_path / "workspace"
    root.mkdir()
    (root / "a.txt").write_text("alpha\n")
    (root / "b.txt").write_text("beta\n")
    (root / "sub").mkdir()
    return root


@_pytest.fixture
def builtin_manager(workspace: _pathlib.Path) -> hosts_manager.ToolHostManager:
    """Manager configured with only the built-in host, rooted at workspace."""
    return hosts_manager.ToolHostManager(
        lambda: {"builtin": host_config.InProcessHostConfig()},
        base_dir=workspace,
    )
