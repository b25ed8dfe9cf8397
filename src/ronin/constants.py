"""
Shared constants for Ronin.

This module provides a single source of truth for default values
that are used across multiple modules.
"""

# Provider/Model defaults
DEFAULT_PROVIDER = "anthropic"
"""Default LLM provider."""

DEFAULT_MODEL = "claude-sonnet-4-20250514"
"""Default model for the default provider."""

ANTHROPIC_API_VERSION = "2023-06-01"
"""Value of the anthropic-version header."""

# LLM interaction defaults
DEFAULT_MAX_TOKENS = 2048
"""Default maximum tokens for LLM responses."""

DEFAULT_MAX_TOOL_ROUNDS = 20
"""Default maximum rounds of tool execution per conversation turn."""

DEFAULT_PROVIDER_TIMEOUT = 300.0
"""Default HTTP timeout for backend requests in seconds (large local models are slow)."""

# Permission cache
DEFAULT_PERMISSION_TTL_HOURS = 24
"""Remembered approvals expire after this many hours."""

PERMISSION_KEY_HASH_LENGTH = 16
"""Number of hex digits of sha256 kept in permission keys."""

# Tool hosts
BUILTIN_HOST_ID = "builtin"
"""Host id of the in-process tool host."""

DEFAULT_HOST_TIMEOUT = 60.0
"""Default timeout for a single JSON-RPC request to a tool host, in seconds."""

HOST_TERMINATE_GRACE_SECONDS = 5.0
"""How long a child-process host gets between SIGTERM and SIGKILL."""

MCP_PROTOCOL_VERSION = "2024-11-05"
"""Protocol version announced in the initialize handshake."""

# Tool execution defaults
DEFAULT_SHELL_TIMEOUT_MS = 120_000
"""Default timeout for shell command execution (2 minutes)."""

DEFAULT_WEB_TIMEOUT = 30.0
"""Default timeout for web_request in seconds."""

# Truncation limits for LLM context
DEFAULT_TOOL_RESULT_MAX_CHARS = 50_000
"""Maximum characters for tool result in LLM context (~12,500 tokens).

Tool output exceeding this limit is truncated before being added to
the conversation history. This prevents runaway tool output from
exceeding the model's context window.
"""
