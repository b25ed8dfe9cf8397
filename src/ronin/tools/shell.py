"""
shell_execute tool for running shell commands.

Commands run through the system shell with a timeout and a filtered
environment that never carries credentials.
"""

from __future__ import annotations

import asyncio as _asyncio
import os as _os
import pathlib as _pathlib
import typing as _typing

import ronin.constants as _constants
import ronin.tools.base as base


class ShellExecuteTool(base.Tool):
    """
    Execute shell commands.

    A non-zero exit status is reported as an error result that still
    carries the captured stdout and stderr.
    """

    # Patterns for environment variables that are never passed to commands
    _ENV_BLOCKLIST_PATTERNS: tuple[str, ...] = (
        "_API_KEY",
        "_SECRET",
        "_TOKEN",
        "_PASSWORD",
        "_CREDENTIAL",
        "AWS_",
        "AZURE_",
        "GOOGLE_",
        "OPENAI_",
        "ANTHROPIC_",
    )

    def __init__(
        self,
        working_dir: _pathlib.Path | None = None,
        timeout_ms: int = _constants.DEFAULT_SHELL_TIMEOUT_MS,
    ) -> None:
        """
        Args:
            working_dir: Default working directory (default: cwd at call time)
            timeout_ms: Default timeout in milliseconds
        """
        self._working_dir = working_dir
        self._default_timeout_ms = timeout_ms

    @property
    def name(self) -> str:
        return "shell_execute"

    @property
    def description(self) -> str:
        return (
            "Execute a shell command and return its exit code, stdout and stderr."
        )

    @property
    def input_schema(self) -> dict[str, _typing.Any]:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "Shell command to execute",
                },
                "cwd": {
                    "type": "string",
                    "description": "Working directory for the command (optional)",
                },
                "timeout": {
                    "type": "integer",
                    "description": (
                        f"Timeout in milliseconds (default: {_constants.DEFAULT_SHELL_TIMEOUT_MS})"
                    ),
                },
            },
            "required": ["command"],
        }

    async def execute(self, input: dict[str, _typing.Any]) -> base.ToolResult:
        command: str = input["command"]
        timeout_ms: int = input.get("timeout", self._default_timeout_ms)

        cwd = self._working_dir or _pathlib.Path.cwd()
        if input.get("cwd"):
            cwd = (cwd / _pathlib.Path(input["cwd"]).expanduser()).resolve()
        if not cwd.is_dir():
            return base.ToolResult.error(f"Working directory not found: {cwd}")

        try:
            proc = await _asyncio.create_subprocess_shell(
                command,
                stdout=_asyncio.subprocess.PIPE,
                stderr=_asyncio.subprocess.PIPE,
                cwd=str(cwd),
                env=self._get_env(),
            )
        except OSError as e:
            return base.ToolResult.error(f"Failed to execute command: {e}")

        try:
            stdout, stderr = await _asyncio.wait_for(
                proc.communicate(),
                timeout=timeout_ms / 1000.0,
            )
        except TimeoutError:
            proc.kill()
            await proc.wait()
            return base.ToolResult.error(f"Command timed out after {timeout_ms}ms")
        except _asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        data = {
            "command": command,
            "exit_code": proc.returncode,
            "stdout": stdout.decode("utf-8", errors="replace"),
            "stderr": stderr.decode("utf-8", errors="replace"),
        }
        if proc.returncode != 0:
            return base.ToolResult.error(f"Command exited with code {proc.returncode}", data)
        return base.ToolResult.ok(data)

    def _get_env(self) -> dict[str, str]:
        """Parent environment minus anything that looks like a credential."""
        return {
            key: value
            for key, value in _os.environ.items()
            if not any(pattern in key.upper() for pattern in self._ENV_BLOCKLIST_PATTERNS)
        }
