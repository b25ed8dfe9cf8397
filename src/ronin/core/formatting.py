"""
One-line summaries of tool results.

These are for display only; the model always receives the full result
text from ToolResult.to_content().
"""

from __future__ import annotations

import typing as _typing
import urllib.parse as _urllib_parse

import ronin.tools.base as tools_base


def _size(count: int, unit: str) -> str:
    if count > 1000:
        return f"{int(count / 1000 + 0.5)}k {unit}"
    return f"{count} {unit}"


def summarize_result(
    tool_name: str,
    tool_input: dict[str, _typing.Any],
    result: tools_base.ToolResult,
) -> str:
    """Describe a tool result in one line."""
    if result.is_error:
        return f"Error executing {tool_name}: {result.message or 'Unknown error'}"

    data = result.data if isinstance(result.data, dict) else {}
    formatter = _FORMATTERS.get(tool_name)
    if formatter is None or not data:
        return "Tool executed successfully"
    return formatter(data, tool_input)


def _file_list(data: dict[str, _typing.Any], tool_input: dict[str, _typing.Any]) -> str:
    files = data.get("files")
    if not isinstance(files, list):
        return "Tool executed successfully"

    path = data.get("path") or tool_input.get("path") or "current directory"
    total = data.get("count") or len(files)
    if total == 0:
        return f"Listed {path} (empty directory)"

    dirs = sum(1 for f in files if isinstance(f, dict) and f.get("type") == "directory")
    plain = sum(1 for f in files if isinstance(f, dict) and f.get("type") == "file")
    if dirs and plain:
        detail = f": {dirs} dirs, {plain} files"
    elif dirs:
        detail = f": {dirs} directories"
    elif plain:
        detail = f": {plain} files"
    else:
        detail = ""
    return f"Listed {path} ({total} items{detail})"


def _file_read(data: dict[str, _typing.Any], tool_input: dict[str, _typing.Any]) -> str:
    path = data.get("path") or tool_input.get("path") or "unknown file"
    content = data.get("content") or ""
    if not content:
        return f"Read {path} (empty file)"
    return f"Read {path} ({_size(len(content), 'chars')})"


def _file_write(data: dict[str, _typing.Any], tool_input: dict[str, _typing.Any]) -> str:
    path = data.get("path") or tool_input.get("path") or "unknown file"
    written = data.get("bytes_written") or len(str(tool_input.get("content") or ""))
    return f"Wrote {path} ({_size(written, 'bytes')})"


def _shell_execute(data: dict[str, _typing.Any], tool_input: dict[str, _typing.Any]) -> str:
    command = str(data.get("command") or tool_input.get("command") or "unknown command")
    exit_code = data.get("exit_code", "?")
    return f"Executed {command.split(' ')[0]} (exit code: {exit_code})"


def _web_request(data: dict[str, _typing.Any], tool_input: dict[str, _typing.Any]) -> str:
    url = str(tool_input.get("url") or "unknown URL")
    method = str(tool_input.get("method") or "GET").upper()
    status = data.get("status") or "?"

    host = _urllib_parse.urlsplit(url).hostname
    if not host:
        host = url[:30] + "..." if len(url) > 30 else url
    return f"{method} {host} ({status})"


_FORMATTERS: dict[str, _typing.Callable[[dict[str, _typing.Any], dict[str, _typing.Any]], str]] = {
    "file_list": _file_list,
    "file_read": _file_read,
    "file_write": _file_write,
    "shell_execute": _shell_execute,
    "web_request": _web_request,
}
