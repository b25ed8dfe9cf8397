"""
File operation tools: file_read, file_write, file_list.

Relative paths resolve against the tool's base directory. Every
operational failure is returned as an error result naming the path.
"""

from __future__ import annotations

import pathlib as _pathlib
import typing as _typing

import ronin.tools.base as base


class _PathTool(base.Tool):
    """Shared base-directory handling for the file tools."""

    def __init__(self, base_dir: _pathlib.Path | None = None) -> None:
        """
        Args:
            base_dir: Base directory for relative paths (default: cwd at call time)
        """
        self._base_dir = base_dir

    def _resolve(self, path: str) -> _pathlib.Path:
        candidate = _pathlib.Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = (self._base_dir or _pathlib.Path.cwd()) / candidate
        return candidate.resolve()


class FileReadTool(_PathTool):
    """Read a UTF-8 text file."""

    @property
    def name(self) -> str:
        return "file_read"

    @property
    def description(self) -> str:
        return "Read the contents of a text file."

    @property
    def input_schema(self) -> dict[str, _typing.Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file to read (relative or absolute)",
                },
            },
            "required": ["path"],
        }

    async def execute(self, input: dict[str, _typing.Any]) -> base.ToolResult:
        """Read a file and return its contents."""
        file_path = input["path"]
        path = self._resolve(file_path)

        try:
            if not path.exists():
                return base.ToolResult.error(f"File not found: {file_path}")
            if not path.is_file():
                return base.ToolResult.error(f"Not a file: {file_path}")
            content = path.read_text(encoding="utf-8")
        except PermissionError:
            return base.ToolResult.error(f"Permission denied: {file_path}")
        except UnicodeDecodeError:
            return base.ToolResult.error(f"File is not valid UTF-8: {file_path}")
        except OSError as e:
            return base.ToolResult.error(f"Failed to read file: {e}")

        return base.ToolResult.ok({"path": str(path), "content": content})


class FileWriteTool(_PathTool):
    """
    Write or create files.

    Creates parent directories as needed. Overwrites existing files.
    """

    @property
    def name(self) -> str:
        return "file_write"

    @property
    def description(self) -> str:
        return (
            "Write content to a file. Creates the file if it doesn't exist. "
            "Creates parent directories as needed. Overwrites existing content."
        )

    @property
    def input_schema(self) -> dict[str, _typing.Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file to write (relative or absolute)",
                },
                "content": {
                    "type": "string",
                    "description": "Content to write to the file",
                },
            },
            "required": ["path", "content"],
        }

    async def execute(self, input: dict[str, _typing.Any]) -> base.ToolResult:
        """Write content to a file."""
        file_path = input["path"]
        content: str = input["content"]
        path = self._resolve(file_path)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except PermissionError:
            return base.ToolResult.error(f"Permission denied: {file_path}")
        except IsADirectoryError:
            return base.ToolResult.error(f"Path is a directory: {file_path}")
        except OSError as e:
            return base.ToolResult.error(f"Failed to write file: {e}")

        return base.ToolResult.ok({
            "path": str(path),
            "bytes_written": len(content.encode("utf-8")),
        })


class FileListTool(_PathTool):
    """List the entries of a directory, sorted by name."""

    @property
    def name(self) -> str:
        return "file_list"

    @property
    def description(self) -> str:
        return "List files and subdirectories in a directory."

    @property
    def input_schema(self) -> dict[str, _typing.Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the directory",
                },
            },
            "required": ["path"],
        }

    async def execute(self, input: dict[str, _typing.Any]) -> base.ToolResult:
        dir_path = input["path"]
        path = self._resolve(dir_path)

        try:
            if not path.exists():
                return base.ToolResult.error(f"Directory not found: {dir_path}")
            if not path.is_dir():
                return base.ToolResult.error(f"Not a directory: {dir_path}")
            entries = sorted(path.iterdir(), key=lambda p: p.name)
            files = [
                {
                    "name": entry.name,
                    "type": "directory" if entry.is_dir() else "file",
                    "path": str(entry),
                }
                for entry in entries
            ]
        except PermissionError:
            return base.ToolResult.error(f"Permission denied: {dir_path}")
        except OSError as e:
            return base.ToolResult.error(f"Failed to list directory: {e}")

        return base.ToolResult.ok({"path": str(path), "files": files, "count": len(files)})
