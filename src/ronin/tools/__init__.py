"""
In-process tools served by the built-in host.

Tools are the primary way the model interacts with the outside world.
"""

from ronin.tools.base import Tool, ToolResult
from ronin.tools.file import FileListTool, FileReadTool, FileWriteTool
from ronin.tools.registry import BUILTIN_TOOL_NAMES, ToolRegistry, create_builtin_registry
from ronin.tools.shell import ShellExecuteTool
from ronin.tools.web import WebRequestTool

__all__ = [
    "BUILTIN_TOOL_NAMES",
    "FileListTool",
    "FileReadTool",
    "FileWriteTool",
    "ShellExecuteTool",
    "Tool",
    "ToolRegistry",
    "ToolResult",
    "WebRequestTool",
    "create_builtin_registry",
]
