"""
Base classes for the tool system.

Tools are the primary way the model interacts with the outside world.
Each tool has a name, description, input schema, and execute method.
"""

from __future__ import annotations

import abc as _abc
import dataclasses as _dataclasses
import json as _json
import typing as _typing

import ronin.constants as _constants

# JSON schema type name -> accepted Python types
_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list,),
    "null": (type(None),),
}


@_dataclasses.dataclass
class ToolResult:
    """
    Result of executing a tool.

    Successful results carry structured ``data``; failures carry a
    human-readable ``message``. Every host variant produces this shape.
    """

    is_error: bool = False
    data: _typing.Any = None
    message: str | None = None

    @classmethod
    def ok(cls, data: _typing.Any) -> ToolResult:
        return cls(is_error=False, data=data)

    @classmethod
    def error(cls, message: str, data: _typing.Any = None) -> ToolResult:
        return cls(is_error=True, data=data, message=message)

    def to_content(self, max_chars: int = _constants.DEFAULT_TOOL_RESULT_MAX_CHARS) -> str:
        """
        Render the text sent back to the model.

        Strings pass through unchanged, anything else is pretty-printed
        JSON. Output longer than ``max_chars`` is truncated with a marker.
        """
        if self.is_error:
            text = f"Error: {self.message or 'unknown error'}"
            if self.data is not None:
                text += "\n" + _render(self.data)
        else:
            text = _render(self.data)

        if len(text) > max_chars:
            omitted = len(text) - max_chars
            text = text[:max_chars] + f"\n... [truncated {omitted} characters]"
        return text

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        return {"is_error": self.is_error, "data": self.data, "message": self.message}


def _render(data: _typing.Any) -> str:
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return _json.dumps(data, indent=2, default=str)


class Tool(_abc.ABC):
    """
    Abstract base class for in-process tools.

    Subclasses must implement:
    - name (property): The tool's identifier (used in API calls)
    - description (property): Human-readable description for the model
    - input_schema (property): JSON schema for input validation
    - execute(): The actual tool implementation
    """

    @property
    @_abc.abstractmethod
    def name(self) -> str:
        """Tool name (e.g., 'file_read', 'shell_execute')."""
        ...

    @property
    @_abc.abstractmethod
    def description(self) -> str:
        """Human-readable description for the model."""
        ...

    @property
    @_abc.abstractmethod
    def input_schema(self) -> dict[str, _typing.Any]:
        """
        JSON schema for tool input.

        This schema is sent to the model to describe what parameters
        the tool accepts, and checked by validate_input() before execution.
        """
        ...

    @_abc.abstractmethod
    async def execute(self, input: dict[str, _typing.Any]) -> ToolResult:
        """
        Execute the tool with already-validated input.

        Operational failures (missing file, non-zero exit, network error)
        are returned as error results rather than raised.
        """
        ...

    def validate_input(self, input: dict[str, _typing.Any]) -> str | None:
        """
        Check input against the declared schema.

        Covers the subset of JSON schema the built-in tools use: required
        keys, property types, and enums.

        Returns:
            An error message, or None if the input is acceptable
        """
        if not isinstance(input, dict):
            return "Input must be a JSON object"

        schema = self.input_schema
        for key in schema.get("required", []):
            if key not in input:
                return f"Missing required parameter '{key}'"

        properties: dict[str, dict[str, _typing.Any]] = schema.get("properties", {})
        for key, value in input.items():
            prop_schema = properties.get(key)
            if prop_schema is None:
                continue

            expected = prop_schema.get("type")
            if expected is not None and not _matches_type(value, expected):
                return f"Parameter '{key}' must be of type {expected}"

            allowed = prop_schema.get("enum")
            if allowed is not None and value not in allowed:
                choices = ", ".join(str(a) for a in allowed)
                return f"Parameter '{key}' must be one of: {choices}"

        return None

    def __repr__(self) -> str:
        return f"<Tool {self.name}>"


def _matches_type(value: _typing.Any, expected: str | list[str]) -> bool:
    names = [expected] if isinstance(expected, str) else expected
    for name in names:
        accepted = _JSON_TYPES.get(name)
        if accepted is None:
            # Unknown type keyword, don't second-guess the schema
            return True
        # bool is an int subclass but not a JSON number
        if isinstance(value, bool) and name in ("integer", "number"):
            continue
        if isinstance(value, accepted):
            return True
    return False
