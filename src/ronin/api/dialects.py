"""
Stream dialect parsers.

A backend answers a streaming request with a sequence of framed records.
Two framings are supported:

- Prefix-framed (server-sent events): each record is a ``data: {...}`` line;
  other lines (event names, comments, keep-alives) carry nothing we need.
- Newline-delimited JSON: each line is one JSON object.

Parsers are fed raw byte chunks split at arbitrary offsets. They keep the
trailing incomplete line in a carry buffer and only ever decode complete
lines, so the emitted event sequence does not depend on where the chunk
boundaries fell. Records that fail to parse are dropped.

Each concrete parser maps its backend's record types onto the normalized
``StreamEvent`` variants. A parser instance handles exactly one stream.
"""

from __future__ import annotations

import abc as _abc
import json as _json
import logging as _logging
import typing as _typing
import uuid as _uuid

import ronin.api.base as base
import ronin.api.types as types

_logger = _logging.getLogger(__name__)

_DONE = object()
"""Sentinel for the ``data: [DONE]`` terminator of OpenAI-style streams."""


class StreamProtocolError(base.TransportError):
    """The backend reported an error inside the stream itself."""

    pass


class StreamDialectParser(_abc.ABC):
    """
    Base class for dialect parsers.

    Subclasses implement ``_decode_record`` (framing) and ``_map_payload``
    (record types). The base class owns the carry buffer and the set of
    open tool calls, and guarantees that every tool call is closed and
    exactly one ``turn_end`` is emitted per stream.
    """

    dialect: _typing.ClassVar[str] = ""

    def __init__(self) -> None:
        self._carry = b""
        self._open_calls: list[str] = []
        self._stop_reason: str | None = None
        self._turn_ended = False

    @property
    def turn_ended(self) -> bool:
        """Whether a turn_end event has been emitted."""
        return self._turn_ended

    def feed(self, chunk: bytes | str) -> list[types.StreamEvent]:
        """
        Consume one raw chunk and return the events it completes.

        Args:
            chunk: Raw bytes from the backend (str is encoded as UTF-8).

        Returns:
            Events for every record completed by this chunk, in order.
        """
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")

        *lines, self._carry = (self._carry + chunk).split(b"\n")

        events: list[types.StreamEvent] = []
        for raw in lines:
            events.extend(self._process_line(raw))
        return events

    def flush(self) -> list[types.StreamEvent]:
        """
        Process residual data at stream end.

        Decodes whatever is left in the carry buffer and, if the backend
        never signalled the end of the turn, closes open tool calls and
        emits the final ``turn_end``.
        """
        events: list[types.StreamEvent] = []
        if self._carry:
            raw, self._carry = self._carry, b""
            events.extend(self._process_line(raw))
        if not self._turn_ended:
            events.extend(self._end_turn(self._stop_reason))
        return events

    def _process_line(self, raw: bytes) -> list[types.StreamEvent]:
        if self._turn_ended:
            return []

        line = raw.decode("utf-8", errors="replace").rstrip("\r")
        if not line.strip():
            return []

        payload = self._decode_record(line)
        if payload is None:
            return []
        return self._map_payload(payload)

    @staticmethod
    def _loads(text: str) -> _typing.Any:
        """Parse a JSON object, returning None for anything malformed."""
        try:
            payload = _json.loads(text)
        except _json.JSONDecodeError:
            _logger.debug("Dropping malformed stream record: %.200s", text)
            return None
        if not isinstance(payload, dict):
            _logger.debug("Dropping non-object stream record: %.200s", text)
            return None
        return payload

    @_abc.abstractmethod
    def _decode_record(self, line: str) -> _typing.Any:
        """Strip framing from one complete line. None means skip the line."""
        ...

    @_abc.abstractmethod
    def _map_payload(self, payload: _typing.Any) -> list[types.StreamEvent]:
        """Translate one decoded record into normalized events."""
        ...

    # === Tool call bookkeeping ===

    @staticmethod
    def _next_call_id() -> str:
        # Unique across streams: one conversation spans many parsers
        return f"call_{_uuid.uuid4().hex[:12]}"

    def _open_call(self, call_id: str, tool_name: str) -> list[types.StreamEvent]:
        self._open_calls.append(call_id)
        return [types.StreamEvent.tool_call_start(call_id, tool_name)]

    def _close_call(self, call_id: str) -> list[types.StreamEvent]:
        if call_id not in self._open_calls:
            return []
        self._open_calls.remove(call_id)
        return [types.StreamEvent.tool_call_end(call_id)]

    def _fragment(self, call_id: str, arguments: _typing.Any) -> list[types.StreamEvent]:
        if call_id not in self._open_calls or arguments in (None, ""):
            return []
        if not isinstance(arguments, str):
            arguments = _json.dumps(arguments)
        return [types.StreamEvent.tool_call_delta(call_id, arguments)]

    def _end_turn(self, stop_reason: str | None) -> list[types.StreamEvent]:
        events = [types.StreamEvent.tool_call_end(c) for c in self._open_calls]
        self._open_calls.clear()
        self._turn_ended = True
        events.append(types.StreamEvent.turn_end(stop_reason))
        return events


class _ServerSentEventsParser(StreamDialectParser):
    """Framing for ``data: <json>`` records."""

    _PREFIX = "data:"

    def _decode_record(self, line: str) -> _typing.Any:
        if not line.startswith(self._PREFIX):
            return None
        return self._decode_data(line[len(self._PREFIX):].strip())

    def _decode_data(self, data: str) -> _typing.Any:
        return self._loads(data)


class _NewlineDelimitedJSONParser(StreamDialectParser):
    """Framing for one JSON object per line."""

    def _decode_record(self, line: str) -> _typing.Any:
        return self._loads(line)


class AnthropicSSEParser(_ServerSentEventsParser):
    """
    Anthropic Messages API stream.

    Tool calls are content blocks addressed by ``index``; their input
    arrives as ``input_json_delta`` fragments between
    ``content_block_start`` and ``content_block_stop``.
    """

    dialect = "anthropic-sse"

    def __init__(self) -> None:
        super().__init__()
        self._index_to_call: dict[int, str] = {}

    def _map_payload(self, payload: dict[str, _typing.Any]) -> list[types.StreamEvent]:
        record_type = payload.get("type")
        index = payload.get("index", 0)

        if record_type == "content_block_start":
            block = payload.get("content_block") or {}
            if block.get("type") == "tool_use":
                call_id = block.get("id") or self._next_call_id()
                self._index_to_call[index] = call_id
                events = self._open_call(call_id, block.get("name") or "")
                # Normally an empty dict; some proxies send the whole input here
                if block.get("input"):
                    events.extend(self._fragment(call_id, block["input"]))
                return events
            if block.get("type") == "text" and block.get("text"):
                return [types.StreamEvent.text_delta(block["text"])]
            return []

        if record_type == "content_block_delta":
            delta = payload.get("delta") or {}
            if delta.get("type") == "text_delta" and delta.get("text"):
                return [types.StreamEvent.text_delta(delta["text"])]
            if delta.get("type") == "input_json_delta":
                call_id = self._index_to_call.get(index)
                if call_id is None:
                    return []
                return self._fragment(call_id, delta.get("partial_json"))
            return []

        if record_type == "content_block_stop":
            call_id = self._index_to_call.pop(index, None)
            return self._close_call(call_id) if call_id else []

        if record_type == "message_delta":
            stop_reason = (payload.get("delta") or {}).get("stop_reason")
            if stop_reason:
                self._stop_reason = stop_reason
            return []

        if record_type == "message_stop":
            return self._end_turn(self._stop_reason)

        if record_type == "error":
            error = payload.get("error") or {}
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise StreamProtocolError(f"Backend stream error: {message or 'unknown error'}")

        # message_start, ping, and anything newer
        return []


class OpenAISSEParser(_ServerSentEventsParser):
    """
    OpenAI-compatible chat-completions stream.

    Tool calls arrive as ``delta.tool_calls`` entries keyed by ``index``;
    the first entry for an index carries the id and function name, later
    ones carry argument fragments. The stream ends with ``data: [DONE]``.
    """

    dialect = "openai-sse"

    def __init__(self) -> None:
        super().__init__()
        self._index_to_call: dict[int, str] = {}

    def _decode_data(self, data: str) -> _typing.Any:
        if data == "[DONE]":
            return _DONE
        return self._loads(data)

    def _map_payload(self, payload: _typing.Any) -> list[types.StreamEvent]:
        if payload is _DONE:
            return self._end_turn(self._stop_reason)

        if payload.get("error"):
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise StreamProtocolError(f"Backend stream error: {message}")

        events: list[types.StreamEvent] = []
        for choice in payload.get("choices") or []:
            delta = choice.get("delta") or {}

            if delta.get("content"):
                events.append(types.StreamEvent.text_delta(delta["content"]))

            for tool_call in delta.get("tool_calls") or []:
                index = tool_call.get("index", 0)
                function = tool_call.get("function") or {}
                if index not in self._index_to_call:
                    call_id = tool_call.get("id") or self._next_call_id()
                    self._index_to_call[index] = call_id
                    events.extend(self._open_call(call_id, function.get("name") or ""))
                events.extend(
                    self._fragment(self._index_to_call[index], function.get("arguments"))
                )

            if choice.get("finish_reason"):
                self._stop_reason = choice["finish_reason"]
                for call_id in list(self._open_calls):
                    events.extend(self._close_call(call_id))

        return events


class OllamaNDJSONParser(_NewlineDelimitedJSONParser):
    """
    Ollama ``/api/chat`` stream.

    Each line is a partial message. Tool calls arrive whole, with
    ``arguments`` already decoded, so each one becomes a start, a single
    delta, and an end. Ollama does not assign call ids, so each call gets a
    random one.
    """

    dialect = "ollama-ndjson"

    def _map_payload(self, payload: dict[str, _typing.Any]) -> list[types.StreamEvent]:
        if payload.get("error"):
            raise StreamProtocolError(f"Backend stream error: {payload['error']}")

        events: list[types.StreamEvent] = []
        message = payload.get("message") or {}

        if message.get("content"):
            events.append(types.StreamEvent.text_delta(message["content"]))

        for tool_call in message.get("tool_calls") or []:
            function = tool_call.get("function") or {}
            call_id = tool_call.get("id") or self._next_call_id()
            events.extend(self._open_call(call_id, function.get("name") or ""))
            events.extend(self._fragment(call_id, function.get("arguments", {})))
            events.extend(self._close_call(call_id))

        if payload.get("done"):
            events.extend(self._end_turn(payload.get("done_reason")))

        return events


DIALECTS: dict[str, type[StreamDialectParser]] = {
    AnthropicSSEParser.dialect: AnthropicSSEParser,
    OpenAISSEParser.dialect: OpenAISSEParser,
    OllamaNDJSONParser.dialect: OllamaNDJSONParser,
}


def create_parser(dialect: str) -> StreamDialectParser:
    """
    Create a fresh parser for one stream.

    Raises:
        ValueError: If the dialect is unknown.
    """
    parser_cls = DIALECTS.get(dialect)
    if parser_cls is None:
        available = ", ".join(sorted(DIALECTS))
        raise ValueError(f"Unknown stream dialect '{dialect}'. Available: {available}")
    return parser_cls()
