"""
Tool call orchestration: the conversation loop.

One user turn may take several rounds. Each round streams a response from
the provider, reassembles tool calls from the parser's events, runs them
one at a time behind the approval gate, and feeds the results back. The
loop ends with the first round in which the model calls no tools.

Callers drive the loop with ``async for output in orchestrator.run_turn(...)``
and render the outputs however they like.
"""

from __future__ import annotations

import asyncio as _asyncio
import dataclasses as _dataclasses
import json as _json
import logging as _logging
import typing as _typing

import ronin.api.base as api_base
import ronin.api.types as api_types
import ronin.constants as _constants
import ronin.core.approval as approval
import ronin.core.conversation as conversation_module
import ronin.core.formatting as formatting
import ronin.hosts.base as hosts_base
import ronin.hosts.manager as hosts_manager
import ronin.permissions.store as permissions_store
import ronin.tools.base as tools_base

_logger = _logging.getLogger(__name__)

TurnOutputKind = _typing.Literal["text", "tool_call", "tool_result", "round_end", "notice"]


@_dataclasses.dataclass
class PendingToolCall:
    """A tool call whose arguments are still arriving."""

    call_id: str
    tool_name: str
    arg_text: str = ""

    def append(self, fragment: str) -> None:
        self.arg_text += fragment

    def parse(self) -> dict[str, _typing.Any]:
        """
        Parse the accumulated argument text.

        Empty text means no arguments.

        Raises:
            ValueError: If the text is not a JSON object
        """
        if not self.arg_text.strip():
            return {}
        value = _json.loads(self.arg_text)
        if not isinstance(value, dict):
            raise ValueError(f"expected a JSON object, got {type(value).__name__}")
        return value


@_dataclasses.dataclass
class _FinalizedCall:
    call_id: str
    tool_name: str
    tool_input: dict[str, _typing.Any]
    parse_error: str | None = None


@_dataclasses.dataclass
class _RoundState:
    """What one streamed response has produced so far."""

    text_parts: list[str] = _dataclasses.field(default_factory=list)
    pending: dict[str, PendingToolCall] = _dataclasses.field(default_factory=dict)
    calls: list[_FinalizedCall] = _dataclasses.field(default_factory=list)
    stop_reason: str | None = None

    @property
    def text(self) -> str:
        return "".join(self.text_parts)

    def apply(self, event: api_types.StreamEvent) -> None:
        if event.type == "text_delta":
            self.text_parts.append(event.text or "")
        elif event.type == "tool_call_start":
            call_id = event.call_id or ""
            self.pending[call_id] = PendingToolCall(call_id, event.tool_name or "")
        elif event.type == "tool_call_delta":
            call = self.pending.get(event.call_id or "")
            if call is None:
                _logger.debug("Fragment for unknown call %s dropped", event.call_id)
                return
            call.append(event.fragment or "")
        elif event.type == "tool_call_end":
            call = self.pending.pop(event.call_id or "", None)
            if call is not None:
                self.calls.append(_finalize(call))
        elif event.type == "turn_end":
            self.stop_reason = event.stop_reason


def _finalize(call: PendingToolCall) -> _FinalizedCall:
    try:
        tool_input = call.parse()
    except ValueError as e:
        _logger.warning("Could not parse arguments of %s (%s): %s",
                        call.tool_name, call.call_id, e)
        return _FinalizedCall(call.call_id, call.tool_name, {}, parse_error=str(e))
    return _FinalizedCall(call.call_id, call.tool_name, tool_input)


@_dataclasses.dataclass(frozen=True)
class TurnOutput:
    """
    One item produced while running a turn.

    ``text`` carries a streamed text fragment; ``tool_call`` announces a
    call about to be checked and run; ``tool_result`` carries its result
    and a one-line summary; ``round_end`` closes each provider round;
    ``notice`` reports something the caller should show the user.
    """

    kind: TurnOutputKind
    text: str | None = None
    call_id: str | None = None
    tool_name: str | None = None
    tool_input: dict[str, _typing.Any] | None = None
    result: tools_base.ToolResult | None = None
    summary: str | None = None
    round_index: int | None = None
    stop_reason: str | None = None


class ToolCallOrchestrator:
    """Runs user turns against a provider and a set of tool hosts."""

    def __init__(
        self,
        provider: api_base.LLMProvider,
        hosts: hosts_manager.ToolHostManager,
        permissions: permissions_store.PermissionStore,
        approver: approval.ApprovalCollaborator,
        *,
        max_tool_rounds: int = _constants.DEFAULT_MAX_TOOL_ROUNDS,
        auto_approve: bool = False,
        validate_turns: bool = False,
        system: str | None = None,
        max_tokens: int = _constants.DEFAULT_MAX_TOKENS,
    ) -> None:
        """
        Args:
            provider: Backend that streams model responses
            hosts: Manager that owns the tools
            permissions: Remembered approvals
            approver: Asked about calls without a remembered approval
            max_tool_rounds: Stop after this many rounds with tool calls
            auto_approve: Run every call without asking
            validate_turns: Check the conversation invariant before each request
            system: System prompt sent with every request
            max_tokens: Response token limit per request
        """
        if max_tool_rounds < 1:
            raise ValueError("max_tool_rounds must be at least 1")
        self._provider = provider
        self._hosts = hosts
        self._permissions = permissions
        self._approver = approver
        self._max_tool_rounds = max_tool_rounds
        self._auto_approve = auto_approve
        self._validate_turns = validate_turns
        self._system = system
        self._max_tokens = max_tokens

    @property
    def provider(self) -> api_base.LLMProvider:
        return self._provider

    async def run_turn(
        self,
        conversation: conversation_module.Conversation,
        user_message: str | None = None,
        *,
        tools: list[api_types.Tool] | None = None,
    ) -> _typing.AsyncIterator[TurnOutput]:
        """
        Run one user turn to completion.

        Args:
            conversation: Conversation to extend in place
            user_message: Appended as a user turn first, if given
            tools: Tool schemas to offer (default: every routed tool)

        Yields:
            TurnOutput items in the order things happen

        Raises:
            TransportError: If the provider fails; the round is abandoned
            ConversationInvariantError: If validation is on and the turns are malformed
        """
        if user_message is not None:
            conversation.add_user_text(user_message)

        for round_index in range(1, self._max_tool_rounds + 1):
            if self._validate_turns:
                conversation.validate()

            schemas = tools if tools is not None else self._hosts.api_tools()
            state = _RoundState()
            async for event in self._stream_events(conversation, schemas):
                state.apply(event)
                if event.type == "text_delta" and event.text:
                    yield TurnOutput(kind="text", text=event.text)

            if not state.calls:
                conversation.add_assistant_text(state.text)
                yield TurnOutput(kind="round_end", round_index=round_index,
                                 stop_reason=state.stop_reason)
                return

            assistant_blocks: list[api_types.ContentBlock] = []
            if state.text:
                assistant_blocks.append(api_types.ContentBlock.text_block(state.text))
            result_blocks: list[api_types.ContentBlock] = []

            for call in state.calls:
                assistant_blocks.append(
                    api_types.ContentBlock.tool_use(call.call_id, call.tool_name, call.tool_input)
                )
                yield TurnOutput(kind="tool_call", call_id=call.call_id,
                                 tool_name=call.tool_name, tool_input=call.tool_input)

                result = await self._run_call(call)
                result_blocks.append(api_types.ContentBlock.tool_result(
                    call.call_id, result.to_content(), is_error=result.is_error
                ))
                yield TurnOutput(
                    kind="tool_result",
                    call_id=call.call_id,
                    tool_name=call.tool_name,
                    tool_input=call.tool_input,
                    result=result,
                    summary=formatting.summarize_result(call.tool_name, call.tool_input, result),
                )

            conversation.add_tool_exchange(assistant_blocks, result_blocks)
            yield TurnOutput(kind="round_end", round_index=round_index,
                             stop_reason=state.stop_reason)

        _logger.warning("Stopped after %d tool rounds", self._max_tool_rounds)
        yield TurnOutput(
            kind="notice",
            text=f"Stopped after {self._max_tool_rounds} rounds of tool calls",
        )

    async def _stream_events(
        self,
        conversation: conversation_module.Conversation,
        schemas: list[api_types.Tool],
    ) -> _typing.AsyncIterator[api_types.StreamEvent]:
        """Stream one provider response through a fresh parser."""
        parser = self._provider.create_parser()
        chunks = self._provider.stream(
            conversation.turns,
            system=self._system,
            tools=schemas or None,
            max_tokens=self._max_tokens,
        )
        async for chunk in chunks:
            for event in parser.feed(chunk):
                yield event
        for event in parser.flush():
            yield event

    # === Execution ===

    async def _run_call(self, call: _FinalizedCall) -> tools_base.ToolResult:
        if call.parse_error is not None:
            return tools_base.ToolResult.error(
                f"Invalid arguments for {call.tool_name}: {call.parse_error}"
            )

        if not await self._is_allowed(call):
            _logger.info("Call to %s declined", call.tool_name)
            return tools_base.ToolResult.error(
                f"Permission denied: the user declined to run {call.tool_name}"
            )

        try:
            return await self._hosts.execute_tool(call.tool_name, call.tool_input)
        except hosts_base.ToolNotFoundError as e:
            _logger.warning("Model called unknown tool %s", call.tool_name)
            return tools_base.ToolResult.error(str(e))
        except hosts_base.HostError as e:
            return tools_base.ToolResult.error(f"{call.tool_name} failed: {e}")
        except _asyncio.CancelledError:
            stopped = await self._hosts.interrupt()
            if stopped:
                _logger.info("Interrupted hosts: %s", ", ".join(stopped))
            raise

    async def _is_allowed(self, call: _FinalizedCall) -> bool:
        if self._auto_approve:
            return True
        if self._permissions.is_approved(call.tool_name, call.tool_input):
            return True

        descriptor = self._hosts.get_tool(call.tool_name)
        decision = await self._approver.ask_approval(approval.ApprovalRequest(
            call_id=call.call_id,
            tool_name=call.tool_name,
            tool_input=call.tool_input,
            host_id=descriptor.host_id if descriptor else None,
            permission_key=self._permissions.generate_key(call.tool_name, call.tool_input),
        ))
        if decision.approved and decision.remember:
            self._permissions.approve(call.tool_name, call.tool_input, remember=True)
        return decision.approved
