"""Tests for the tool call orchestrator (the conversation loop)."""

import asyncio as _asyncio
import json as _json
import pathlib as _pathlib
import typing as _typing

import pytest as _pytest

import ronin.api.base as api_base
import ronin.api.types as api_types
import ronin.core.approval as approval
import ronin.core.conversation as conversation
import ronin.core.orchestrator as orchestrator
import ronin.hosts.base as hosts_base
import ronin.hosts.config as host_config
import ronin.hosts.manager as hosts_manager
import ronin.tools.base as tools_base


class RecordingApprover(approval.ApprovalCollaborator):
    """Returns a fixed decision and records every request."""

    def __init__(self, decision: approval.ApprovalDecision) -> None:
        self.decision = decision
        self.requests: list[approval.ApprovalRequest] = []

    async def ask_approval(self, request: approval.ApprovalRequest) -> approval.ApprovalDecision:
        self.requests.append(request)
        return self.decision


async def _collect(
    engine: orchestrator.ToolCallOrchestrator,
    conv: conversation.Conversation,
    message: str | None,
) -> list[orchestrator.TurnOutput]:
    return [output async for output in engine.run_turn(conv, message)]


def _engine(
    provider: api_base.LLMProvider,
    manager: hosts_manager.ToolHostManager,
    store: _typing.Any,
    approver: approval.ApprovalCollaborator,
    **kwargs: _typing.Any,
) -> orchestrator.ToolCallOrchestrator:
    return orchestrator.ToolCallOrchestrator(provider, manager, store, approver, **kwargs)


class TestPendingToolCall:
    def test_fragments_are_concatenated(self) -> None:
        call = orchestrator.PendingToolCall("c1", "file_read")
        for fragment in ['{"pa', 'th": "a', '.txt"}']:
            call.append(fragment)
        assert call.parse() == {"path": "a.txt"}

    def test_empty_arguments_mean_no_input(self) -> None:
        assert orchestrator.PendingToolCall("c1", "t").parse() == {}

    def test_non_object_is_rejected(self) -> None:
        call = orchestrator.PendingToolCall("c1", "t", "[1, 2]")
        with _pytest.raises(ValueError, match="JSON object"):
            call.parse()

    def test_truncated_json_is_rejected(self) -> None:
        call = orchestrator.PendingToolCall("c1", "t", '{"path": ')
        with _pytest.raises(ValueError):
            call.parse()


class TestTextOnlyTurn:
    @_pytest.mark.asyncio
    async def test_single_round_without_tools(
        self, scripted_provider, anthropic_stream, builtin_manager, permission_store
    ) -> None:
        provider = scripted_provider([anthropic_stream.text("Hello there")])
        engine = _engine(provider, builtin_manager, permission_store, approval.AutoDenyApprover())
        conv = conversation.Conversation()

        outputs = await _collect(engine, conv, "hi")

        assert [o.kind for o in outputs] == ["text", "round_end"]
        assert outputs[0].text == "Hello there"
        assert outputs[1].stop_reason == "end_turn"
        assert [t.role for t in conv] == ["user", "assistant"]
        assert conv.last_text() == "Hello there"
        assert len(provider.requests) == 1

    @_pytest.mark.asyncio
    async def test_system_prompt_and_tools_are_sent(
        self, scripted_provider, anthropic_stream, builtin_manager, permission_store
    ) -> None:
        await builtin_manager.initialize()
        provider = scripted_provider([anthropic_stream.text("ok")])
        engine = _engine(provider, builtin_manager, permission_store,
                         approval.AutoDenyApprover(), system="Be brief")

        await _collect(engine, conversation.Conversation(), "hi")

        request = provider.requests[0]
        assert request["system"] == "Be brief"
        assert request["tools"] == [
            "file_read", "file_write", "file_list", "shell_execute", "web_request",
        ]


class TestToolRound:
    @_pytest.mark.asyncio
    async def test_file_list_end_to_end(
        self, scripted_provider, anthropic_stream, builtin_manager, permission_store
    ) -> None:
        await builtin_manager.initialize()
        provider = scripted_provider([
            anthropic_stream.tool_calls(
                [("toolu_1", "file_list", ['{"pa', 'th": ', '"."}'])],
                text="Let me look.",
            ),
            anthropic_stream.text("There are two files and a directory."),
        ])
        approver = RecordingApprover(approval.ApprovalDecision.allow())
        engine = _engine(provider, builtin_manager, permission_store, approver)
        conv = conversation.Conversation()

        outputs = await _collect(engine, conv, "What files are here?")

        kinds = [o.kind for o in outputs]
        assert kinds == [
            "text", "tool_call", "tool_result", "round_end", "text", "round_end",
        ]
        call = outputs[1]
        assert call.tool_name == "file_list"
        assert call.tool_input == {"path": "."}

        result = outputs[2].result
        assert result is not None and not result.is_error
        names = [entry["name"] for entry in result.data["files"]]
        assert names == ["a.txt", "b.txt", "sub"]
        assert outputs[2].summary.endswith("(3 items: 1 dirs, 2 files)")

        turns = conv.turns
        assert [t.role for t in turns] == ["user", "assistant", "user", "assistant"]
        assert turns[1].text == "Let me look."
        assert [b.id for b in turns[1].tool_uses()] == ["toolu_1"]
        tool_result = turns[2].tool_results()[0]
        assert tool_result.tool_use_id == "toolu_1"
        assert not tool_result.is_error
        assert "a.txt" in tool_result.content
        assert turns[3].text == "There are two files and a directory."
        conversation.validate_turns(turns)

        # The second request carries the tool result back to the model
        second = provider.requests[1]["turns"]
        assert second[2]["content"][0]["type"] == "tool_result"
        assert len(approver.requests) == 1
        assert approver.requests[0].host_id == "builtin"

    @_pytest.mark.asyncio
    async def test_calls_run_in_discovery_order(
        self, scripted_provider, anthropic_stream, builtin_manager, permission_store, workspace
    ) -> None:
        await builtin_manager.initialize()
        provider = scripted_provider([
            anthropic_stream.tool_calls([
                ("c1", "file_write", ['{"path": "order.txt", "content": "first"}']),
                ("c2", "file_read", ['{"path": "order.txt"}']),
            ]),
            anthropic_stream.text("done"),
        ])
        engine = _engine(provider, builtin_manager, permission_store,
                         approval.AutoApproveApprover())
        conv = conversation.Conversation()

        outputs = await _collect(engine, conv, "write then read")

        results = [o for o in outputs if o.kind == "tool_result"]
        assert [o.call_id for o in results] == ["c1", "c2"]
        assert results[1].result.data["content"] == "first"
        assert [b.tool_use_id for b in conv.turns[2].tool_results()] == ["c1", "c2"]

    @_pytest.mark.asyncio
    async def test_unparseable_arguments_become_error_result(
        self, scripted_provider, anthropic_stream, builtin_manager, permission_store, workspace
    ) -> None:
        await builtin_manager.initialize()
        provider = scripted_provider([
            anthropic_stream.tool_calls([("c1", "file_write", ['{"path": "x.txt", '])]),
            anthropic_stream.text("sorry"),
        ])
        approver = RecordingApprover(approval.ApprovalDecision.allow())
        engine = _engine(provider, builtin_manager, permission_store, approver)
        conv = conversation.Conversation()

        outputs = await _collect(engine, conv, "write")

        result = next(o for o in outputs if o.kind == "tool_result").result
        assert result.is_error
        assert "Invalid arguments for file_write" in result.message
        assert approver.requests == []
        assert not (workspace / "x.txt").exists()
        block = conv.turns[2].tool_results()[0]
        assert block.is_error
        assert conv.turns[1].tool_uses()[0].input == {}

    @_pytest.mark.asyncio
    async def test_unknown_tool_becomes_error_result(
        self, scripted_provider, anthropic_stream, builtin_manager, permission_store
    ) -> None:
        await builtin_manager.initialize()
        provider = scripted_provider([
            anthropic_stream.tool_calls([("c1", "no_such_tool", ["{}"])]),
            anthropic_stream.text("ok"),
        ])
        engine = _engine(provider, builtin_manager, permission_store,
                         approval.AutoApproveApprover())

        outputs = await _collect(engine, conversation.Conversation(), "go")

        result = next(o for o in outputs if o.kind == "tool_result").result
        assert result.is_error
        assert result.message == "Tool 'no_such_tool' not found"


class TestApprovalGate:
    @_pytest.mark.asyncio
    async def test_declined_call_is_not_executed(
        self, scripted_provider, anthropic_stream, builtin_manager, permission_store, workspace
    ) -> None:
        await builtin_manager.initialize()
        provider = scripted_provider([
            anthropic_stream.tool_calls(
                [("c1", "file_write", ['{"path": "new.txt", "content": "x"}'])]
            ),
            anthropic_stream.text("understood"),
        ])
        engine = _engine(provider, builtin_manager, permission_store, approval.AutoDenyApprover())
        conv = conversation.Conversation()

        outputs = await _collect(engine, conv, "write")

        result = next(o for o in outputs if o.kind == "tool_result").result
        assert result.is_error
        assert "Permission denied" in result.message
        assert not (workspace / "new.txt").exists()
        conversation.validate_turns(conv.turns)

    @_pytest.mark.asyncio
    async def test_remembered_approval_skips_the_prompt(
        self, scripted_provider, anthropic_stream, builtin_manager, permission_store
    ) -> None:
        await builtin_manager.initialize()
        call = [("c1", "file_read", ['{"path": "a.txt"}'])]
        provider = scripted_provider([
            anthropic_stream.tool_calls(call),
            anthropic_stream.text("first"),
            anthropic_stream.tool_calls([("c2", "file_read", ['{"path": "a.txt"}'])]),
            anthropic_stream.text("second"),
        ])
        approver = RecordingApprover(approval.ApprovalDecision.allow(remember=True))
        engine = _engine(provider, builtin_manager, permission_store, approver)
        conv = conversation.Conversation()

        await _collect(engine, conv, "read it")
        await _collect(engine, conv, "read it again")

        assert len(approver.requests) == 1
        assert approver.requests[0].permission_key.startswith("file_read:")
        assert permission_store.is_approved("file_read", {"path": "a.txt"})

    @_pytest.mark.asyncio
    async def test_stored_approval_is_honored(
        self, scripted_provider, anthropic_stream, builtin_manager, permission_store
    ) -> None:
        await builtin_manager.initialize()
        permission_store.approve("file_read", {"path": "a.txt"}, remember=True)
        provider = scripted_provider([
            anthropic_stream.tool_calls([("c1", "file_read", ['{"path": "a.txt"}'])]),
            anthropic_stream.text("ok"),
        ])
        approver = RecordingApprover(approval.ApprovalDecision.deny())
        engine = _engine(provider, builtin_manager, permission_store, approver)

        outputs = await _collect(engine, conversation.Conversation(), "read")

        result = next(o for o in outputs if o.kind == "tool_result").result
        assert not result.is_error
        assert approver.requests == []

    @_pytest.mark.asyncio
    async def test_auto_approve_skips_gate(
        self, scripted_provider, anthropic_stream, builtin_manager, permission_store
    ) -> None:
        await builtin_manager.initialize()
        provider = scripted_provider([
            anthropic_stream.tool_calls([("c1", "file_read", ['{"path": "b.txt"}'])]),
            anthropic_stream.text("ok"),
        ])
        approver = RecordingApprover(approval.ApprovalDecision.deny())
        engine = _engine(provider, builtin_manager, permission_store, approver,
                         auto_approve=True)

        outputs = await _collect(engine, conversation.Conversation(), "read")

        result = next(o for o in outputs if o.kind == "tool_result").result
        assert result.data["content"] == "beta\n"
        assert approver.requests == []


class TestFailures:
    @_pytest.mark.asyncio
    async def test_transport_error_propagates(
        self, scripted_provider, builtin_manager, permission_store
    ) -> None:
        provider = scripted_provider([api_base.TransportError("connection refused")])
        engine = _engine(provider, builtin_manager, permission_store, approval.AutoDenyApprover())
        conv = conversation.Conversation()

        with _pytest.raises(api_base.TransportError, match="connection refused"):
            await _collect(engine, conv, "hi")

        assert [t.role for t in conv] == ["user"]

    @_pytest.mark.asyncio
    async def test_stream_error_record_propagates(
        self, scripted_provider, builtin_manager, permission_store
    ) -> None:
        body = (
            b'event: error\ndata: {"type": "error", '
            b'"error": {"type": "overloaded_error", "message": "Overloaded"}}\n\n'
        )
        provider = scripted_provider([body])
        engine = _engine(provider, builtin_manager, permission_store, approval.AutoDenyApprover())

        with _pytest.raises(api_base.TransportError, match="Overloaded"):
            await _collect(engine, conversation.Conversation(), "hi")

    @_pytest.mark.asyncio
    async def test_max_tool_rounds_stops_the_loop(
        self, scripted_provider, anthropic_stream, builtin_manager, permission_store
    ) -> None:
        await builtin_manager.initialize()
        provider = scripted_provider([
            anthropic_stream.tool_calls([("c1", "file_list", ['{"path": "."}'])]),
            anthropic_stream.tool_calls([("c2", "file_list", ['{"path": "sub"}'])]),
        ])
        engine = _engine(provider, builtin_manager, permission_store,
                         approval.AutoApproveApprover(), max_tool_rounds=2)
        conv = conversation.Conversation()

        outputs = await _collect(engine, conv, "loop")

        assert outputs[-1].kind == "notice"
        assert "2 rounds" in outputs[-1].text
        assert len(provider.requests) == 2
        conversation.validate_turns(conv.turns)

    def test_max_tool_rounds_must_be_positive(
        self, scripted_provider, builtin_manager, permission_store
    ) -> None:
        with _pytest.raises(ValueError):
            _engine(scripted_provider([]), builtin_manager, permission_store,
                    approval.AutoDenyApprover(), max_tool_rounds=0)

    @_pytest.mark.asyncio
    async def test_validation_rejects_broken_history(
        self, scripted_provider, builtin_manager, permission_store
    ) -> None:
        conv = conversation.Conversation()
        conv.add_tool_exchange(
            [api_types.ContentBlock.tool_use("c1", "file_read", {})],
            [],
        )
        engine = _engine(scripted_provider([]), builtin_manager, permission_store,
                         approval.AutoDenyApprover(), validate_turns=True)

        with _pytest.raises(conversation.ConversationInvariantError):
            await _collect(engine, conv, None)


class _BlockingHost(hosts_base.ToolHost):
    """Host whose only tool never returns until disconnected."""

    transport = "child-process"

    def __init__(self, host_id: str) -> None:
        super().__init__(host_id)
        self.started = _asyncio.Event()
        self.disconnected = False
        self._busy = False

    async def connect(self) -> None:
        pass

    async def list_tools(self) -> list[hosts_base.ToolDescriptor]:
        return [hosts_base.ToolDescriptor("wait", "Waits forever", {"type": "object"},
                                          self.host_id)]

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, _typing.Any],
    ) -> tools_base.ToolResult:
        self._busy = True
        self.started.set()
        await _asyncio.Event().wait()
        return tools_base.ToolResult.ok("unreachable")

    async def disconnect(self) -> None:
        self.disconnected = True

    @property
    def in_flight(self) -> bool:
        return self._busy


class TestCancellation:
    @_pytest.mark.asyncio
    async def test_cancel_interrupts_busy_host(
        self, scripted_provider, anthropic_stream, permission_store, tmp_path: _pathlib.Path
    ) -> None:
        hosts: dict[str, _BlockingHost] = {}

        def factory(host_id: str, config: _typing.Any, **kwargs: _typing.Any) -> _BlockingHost:
            hosts[host_id] = _BlockingHost(host_id)
            return hosts[host_id]

        manager = hosts_manager.ToolHostManager(
            lambda: {"slow": host_config.ChildProcessHostConfig(command="slow")},
            host_factory=factory,
        )
        await manager.initialize()
        provider = scripted_provider([
            anthropic_stream.tool_calls([("c1", "wait", [_json.dumps({})])]),
        ])
        engine = _engine(provider, manager, permission_store, approval.AutoApproveApprover())

        task = _asyncio.create_task(_collect(engine, conversation.Conversation(), "wait"))
        await _asyncio.wait_for(hosts["slow"].started.wait(), timeout=5)
        task.cancel()
        with _pytest.raises(_asyncio.CancelledError):
            await task

        assert hosts["slow"].disconnected
        info = manager.host_info("slow")
        assert info.status == "failed"
        assert info.last_error == "interrupted"
        assert manager.get_tool("wait") is None


def _ollama_tool_round(name: str, arguments: dict[str, _typing.Any]) -> bytes:
    lines = [
        {"message": {"role": "assistant", "content": "",
                     "tool_calls": [{"function": {"name": name, "arguments": arguments}}]},
         "done": False},
        {"message": {"role": "assistant", "content": ""}, "done": True, "done_reason": "stop"},
    ]
    return b"".join(_json.dumps(line).encode() + b"\n" for line in lines)


def _ollama_text_round(text: str) -> bytes:
    lines = [
        {"message": {"role": "assistant", "content": text}, "done": False},
        {"message": {"role": "assistant", "content": ""}, "done": True, "done_reason": "stop"},
    ]
    return b"".join(_json.dumps(line).encode() + b"\n" for line in lines)


class TestGeneratedCallIds:
    @_pytest.mark.asyncio
    async def test_ids_stay_unique_across_rounds(
        self, scripted_provider, builtin_manager, permission_store
    ) -> None:
        await builtin_manager.initialize()
        provider = scripted_provider(
            [
                _ollama_tool_round("file_list", {"path": "."}),
                _ollama_tool_round("file_read", {"path": "a.txt"}),
                _ollama_text_round("All done."),
            ],
            dialect="ollama-ndjson",
        )
        engine = _engine(provider, builtin_manager, permission_store,
                         approval.AutoApproveApprover(), validate_turns=True)
        conv = conversation.Conversation()

        outputs = await _collect(engine, conv, "look around")

        ids = [o.call_id for o in outputs if o.kind == "tool_call"]
        assert len(ids) == 2
        assert ids[0] != ids[1]
        assert len(provider.requests) == 3
        assert conv.last_text() == "All done."
        conversation.validate_turns(conv.turns)


_FRAGMENTED_ARGS = '{"path": "nötes/plan → v2.md", "limit": [1, 2, 3], "flag": true}'


class TestFragmentedArguments:
    @_pytest.mark.asyncio
    @_pytest.mark.parametrize("size", range(1, len(_FRAGMENTED_ARGS) + 1))
    async def test_any_fragment_size_yields_same_input(
        self,
        size: int,
        scripted_provider,
        anthropic_stream,
        builtin_manager,
        permission_store,
        monkeypatch,
    ) -> None:
        received: list[dict[str, _typing.Any]] = []

        async def record(name: str, tool_input: dict[str, _typing.Any]) -> tools_base.ToolResult:
            received.append(tool_input)
            return tools_base.ToolResult.ok("recorded")

        monkeypatch.setattr(builtin_manager, "execute_tool", record)
        fragments = [
            _FRAGMENTED_ARGS[i:i + size] for i in range(0, len(_FRAGMENTED_ARGS), size)
        ]
        provider = scripted_provider([
            anthropic_stream.tool_calls([("c1", "file_read", fragments)]),
            anthropic_stream.text("ok"),
        ])
        engine = _engine(provider, builtin_manager, permission_store,
                         approval.AutoApproveApprover())

        await _collect(engine, conversation.Conversation(), "read")

        assert received == [_json.loads(_FRAGMENTED_ARGS)]
