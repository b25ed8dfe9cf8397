"""Tests for the in-process tool host."""

import pathlib as _pathlib
import unittest.mock as _mock

import pytest as _pytest

import ronin.hosts as hosts
import ronin.tools.file as file_tools


class TestBuiltinToolHost:
    @_pytest.mark.asyncio
    async def test_lists_all_tools_by_default(self) -> None:
        host = hosts.BuiltinToolHost()
        await host.connect()

        tools = await host.list_tools()

        assert [t.name for t in tools] == [
            "file_read", "file_write", "file_list", "shell_execute", "web_request",
        ]
        assert all(t.host_id == "builtin" for t in tools)
        assert host.transport == "in-process"

    @_pytest.mark.asyncio
    async def test_subset(self) -> None:
        host = hosts.BuiltinToolHost("local", ["file_read"])
        await host.connect()
        assert [t.name for t in await host.list_tools()] == ["file_read"]

    @_pytest.mark.asyncio
    async def test_unknown_tool_in_config_fails_connect(self) -> None:
        host = hosts.BuiltinToolHost(tools=["file_read", "teleport"])
        with _pytest.raises(hosts.HostConnectError, match="teleport"):
            await host.connect()

    @_pytest.mark.asyncio
    async def test_call_runs_tool(self, workspace: _pathlib.Path) -> None:
        host = hosts.BuiltinToolHost(base_dir=workspace)
        await host.connect()

        result = await host.call_tool("file_read", {"path": "b.txt"})

        assert result.data["content"] == "beta\n"

    @_pytest.mark.asyncio
    async def test_invalid_input_is_an_error_result(self) -> None:
        host = hosts.BuiltinToolHost()
        await host.connect()

        result = await host.call_tool("file_read", {"path": 7})

        assert result.is_error
        assert result.message == (
            "Invalid input for file_read: Parameter 'path' must be of type string"
        )

    @_pytest.mark.asyncio
    async def test_tool_exception_is_an_error_result(self) -> None:
        host = hosts.BuiltinToolHost()
        await host.connect()

        with _mock.patch.object(
            file_tools.FileReadTool, "execute", side_effect=RuntimeError("disk on fire")
        ):
            result = await host.call_tool("file_read", {"path": "x"})

        assert result.is_error
        assert result.message == "file_read failed: disk on fire"

    @_pytest.mark.asyncio
    async def test_unknown_tool_raises(self) -> None:
        host = hosts.BuiltinToolHost()
        await host.connect()
        with _pytest.raises(hosts.ToolNotFoundError):
            await host.call_tool("teleport", {})

    @_pytest.mark.asyncio
    async def test_disconnect_clears_tools(self) -> None:
        host = hosts.BuiltinToolHost()
        await host.connect()
        await host.disconnect()

        assert await host.list_tools() == []
        with _pytest.raises(hosts.ToolNotFoundError):
            await host.call_tool("file_read", {"path": "a"})
        await host.disconnect()


class TestBuiltinThroughManager:
    @_pytest.mark.asyncio
    async def test_manager_routes_to_builtin(self, builtin_manager, workspace) -> None:
        result = await builtin_manager.initialize()
        try:
            assert result.added == ["builtin"]
            listing = await builtin_manager.execute_tool("file_list", {"path": "."})
        finally:
            await builtin_manager.shutdown()

        assert listing.data["count"] == 3
