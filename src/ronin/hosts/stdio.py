"""
Child-process tool host.

Spawns a local command and exchanges newline-delimited JSON-RPC messages
over its stdin/stdout. A background reader matches responses to pending
requests by id; stderr is drained into the debug log so the child never
blocks on a full pipe.

If the child exits or its output breaks while we did not ask it to stop,
every pending request fails and the exit callback tells the manager.
"""

from __future__ import annotations

import asyncio as _asyncio
import contextlib as _contextlib
import json as _json
import logging as _logging
import os as _os
import typing as _typing

import ronin.constants as _constants
import ronin.hosts.base as base
import ronin.hosts.config as host_config
import ronin.hosts.jsonrpc as jsonrpc

_logger = _logging.getLogger(__name__)

# Per-line limit for the child's stdout (tool results can be large)
_STREAM_LIMIT = 16 * 1024 * 1024


class ChildProcessHost(jsonrpc.RpcToolHost):
    """Tool host running as a child process."""

    transport = "child-process"

    def __init__(
        self,
        host_id: str,
        command: str,
        args: _typing.Sequence[str] = (),
        *,
        cwd: str | None = None,
        env: _typing.Mapping[str, str] | None = None,
        timeout: float = _constants.DEFAULT_HOST_TIMEOUT,
        on_exit: base.ExitCallback | None = None,
    ) -> None:
        """
        Args:
            host_id: Id used in logs and errors
            command: Executable to run
            args: Command-line arguments
            cwd: Working directory for the child
            env: Extra environment; ``${VAR}`` placeholders are expanded
                against the parent environment
            timeout: Per-request timeout in seconds
            on_exit: Called if the child dies without being asked to
        """
        super().__init__(host_id, timeout=timeout)
        self._command = command
        self._args = list(args)
        self._cwd = cwd
        self._env = dict(env or {})
        self._on_exit = on_exit

        self._process: _asyncio.subprocess.Process | None = None
        self._pending: dict[int, _asyncio.Future[dict[str, _typing.Any]]] = {}
        self._reader_task: _asyncio.Task[None] | None = None
        self._stderr_task: _asyncio.Task[None] | None = None
        self._closing = False
        self._dead_reason: str | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def in_flight(self) -> bool:
        """True while any request is unanswered, including abandoned ones."""
        return bool(self._pending)

    # === Transport ===

    async def _open(self) -> None:
        env = dict(_os.environ)
        env.update(host_config.expand_env_mapping(self._env))

        try:
            self._process = await _asyncio.create_subprocess_exec(
                self._command,
                *self._args,
                stdin=_asyncio.subprocess.PIPE,
                stdout=_asyncio.subprocess.PIPE,
                stderr=_asyncio.subprocess.PIPE,
                cwd=self._cwd,
                env=env,
                limit=_STREAM_LIMIT,
            )
        except (OSError, ValueError) as e:
            raise base.HostConnectError(
                self.host_id, f"failed to start '{self._command}': {e}"
            ) from e

        _logger.info("Started host '%s' (pid %s): %s %s", self.host_id,
                     self._process.pid, self._command, " ".join(self._args))
        self._reader_task = _asyncio.create_task(self._read_loop())
        self._stderr_task = _asyncio.create_task(self._drain_stderr())

    async def _send_request(self, request: dict[str, _typing.Any]) -> dict[str, _typing.Any]:
        request_id = request["id"]
        future: _asyncio.Future[dict[str, _typing.Any]] = (
            _asyncio.get_running_loop().create_future()
        )
        self._pending[request_id] = future

        try:
            await self._write(request)
        except base.HostError:
            self._pending.pop(request_id, None)
            raise

        try:
            response = await _asyncio.wait_for(future, timeout=self._timeout)
        except TimeoutError as e:
            self._pending.pop(request_id, None)
            raise base.RpcError(
                f"'{request['method']}' timed out after {self._timeout:g}s"
            ) from e
        # On cancellation the entry stays: the child is still working on it

        self._pending.pop(request_id, None)
        return response

    async def _send_notification(self, notification: dict[str, _typing.Any]) -> None:
        await self._write(notification)

    async def _write(self, message: dict[str, _typing.Any]) -> None:
        if self._dead_reason is not None:
            raise base.HostError(f"Host '{self.host_id}' is not running: {self._dead_reason}")
        if self._process is None or self._process.stdin is None:
            raise base.HostError(f"Host '{self.host_id}' is not connected")

        line = _json.dumps(message, ensure_ascii=False) + "\n"
        try:
            self._process.stdin.write(line.encode("utf-8"))
            await self._process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise base.HostError(f"Host '{self.host_id}' closed its input: {e}") from e

    async def _read_loop(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        stdout = self._process.stdout
        reason = "process closed its output"

        try:
            while True:
                line = await stdout.readline()
                if not line:
                    break
                self._dispatch(line)
        except (OSError, ValueError) as e:
            reason = f"read error: {e}"

        if self._closing:
            return

        with _contextlib.suppress(TimeoutError):
            await _asyncio.wait_for(self._process.wait(), timeout=1.0)
        if self._process.returncode is not None:
            reason = f"process exited with code {self._process.returncode}"
        self._mark_dead(reason)

    def _dispatch(self, line: bytes) -> None:
        try:
            message = _json.loads(line)
        except ValueError:
            _logger.debug("[%s] ignoring non-JSON output: %.200r", self.host_id, line)
            return
        if not isinstance(message, dict):
            return

        if "id" in message and ("result" in message or "error" in message):
            if not isinstance(message["id"], (int, str)):
                _logger.debug("[%s] ignoring response with id %r", self.host_id, message["id"])
                return
            future = self._pending.pop(message["id"], None)
            if future is not None and not future.done():
                future.set_result(message)
            return

        # Server-initiated requests and notifications are not supported
        _logger.debug("[%s] ignoring message: %s", self.host_id, message.get("method"))

    async def _drain_stderr(self) -> None:
        assert self._process is not None and self._process.stderr is not None
        stderr = self._process.stderr
        with _contextlib.suppress(OSError, ValueError):
            while True:
                line = await stderr.readline()
                if not line:
                    return
                _logger.debug("[%s stderr] %s", self.host_id,
                              line.decode("utf-8", errors="replace").rstrip())

    def _mark_dead(self, reason: str) -> None:
        self._dead_reason = reason
        _logger.warning("Host '%s' stopped unexpectedly: %s", self.host_id, reason)
        self._fail_pending(reason)
        if self._on_exit is not None:
            self._on_exit(self.host_id, reason)

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(base.HostError(f"Host '{self.host_id}': {reason}"))
        self._pending.clear()

    async def _close(self) -> None:
        """Terminate the child: SIGTERM, wait, then SIGKILL."""
        self._closing = True
        process = self._process

        if process is not None and process.returncode is None:
            if process.stdin is not None:
                with _contextlib.suppress(OSError):
                    process.stdin.close()
            with _contextlib.suppress(ProcessLookupError):
                process.terminate()
            try:
                await _asyncio.wait_for(
                    process.wait(), timeout=_constants.HOST_TERMINATE_GRACE_SECONDS
                )
            except TimeoutError:
                _logger.warning("Host '%s' ignored SIGTERM, killing", self.host_id)
                with _contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        for task in (self._reader_task, self._stderr_task):
            if task is not None and not task.done():
                task.cancel()
                with _contextlib.suppress(_asyncio.CancelledError):
                    await task

        self._fail_pending("host disconnected")
        if process is not None:
            _logger.info("Stopped host '%s' (pid %s)", self.host_id, process.pid)
