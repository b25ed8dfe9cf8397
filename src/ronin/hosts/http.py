"""
Network tool hosts: JSON-RPC over HTTP POST.

Every message is POSTed to the host's URL. A request-style host expects
each response as a JSON body. A stream-style host also accepts a
``text/event-stream`` body and reads its ``data:`` lines until the
response carrying the request's id arrives.

The ``Mcp-Session-Id`` header handed out by the server is sent back on
every later message.
"""

from __future__ import annotations

import json as _json
import logging as _logging
import typing as _typing

import httpx as _httpx

import ronin.constants as _constants
import ronin.hosts.base as base
import ronin.hosts.config as host_config
import ronin.hosts.jsonrpc as jsonrpc

_logger = _logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"


class NetworkRequestHost(jsonrpc.RpcToolHost):
    """Remote host answering each POST with a JSON body."""

    transport = "network-request"

    _ACCEPT = "application/json"

    def __init__(
        self,
        host_id: str,
        url: str,
        *,
        headers: _typing.Mapping[str, str] | None = None,
        timeout: float = _constants.DEFAULT_HOST_TIMEOUT,
        transport: _httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            host_id: Id used in logs and errors
            url: Endpoint that receives every JSON-RPC message
            headers: Extra request headers; ``${VAR}`` placeholders are expanded
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        super().__init__(host_id, timeout=timeout)
        self._url = url
        self._headers = host_config.expand_env_mapping(headers or {})
        self._http_transport = transport
        self._client: _httpx.AsyncClient | None = None
        self.session_id: str | None = None

    async def _open(self) -> None:
        self._client = _httpx.AsyncClient(
            headers=self._headers,
            timeout=self._timeout,
            transport=self._http_transport,
        )

    def _request_headers(self) -> dict[str, str]:
        headers = {"Accept": self._ACCEPT, "Content-Type": "application/json"}
        if self.session_id:
            headers[SESSION_HEADER] = self.session_id
        return headers

    def _remember_session(self, response: _httpx.Response) -> None:
        session_id = response.headers.get(SESSION_HEADER)
        if session_id and session_id != self.session_id:
            _logger.debug("[%s] session id %s", self.host_id, session_id)
            self.session_id = session_id

    def _require_client(self) -> _httpx.AsyncClient:
        if self._client is None:
            raise base.HostError(f"Host '{self.host_id}' is not connected")
        return self._client

    async def _send_request(self, request: dict[str, _typing.Any]) -> dict[str, _typing.Any]:
        client = self._require_client()
        method = request["method"]
        try:
            async with client.stream(
                "POST", self._url, json=request, headers=self._request_headers()
            ) as response:
                if response.is_error:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise base.RpcError(
                        f"'{method}' got HTTP {response.status_code}: {body[:300]}"
                    )
                self._remember_session(response)
                return await self._read_response(response, request["id"], method)
        except _httpx.TimeoutException as e:
            raise base.RpcError(f"'{method}' timed out after {self._timeout:g}s") from e
        except (_httpx.HTTPError, _httpx.InvalidURL) as e:
            raise base.HostError(f"Host '{self.host_id}' unreachable: {e}") from e

    async def _read_response(
        self,
        response: _httpx.Response,
        request_id: int,
        method: str,
    ) -> dict[str, _typing.Any]:
        content_type = response.headers.get("content-type", "")
        if "text/event-stream" in content_type:
            raise base.RpcError(
                f"'{method}' answered with an event stream; use transport network-stream"
            )
        return self._parse_body(await response.aread(), method)

    @staticmethod
    def _parse_body(body: bytes, method: str) -> dict[str, _typing.Any]:
        try:
            message = _json.loads(body)
        except ValueError as e:
            raise base.RpcError(f"'{method}' returned invalid JSON: {e}") from e
        if not isinstance(message, dict):
            raise base.RpcError(f"'{method}' returned a non-object response")
        return message

    async def _send_notification(self, notification: dict[str, _typing.Any]) -> None:
        client = self._require_client()
        try:
            response = await client.post(
                self._url, json=notification, headers=self._request_headers()
            )
        except (_httpx.HTTPError, _httpx.InvalidURL) as e:
            raise base.HostError(f"Host '{self.host_id}' unreachable: {e}") from e
        if response.is_error:
            raise base.RpcError(
                f"'{notification['method']}' got HTTP {response.status_code}"
            )
        self._remember_session(response)

    async def _close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self.session_id = None


class NetworkStreamHost(NetworkRequestHost):
    """Remote host that may answer with a server-sent event stream."""

    transport = "network-stream"

    _ACCEPT = "application/json, text/event-stream"

    async def _read_response(
        self,
        response: _httpx.Response,
        request_id: int,
        method: str,
    ) -> dict[str, _typing.Any]:
        content_type = response.headers.get("content-type", "")
        if "text/event-stream" not in content_type:
            return self._parse_body(await response.aread(), method)

        async for line in response.aiter_lines():
            if not line.startswith("data:"):
                continue
            try:
                message = _json.loads(line[len("data:"):].strip())
            except ValueError:
                continue
            if (
                isinstance(message, dict)
                and message.get("id") == request_id
                and ("result" in message or "error" in message)
            ):
                return message
            _logger.debug("[%s] skipping stream message: %.200s", self.host_id, line)

        raise base.RpcError(f"'{method}' stream ended without a response")
