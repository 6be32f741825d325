"""HTTP client for the signal-cli daemon.

Endpoints used:
- ``GET  {base}/api/v1/check``   readiness probe
- ``POST {base}/api/v1/rpc``     JSON-RPC 2.0 (``getAttachment``, ``send``)
- ``GET  {base}/api/v1/events``  Server-Sent Events stream of ``receive`` frames

Every function accepts an optional ``httpx.AsyncClient`` so callers (and
tests) can share connection pools or inject a mock transport.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

CHECK_PATH = "/api/v1/check"
RPC_PATH = "/api/v1/rpc"
EVENTS_PATH = "/api/v1/events"

DEFAULT_RPC_TIMEOUT_S = 10.0

SignalFrame = dict[str, str]


class SignalRpcError(Exception):
    """Raised when the daemon answers a JSON-RPC call with an error."""

    def __init__(self, method: str, code: int | None, message: str) -> None:
        self.method = method
        self.code = code
        super().__init__(f"Signal RPC {method} failed ({code}): {message}")


@dataclass(frozen=True)
class SignalCheckResult:
    ok: bool
    status: int | None = None
    error: str | None = None


@asynccontextmanager
async def _client_scope(
    client: httpx.AsyncClient | None, timeout: httpx.Timeout | float | None
) -> AsyncIterator[httpx.AsyncClient]:
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout) as owned:
        yield owned


def normalize_base_url(base_url: str) -> str:
    value = base_url.strip().rstrip("/")
    if not value.startswith(("http://", "https://")):
        value = f"http://{value}"
    return value


async def signal_check(
    base_url: str,
    timeout_s: float = 1.0,
    *,
    client: httpx.AsyncClient | None = None,
) -> SignalCheckResult:
    """Probe the daemon; never raises."""
    url = f"{normalize_base_url(base_url)}{CHECK_PATH}"
    try:
        async with _client_scope(client, timeout_s) as http:
            response = await http.get(url, timeout=timeout_s)
    except httpx.HTTPError as exc:
        return SignalCheckResult(ok=False, error=str(exc) or type(exc).__name__)
    if response.is_success:
        return SignalCheckResult(ok=True, status=response.status_code)
    return SignalCheckResult(
        ok=False, status=response.status_code, error=f"HTTP {response.status_code}"
    )


async def signal_rpc_request(
    method: str,
    params: dict[str, Any] | None = None,
    *,
    base_url: str,
    timeout_s: float = DEFAULT_RPC_TIMEOUT_S,
    client: httpx.AsyncClient | None = None,
) -> Any:
    """Call a JSON-RPC method on the daemon and return its ``result``.

    Raises
    ------
    SignalRpcError
        If the daemon returns a JSON-RPC error object.
    httpx.HTTPError
        On transport failures and non-2xx responses.
    """
    body = {
        "jsonrpc": "2.0",
        "method": method,
        "params": params or {},
        "id": str(uuid.uuid4()),
    }
    url = f"{normalize_base_url(base_url)}{RPC_PATH}"
    async with _client_scope(client, timeout_s) as http:
        response = await http.post(url, json=body, timeout=timeout_s)
    response.raise_for_status()

    if response.status_code == 201 or not response.content:
        return None
    payload = response.json()
    error = payload.get("error") if isinstance(payload, dict) else None
    if error:
        raise SignalRpcError(
            method,
            error.get("code") if isinstance(error, dict) else None,
            str(error.get("message", "unknown error")) if isinstance(error, dict) else str(error),
        )
    return payload.get("result") if isinstance(payload, dict) else None


async def stream_signal_events(
    base_url: str,
    account: str | None,
    on_event: Callable[[SignalFrame], None],
    *,
    on_open: Callable[[], None] | None = None,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Consume the daemon's SSE stream, calling *on_event* once per frame.

    *on_open* is called once the response headers have been accepted.

    Returns when the server closes the stream. Raises on connection failures
    and non-2xx responses so the caller can back off and reconnect.
    """
    url = f"{normalize_base_url(base_url)}{EVENTS_PATH}"
    params = {"account": account} if account else None
    timeout = httpx.Timeout(10.0, read=None)

    async with _client_scope(client, timeout) as http:
        async with http.stream(
            "GET",
            url,
            params=params,
            headers={"Accept": "text/event-stream"},
            timeout=timeout,
        ) as response:
            response.raise_for_status()
            if on_open is not None:
                on_open()
            event_name = ""
            data_lines: list[str] = []
            async for line in response.aiter_lines():
                if not line:
                    if data_lines or event_name:
                        on_event({"event": event_name or "message", "data": "\n".join(data_lines)})
                    event_name = ""
                    data_lines = []
                    continue
                if line.startswith(":"):
                    continue
                field_name, _, value = line.partition(":")
                if value.startswith(" "):
                    value = value[1:]
                if field_name == "event":
                    event_name = value
                elif field_name == "data":
                    data_lines.append(value)
            if data_lines:
                on_event({"event": event_name or "message", "data": "\n".join(data_lines)})


class SignalRpcSender:
    """Sends plain-text messages through the daemon's ``send`` method.

    Targets are ``signal:<recipient>`` for direct chats or ``group:<id>``.
    """

    def __init__(
        self,
        base_url: str,
        account: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url
        self._account = account
        self._client = client

    async def send_text(self, to: str, text: str) -> None:
        params: dict[str, Any] = {"message": text}
        if self._account:
            params["account"] = self._account
        target = to.strip()
        if target.lower().startswith("group:"):
            params["groupId"] = target[len("group:") :]
        else:
            if target.lower().startswith("signal:"):
                target = target[len("signal:") :]
            params["recipient"] = [target]
        await signal_rpc_request("send", params, base_url=self._base_url, client=self._client)
