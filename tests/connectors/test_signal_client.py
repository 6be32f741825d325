"""Tests for the signal-cli daemon HTTP client."""

from __future__ import annotations

import json

import httpx
import pytest

from sigbridge.connectors.signal_client import (
    SignalRpcError,
    SignalRpcSender,
    normalize_base_url,
    signal_check,
    signal_rpc_request,
    stream_signal_events,
)

pytestmark = pytest.mark.unit

BASE_URL = "http://signal.test:8080"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_normalize_base_url() -> None:
    assert normalize_base_url(" localhost:8080/ ") == "http://localhost:8080"
    assert normalize_base_url("https://x/") == "https://x"


class TestSignalCheck:
    async def test_ok(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v1/check"
            return httpx.Response(200)

        async with _client(handler) as client:
            result = await signal_check(BASE_URL, client=client)
        assert result.ok
        assert result.status == 200

    async def test_http_error_status(self) -> None:
        async with _client(lambda request: httpx.Response(503)) as client:
            result = await signal_check(BASE_URL, client=client)
        assert not result.ok
        assert result.status == 503
        assert result.error == "HTTP 503"

    async def test_transport_error_never_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            result = await signal_check(BASE_URL, client=client)
        assert not result.ok
        assert result.status is None
        assert "refused" in result.error


class TestSignalRpcRequest:
    async def test_returns_result(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"jsonrpc": "2.0", "result": {"data": "aGk="}})

        async with _client(handler) as client:
            result = await signal_rpc_request(
                "getAttachment", {"id": "a1"}, base_url=BASE_URL, client=client
            )
        assert result == {"data": "aGk="}
        assert seen["method"] == "getAttachment"
        assert seen["params"] == {"id": "a1"}
        assert seen["jsonrpc"] == "2.0"
        assert seen["id"]

    async def test_error_object_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": {"code": -1, "message": "no such"}})

        async with _client(handler) as client:
            with pytest.raises(SignalRpcError) as exc_info:
                await signal_rpc_request("send", base_url=BASE_URL, client=client)
        assert exc_info.value.code == -1
        assert "no such" in str(exc_info.value)

    async def test_empty_body_returns_none(self) -> None:
        async with _client(lambda request: httpx.Response(201)) as client:
            assert await signal_rpc_request("send", base_url=BASE_URL, client=client) is None

    async def test_http_status_raises(self) -> None:
        async with _client(lambda request: httpx.Response(500)) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await signal_rpc_request("send", base_url=BASE_URL, client=client)


class TestStreamSignalEvents:
    async def test_parses_frames(self) -> None:
        body = (
            ": keepalive\n"
            "event: receive\n"
            'data: {"a":\n'
            "data: 1}\n"
            "\n"
            "event: receive\n"
            "data: second\n"
        )

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v1/events"
            assert request.url.params["account"] == "+15550002222"
            return httpx.Response(200, text=body)

        frames: list[dict[str, str]] = []
        async with _client(handler) as client:
            await stream_signal_events(BASE_URL, "+15550002222", frames.append, client=client)

        assert frames == [
            {"event": "receive", "data": '{"a":\n1}'},
            {"event": "receive", "data": "second"},
        ]

    async def test_no_account_param(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert "account" not in request.url.params
            return httpx.Response(200, text="")

        async with _client(handler) as client:
            await stream_signal_events(BASE_URL, None, lambda frame: None, client=client)

    async def test_error_status_raises(self) -> None:
        async with _client(lambda request: httpx.Response(502)) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await stream_signal_events(BASE_URL, None, lambda frame: None, client=client)

    async def test_on_open_called_before_first_frame(self) -> None:
        order: list[str] = []

        async with _client(lambda request: httpx.Response(200, text="data: x\n\n")) as client:
            await stream_signal_events(
                BASE_URL,
                None,
                lambda frame: order.append("frame"),
                on_open=lambda: order.append("open"),
                client=client,
            )

        assert order == ["open", "frame"]

    async def test_on_open_not_called_on_error_status(self) -> None:
        opened: list[bool] = []

        async with _client(lambda request: httpx.Response(503)) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await stream_signal_events(
                    BASE_URL,
                    None,
                    lambda frame: None,
                    on_open=lambda: opened.append(True),
                    client=client,
                )

        assert opened == []


class TestSignalRpcSender:
    async def _send(self, to: str, account: str | None = "+15550002222") -> dict:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"result": {}})

        async with _client(handler) as client:
            await SignalRpcSender(BASE_URL, account, client=client).send_text(to, "hello")
        return seen["params"]

    async def test_direct_recipient(self) -> None:
        params = await self._send("signal:+15550001111")
        assert params == {
            "message": "hello",
            "account": "+15550002222",
            "recipient": ["+15550001111"],
        }

    async def test_group_target(self) -> None:
        params = await self._send("group:g1", account=None)
        assert params == {"message": "hello", "groupId": "g1"}
