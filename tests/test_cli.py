"""Tests for the sigbridge CLI."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import httpx
import pytest
from click.testing import CliRunner
from fastapi.testclient import TestClient

from sigbridge.cli import cli
from sigbridge.connectors.health import HealthStatus, create_health_app
from sigbridge.pairing import InMemoryPairingStore, build_pairing_reply

pytestmark = pytest.mark.unit


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def store():
    return InMemoryPairingStore()


@pytest.fixture
def admin(store):
    """Route the CLI's admin client into an in-process monitor app."""

    async def get_status() -> HealthStatus:
        raise AssertionError("not used")

    app = create_health_app(get_status, pairing_admin=store)
    with patch("sigbridge.cli._admin_client", side_effect=lambda url: TestClient(app)):
        yield store


class TestVersion:
    def test_version_flag(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestPairingApprove:
    def test_approves_pending_code(self, runner, admin):
        request = asyncio.run(admin.upsert("signal", "+15550001111"))

        result = runner.invoke(cli, ["pairing", "approve", "--provider", "signal", request.code])

        assert result.exit_code == 0
        assert "Approved +15550001111 for signal" in result.output
        assert asyncio.run(admin.read_allow_from("signal")) == ["+15550001111"]

    def test_command_in_pairing_reply_is_runnable(self, runner, admin):
        request = asyncio.run(admin.upsert("signal", "uuid:abc"))
        reply = build_pairing_reply("signal", "Your Signal sender id: uuid:abc", request.code)

        command = reply.splitlines()[-1].split()
        assert command[0] == "sigbridge"
        result = runner.invoke(cli, command[1:])

        assert result.exit_code == 0
        assert asyncio.run(admin.list_pending("signal")) == []

    def test_unknown_code_fails(self, runner, admin):
        result = runner.invoke(cli, ["pairing", "approve", "NOPE"])
        assert result.exit_code == 1
        assert "No pending signal pairing request with code NOPE" in result.output

    def test_unreachable_monitor(self, runner):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = httpx.Client(base_url="http://127.0.0.1:1", transport=httpx.MockTransport(refuse))
        with patch("sigbridge.cli._admin_client", return_value=client):
            result = runner.invoke(cli, ["pairing", "approve", "ABCD2345"])

        assert result.exit_code == 1
        assert "Could not reach the monitor" in result.output


class TestPairingList:
    def test_lists_pending(self, runner, admin):
        request = asyncio.run(admin.upsert("signal", "+15550001111"))

        result = runner.invoke(cli, ["pairing", "list"])

        assert result.exit_code == 0
        assert request.code in result.output
        assert "+15550001111" in result.output

    def test_empty(self, runner, admin):
        result = runner.invoke(cli, ["pairing", "list"])
        assert result.exit_code == 0
        assert "No pending signal pairing requests" in result.output


class TestRun:
    def test_config_error_exits(self, runner, tmp_path):
        config = tmp_path / "sigbridge.toml"
        config.write_text("[health]\nport = \"not-a-port\"\n")

        result = runner.invoke(cli, ["run", "--config", str(config)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output
