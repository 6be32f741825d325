"""Tests for the health and metrics HTTP endpoints."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient

from sigbridge.connectors.health import HealthServer, HealthStatus, create_health_app
from sigbridge.connectors.metrics import ConnectorMetrics
from sigbridge.pairing import InMemoryPairingStore

pytestmark = pytest.mark.unit


def _status(**overrides) -> HealthStatus:
    fields = {
        "status": "healthy",
        "uptime_seconds": 1.5,
        "last_event_at": None,
        "stream_state": "streaming",
        "source_api_connectivity": "connected",
        "timestamp": datetime.now(UTC).isoformat(),
    }
    fields.update(overrides)
    return HealthStatus(**fields)


class TestHealthApp:
    def test_health_endpoint_returns_status(self) -> None:
        async def get_status() -> HealthStatus:
            return _status()

        client = TestClient(create_health_app(get_status))
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["stream_state"] == "streaming"
        assert body["source_api_connectivity"] == "connected"

    def test_health_endpoint_reports_unhealthy(self) -> None:
        async def get_status() -> HealthStatus:
            return _status(status="unhealthy", source_api_connectivity="disconnected")

        body = TestClient(create_health_app(get_status)).get("/health").json()
        assert body["status"] == "unhealthy"

    def test_metrics_endpoint_exposes_prometheus_text(self) -> None:
        ConnectorMetrics("signal", "health_test").record_frame_received("receive")

        async def get_status() -> HealthStatus:
            return _status()

        response = TestClient(create_health_app(get_status)).get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "sigbridge_frames_received_total" in response.text


class TestPairingRoutes:
    def _client(self, store: InMemoryPairingStore) -> TestClient:
        async def get_status() -> HealthStatus:
            return _status()

        return TestClient(create_health_app(get_status, pairing_admin=store))

    def test_routes_absent_without_admin(self) -> None:
        async def get_status() -> HealthStatus:
            return _status()

        client = TestClient(create_health_app(get_status))
        assert client.get("/pairing/signal").status_code == 404

    def test_list_and_approve(self) -> None:
        store = InMemoryPairingStore()
        request = asyncio.run(store.upsert("signal", "+15550001111"))
        client = self._client(store)

        pending = client.get("/pairing/signal").json()
        assert pending == [{"id": "+15550001111", "code": request.code}]

        response = client.post("/pairing/signal/approve", json={"code": request.code})
        assert response.status_code == 200
        assert response.json() == {"provider": "signal", "id": "+15550001111"}
        assert client.get("/pairing/signal").json() == []
        assert asyncio.run(store.read_allow_from("signal")) == ["+15550001111"]

    def test_unknown_code_is_404(self) -> None:
        response = self._client(InMemoryPairingStore()).post(
            "/pairing/signal/approve", json={"code": "NOPE"}
        )
        assert response.status_code == 404


class TestHealthServer:
    def test_stop_without_start(self) -> None:
        async def get_status() -> HealthStatus:
            return _status()

        server = HealthServer(create_health_app(get_status), port=40999)
        server.stop()
        assert server.port == 40999


class TestMonitorHealth:
    async def test_initial_health_status(self, make_monitor) -> None:
        h = make_monitor()
        health = await h.monitor.get_health_status()

        assert health.status == "healthy"
        assert 0 <= health.uptime_seconds < 5
        assert health.last_event_at is None
        assert health.stream_state == "idle"
        assert health.source_api_connectivity == "unknown"
        assert health.timestamp

    async def test_health_while_backing_off(self, make_monitor) -> None:
        from sigbridge.connectors.sse_reconnect import StreamState

        h = make_monitor()
        h.monitor._set_stream_state(StreamState.BACKOFF)

        health = await h.monitor.get_health_status()
        assert health.status == "unhealthy"
        assert health.source_api_connectivity == "disconnected"

    async def test_health_while_streaming(self, make_monitor) -> None:
        from sigbridge.connectors.sse_reconnect import StreamState

        h = make_monitor()
        h.monitor._set_stream_state(StreamState.STREAMING)

        health = await h.monitor.get_health_status()
        assert health.status == "healthy"
        assert health.source_api_connectivity == "connected"
