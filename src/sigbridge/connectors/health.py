"""Health and metrics HTTP endpoint for the Signal monitor.

Serves ``/health`` (JSON ``HealthStatus``) and ``/metrics`` (Prometheus text
format) from a FastAPI app run by uvicorn in a daemon thread, so the probe
stays responsive even while the monitor's event loop is busy.

When a :class:`~sigbridge.pairing.PairingAdmin` is passed, the same app serves
the operator routes used by ``sigbridge pairing``::

    GET  /pairing/{provider}           pending (id, code) pairs
    POST /pairing/{provider}/approve   {"code": ...} -> approved sender id

The port is an operator surface; keep it off public networks.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from threading import Thread
from typing import TYPE_CHECKING, Literal

import uvicorn
from fastapi import FastAPI, HTTPException, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
from pydantic import BaseModel

if TYPE_CHECKING:
    from sigbridge.pairing import PairingAdmin

logger = logging.getLogger(__name__)


class HealthStatus(BaseModel):
    """Health check response model for Kubernetes probes."""

    status: Literal["healthy", "unhealthy"]
    uptime_seconds: float
    last_event_at: str | None
    stream_state: str
    source_api_connectivity: Literal["connected", "disconnected", "unknown"]
    timestamp: str


class PendingPairing(BaseModel):
    id: str
    code: str


class ApprovePairingRequest(BaseModel):
    code: str


class ApprovePairingResponse(BaseModel):
    provider: str
    id: str


def create_health_app(
    get_status: Callable[[], Awaitable[HealthStatus]],
    title: str = "sigbridge Signal Monitor Health",
    pairing_admin: PairingAdmin | None = None,
) -> FastAPI:
    app = FastAPI(title=title)

    @app.get("/health")
    async def health() -> HealthStatus:
        return await get_status()

    @app.get("/metrics")
    async def metrics() -> Response:
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)

    if pairing_admin is not None:

        @app.get("/pairing/{provider}")
        async def list_pending(provider: str) -> list[PendingPairing]:
            pending = await pairing_admin.list_pending(provider)
            return [PendingPairing(id=sender_id, code=code) for sender_id, code in pending]

        @app.post("/pairing/{provider}/approve")
        async def approve(provider: str, body: ApprovePairingRequest) -> ApprovePairingResponse:
            sender_id = await pairing_admin.approve(provider, body.code)
            if sender_id is None:
                raise HTTPException(status_code=404, detail=f"No pending request for {body.code}")
            return ApprovePairingResponse(provider=provider, id=sender_id)

    return app


class HealthServer:
    """Runs the health app in a background thread."""

    def __init__(self, app: FastAPI, port: int, host: str = "0.0.0.0") -> None:
        self._config = uvicorn.Config(app, host=host, port=port, log_level="warning")
        self._server = uvicorn.Server(self._config)
        self._thread: Thread | None = None
        self.port = port

    def start(self) -> None:
        def run_server() -> None:
            asyncio.run(self._server.serve())

        self._thread = Thread(target=run_server, daemon=True, name="sigbridge-health")
        self._thread.start()
        logger.info("Health server started", extra={"port": self.port})

    def stop(self) -> None:
        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
