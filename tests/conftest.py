"""Shared test fixtures for the sigbridge test suite.

Provides recording fakes for the monitor's external collaborators and small
builders for signal-cli ``receive`` frames.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from sigbridge.config import ResolvedSignalAccount, SignalAccountConfig
from sigbridge.connectors.signal_monitor import (
    InboundMessageContext,
    SignalMonitor,
    SignalMonitorDeps,
)
from sigbridge.connectors.sse_reconnect import ReconnectPolicy
from sigbridge.pairing import InMemoryPairingStore
from sigbridge.routing import DefaultSessionRouter
from sigbridge.system_events import SystemEventQueue

ACCOUNT = "+15550002222"
ACCOUNT_UUID = "0b0b0b0b-0000-4000-8000-000000000002"
SENDER = "+15550001111"
SENDER_UUID = "123e4567-e89b-12d3-a456-426614174000"
BASE_URL = "http://signal.test:8080"

FAST_RECONNECT = ReconnectPolicy(initial_s=0.01, max_s=0.02, factor=2.0, jitter=0.0)


class RecordingDispatcher:
    """Reply dispatcher that records every inbound context."""

    def __init__(self, error: Exception | None = None) -> None:
        self.contexts: list[InboundMessageContext] = []
        self._error = error

    async def dispatch(self, ctx: InboundMessageContext) -> None:
        self.contexts.append(ctx)
        if self._error is not None:
            raise self._error


class RecordingSender:
    """Message sender that records ``(to, text)`` pairs."""

    def __init__(self, error: Exception | None = None) -> None:
        self.sent: list[tuple[str, str]] = []
        self._error = error

    async def send_text(self, to: str, text: str) -> None:
        self.sent.append((to, text))
        if self._error is not None:
            raise self._error


@dataclass
class RecordingSessionStore:
    calls: list[dict[str, Any]] = field(default_factory=list)

    async def update_last_route(
        self, session_key: str, *, provider: str, to: str, account_id: str
    ) -> None:
        self.calls.append(
            {"session_key": session_key, "provider": provider, "to": to, "account_id": account_id}
        )


@dataclass
class MonitorHarness:
    monitor: SignalMonitor
    dispatcher: RecordingDispatcher
    sender: RecordingSender
    session_store: RecordingSessionStore
    pairing_store: InMemoryPairingStore
    sink: SystemEventQueue


def make_account(**overrides: Any) -> ResolvedSignalAccount:
    overrides.setdefault("account", ACCOUNT)
    return ResolvedSignalAccount(
        account_id="default",
        base_url=BASE_URL,
        config=SignalAccountConfig(**overrides),
    )


def receive_frame(envelope: dict[str, Any], account: str = ACCOUNT) -> dict[str, str]:
    return {"event": "receive", "data": json.dumps({"account": account, "envelope": envelope})}


def dm_envelope(
    text: str | None = "hello",
    *,
    number: str | None = SENDER,
    uuid: str | None = None,
    name: str | None = "Alice",
    **data_fields: Any,
) -> dict[str, Any]:
    envelope: dict[str, Any] = {"timestamp": 1700000000000, "dataMessage": {"message": text}}
    envelope["dataMessage"].update(data_fields)
    if number is not None:
        envelope["sourceNumber"] = number
    if uuid is not None:
        envelope["sourceUuid"] = uuid
    if name is not None:
        envelope["sourceName"] = name
    return envelope


def reaction_envelope(
    emoji: str = "👍",
    *,
    target_author: str | None = ACCOUNT,
    target_author_uuid: str | None = None,
    is_remove: bool = False,
    group: dict[str, str] | None = None,
    number: str = SENDER,
) -> dict[str, Any]:
    reaction: dict[str, Any] = {
        "emoji": emoji,
        "targetSentTimestamp": 1699999999000,
        "isRemove": is_remove,
    }
    if target_author is not None:
        reaction["targetAuthor"] = target_author
    if target_author_uuid is not None:
        reaction["targetAuthorUuid"] = target_author_uuid
    if group is not None:
        reaction["groupInfo"] = group
    return {
        "sourceNumber": number,
        "sourceName": "Alice",
        "timestamp": 1700000000000,
        "reactionMessage": reaction,
    }


@pytest.fixture
def make_monitor() -> Callable[..., MonitorHarness]:
    """Build a monitor wired to recording fakes.

    Keyword arguments that name a ``SignalMonitorDeps`` field replace that
    dependency; the rest configure the Signal account.
    """

    def _make(**kwargs: Any) -> MonitorHarness:
        dep_fields = set(SignalMonitorDeps.__dataclass_fields__)
        dep_overrides = {k: kwargs.pop(k) for k in list(kwargs) if k in dep_fields}
        monitor_kwargs = {
            k: kwargs.pop(k) for k in ("abort", "ready_timeout_s") if k in kwargs
        }

        store = InMemoryPairingStore()
        dispatcher = RecordingDispatcher()
        sender = RecordingSender()
        session_store = RecordingSessionStore()
        sink = SystemEventQueue()
        deps = SignalMonitorDeps(
            allow_from_store=store,
            pairing_store=store,
            router=DefaultSessionRouter(),
            sink=sink,
            reply_dispatcher=dispatcher,
            session_store=session_store,
            sender=sender,
        )
        for name, value in dep_overrides.items():
            setattr(deps, name, value)

        monitor = SignalMonitor(
            make_account(**kwargs),
            deps,
            reconnect_policy=FAST_RECONNECT,
            **monitor_kwargs,
        )
        return MonitorHarness(
            monitor=monitor,
            dispatcher=deps.reply_dispatcher,
            sender=deps.sender,
            session_store=deps.session_store,
            pairing_store=store,
            sink=deps.sink,
        )

    return _make
