"""Tests for session routing."""

from __future__ import annotations

import pytest

from sigbridge.routing import DefaultSessionRouter, RoutePeer, build_main_session_key

pytestmark = pytest.mark.unit


def test_main_session_key() -> None:
    assert build_main_session_key("main") == "agent:main:main"


def test_dm_collapses_to_main() -> None:
    route = DefaultSessionRouter().resolve("signal", "default", RoutePeer("dm", "+15550001111"))
    assert route.session_key == "agent:main:main"
    assert route.main_session_key == "agent:main:main"
    assert route.account_id == "default"


def test_dm_per_peer_scope() -> None:
    router = DefaultSessionRouter(dm_scope="per-peer")
    route = router.resolve("signal", "work", RoutePeer("dm", "uuid:abc"))
    assert route.session_key == "agent:main:signal:dm:uuid:abc"
    assert route.main_session_key == "agent:main:main"
    assert route.account_id == "work"


def test_group_keeps_case() -> None:
    route = DefaultSessionRouter(agent_id="ops").resolve(
        "signal", "default", RoutePeer("group", "AbC+/=")
    )
    assert route.session_key == "agent:ops:signal:group:AbC+/="
    assert route.agent_id == "ops"


def test_empty_account_defaults() -> None:
    route = DefaultSessionRouter().resolve("signal", "", RoutePeer("dm", "+1"))
    assert route.account_id == "default"
