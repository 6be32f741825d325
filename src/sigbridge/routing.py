"""Session routing for inbound Signal conversations.

Maps ``(provider, account_id, peer)`` to the agent session that should see
the event. Direct messages share the agent's main session by default; groups
always get a session of their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

DEFAULT_AGENT_ID = "main"
DEFAULT_ACCOUNT_ID = "default"

PeerKind = Literal["dm", "group"]
DmScope = Literal["main", "per-peer"]


@dataclass(frozen=True)
class RoutePeer:
    kind: PeerKind
    id: str


@dataclass(frozen=True)
class AgentRoute:
    session_key: str
    main_session_key: str
    account_id: str
    agent_id: str


class SessionRouter(Protocol):
    def resolve(self, provider: str, account_id: str, peer: RoutePeer) -> AgentRoute: ...


class SessionStore(Protocol):
    async def update_last_route(
        self, session_key: str, *, provider: str, to: str, account_id: str
    ) -> None:
        """Remember where replies for *session_key* should go by default."""
        ...


def build_main_session_key(agent_id: str) -> str:
    return f"agent:{agent_id}:main"


class DefaultSessionRouter:
    """Static router: one agent, DMs collapsed to main unless ``dm_scope="per-peer"``."""

    def __init__(self, agent_id: str = DEFAULT_AGENT_ID, dm_scope: DmScope = "main") -> None:
        self._agent_id = agent_id
        self._dm_scope = dm_scope

    def resolve(self, provider: str, account_id: str, peer: RoutePeer) -> AgentRoute:
        main_key = build_main_session_key(self._agent_id)
        if peer.kind == "group":
            session_key = f"agent:{self._agent_id}:{provider}:group:{peer.id}"
        elif self._dm_scope == "per-peer":
            session_key = f"agent:{self._agent_id}:{provider}:dm:{peer.id}"
        else:
            session_key = main_key
        return AgentRoute(
            session_key=session_key,
            main_session_key=main_key,
            account_id=account_id or DEFAULT_ACCOUNT_ID,
            agent_id=self._agent_id,
        )
