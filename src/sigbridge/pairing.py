"""Pairing-code bootstrap for unknown direct-message senders.

When ``dm_policy = "pairing"`` an unknown sender is issued a short code that
the bot owner approves out of band. The store is idempotent: a second
request for the same pending sender returns the existing code with
``created=False`` so the sender is not re-notified.

Approval is an operator action on :class:`PairingAdmin`. The running monitor
exposes it over its health port and ``sigbridge pairing approve`` calls that.

``InMemoryPairingStore`` is the process-local implementation; durable stores
implement the same protocols.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

logger = logging.getLogger(__name__)

# No 0/O/1/I to keep codes unambiguous when read aloud.
PAIRING_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
PAIRING_CODE_LENGTH = 8


@dataclass(frozen=True)
class PairingRequest:
    provider: str
    id: str
    code: str
    created: bool


class AllowFromStore(Protocol):
    async def read_allow_from(self, provider: str) -> list[str]:
        """Return persisted allow-list entries for *provider* (read-through)."""
        ...


class PairingStore(Protocol):
    async def upsert(
        self, provider: str, id: str, meta: dict[str, Any] | None = None
    ) -> PairingRequest:
        """Create or return the pending pairing request for (*provider*, *id*)."""
        ...


class PairingAdmin(Protocol):
    async def list_pending(self, provider: str) -> list[tuple[str, str]]: ...

    async def approve(self, provider: str, code: str) -> str | None:
        """Approve the request holding *code*; return the sender id, or None."""
        ...


def generate_pairing_code(length: int = PAIRING_CODE_LENGTH) -> str:
    return "".join(secrets.choice(PAIRING_CODE_ALPHABET) for _ in range(length))


def build_pairing_reply(provider: str, id_line: str, code: str) -> str:
    """Text sent to an unknown sender alongside their pairing code."""
    return "\n".join(
        [
            "sigbridge: access not configured.",
            "",
            id_line,
            "",
            f"Pairing code: {code}",
            "",
            "Ask the bot owner to approve with:",
            f"sigbridge pairing approve --provider {provider} {code}",
        ]
    )


@dataclass
class _PendingRequest:
    code: str
    meta: dict[str, Any]
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class InMemoryPairingStore:
    """Process-local pairing and allow-list store."""

    def __init__(self) -> None:
        self._pending: dict[tuple[str, str], _PendingRequest] = {}
        self._allow_from: dict[str, list[str]] = {}

    async def upsert(
        self, provider: str, id: str, meta: dict[str, Any] | None = None
    ) -> PairingRequest:
        key = (provider, id)
        existing = self._pending.get(key)
        if existing is not None:
            return PairingRequest(provider=provider, id=id, code=existing.code, created=False)

        codes_in_use = {pending.code for pending in self._pending.values()}
        code = generate_pairing_code()
        while code in codes_in_use:
            code = generate_pairing_code()
        self._pending[key] = _PendingRequest(code=code, meta=dict(meta or {}))
        logger.info("Created pairing request", extra={"provider": provider, "sender_id": id})
        return PairingRequest(provider=provider, id=id, code=code, created=True)

    async def read_allow_from(self, provider: str) -> list[str]:
        return list(self._allow_from.get(provider, []))

    async def list_pending(self, provider: str) -> list[tuple[str, str]]:
        """Return ``(id, code)`` pairs awaiting approval for *provider*."""
        return [
            (sender_id, pending.code)
            for (p, sender_id), pending in self._pending.items()
            if p == provider
        ]

    async def approve(self, provider: str, code: str) -> str | None:
        """Approve the pending request with *code*; return the approved sender id."""
        wanted = code.strip().upper()
        for (p, sender_id), pending in list(self._pending.items()):
            if p == provider and pending.code == wanted:
                del self._pending[(p, sender_id)]
                entries = self._allow_from.setdefault(provider, [])
                if sender_id not in entries:
                    entries.append(sender_id)
                logger.info(
                    "Approved pairing request",
                    extra={"provider": provider, "sender_id": sender_id},
                )
                return sender_id
        return None
