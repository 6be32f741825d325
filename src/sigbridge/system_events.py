"""Session-scoped system event queue with context-key deduplication.

System events are short text notices (e.g. "Signal reaction added: ...")
queued for an agent session and drained into the next agent turn. The queue
is the authority on suppressing repeats: an event whose ``context_key`` has
already been accepted for the same session is dropped, so a re-delivered
provider event notifies at most once.

Bounds:
    MAX_EVENTS_PER_SESSION:  oldest events are evicted first
    MAX_CONTEXT_KEYS:        remembered dedup keys per session (LRU)
    MAX_DEDUP_SESSIONS:      sessions whose dedup keys are remembered (LRU);
                             the least recently notified session forgets first
"""

from __future__ import annotations

import logging
from collections import OrderedDict, deque
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

logger = logging.getLogger(__name__)

MAX_EVENTS_PER_SESSION = 20
MAX_CONTEXT_KEYS = 500
MAX_DEDUP_SESSIONS = 1000


@dataclass(frozen=True)
class SystemEvent:
    text: str
    session_key: str
    context_key: str | None
    enqueued_at: datetime


class NotificationSink(Protocol):
    """Sink for notification text; must be idempotent per ``context_key``."""

    def enqueue(self, text: str, *, session_key: str, context_key: str | None = None) -> bool:
        """Queue *text* for *session_key*; return False if suppressed as a duplicate."""
        ...


class SystemEventQueue:
    """In-process implementation of :class:`NotificationSink`."""

    def __init__(
        self,
        max_events: int = MAX_EVENTS_PER_SESSION,
        max_context_keys: int = MAX_CONTEXT_KEYS,
        max_sessions: int = MAX_DEDUP_SESSIONS,
    ) -> None:
        self._max_events = max_events
        self._max_context_keys = max_context_keys
        self._max_sessions = max_sessions
        self._events: dict[str, deque[SystemEvent]] = {}
        self._seen: OrderedDict[str, OrderedDict[str, None]] = OrderedDict()

    def enqueue(self, text: str, *, session_key: str, context_key: str | None = None) -> bool:
        cleaned = text.strip()
        if not cleaned or not session_key:
            return False

        if context_key:
            seen = self._seen_for(session_key)
            if context_key in seen:
                seen.move_to_end(context_key)
                logger.debug(
                    "Suppressed duplicate system event",
                    extra={"session_key": session_key, "context_key": context_key},
                )
                return False
            seen[context_key] = None
            while len(seen) > self._max_context_keys:
                seen.popitem(last=False)

        queue = self._events.setdefault(session_key, deque(maxlen=self._max_events))
        queue.append(
            SystemEvent(
                text=cleaned,
                session_key=session_key,
                context_key=context_key,
                enqueued_at=datetime.now(UTC),
            )
        )
        return True

    def _seen_for(self, session_key: str) -> OrderedDict[str, None]:
        seen = self._seen.get(session_key)
        if seen is None:
            seen = self._seen[session_key] = OrderedDict()
            while len(self._seen) > self._max_sessions:
                self._seen.popitem(last=False)
        else:
            self._seen.move_to_end(session_key)
        return seen

    def peek(self, session_key: str) -> list[str]:
        """Return queued event texts for *session_key* without removing them."""
        return [event.text for event in self._events.get(session_key, ())]

    def drain(self, session_key: str) -> list[SystemEvent]:
        """Remove and return all queued events for *session_key*.

        Dedup keys are kept, so a late re-delivery stays suppressed.
        """
        queue = self._events.pop(session_key, None)
        return list(queue) if queue else []

    def has_events(self, session_key: str) -> bool:
        return bool(self._events.get(session_key))

    def reset(self) -> None:
        self._events.clear()
        self._seen.clear()
