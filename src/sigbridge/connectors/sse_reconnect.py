"""Reconnecting supervisor for the Signal daemon event stream.

State machine::

    connecting → streaming → (error → backoff → connecting)
                           | (abort → stopped)

Transport failures are retried forever with jittered exponential backoff and
surface only as log output. The single ``abort`` event is checked before every
connect attempt and interrupts an in-flight backoff wait; once it is set the
loop returns without raising and makes no further attempts.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sigbridge.connectors.metrics import get_error_type
from sigbridge.connectors.signal_client import SignalFrame, stream_signal_events

if TYPE_CHECKING:
    from sigbridge.connectors.metrics import ConnectorMetrics

logger = logging.getLogger(__name__)

StreamSource = Callable[..., Awaitable[None]]


class StreamState(enum.StrEnum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    BACKOFF = "backoff"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ReconnectPolicy:
    initial_s: float = 1.0
    max_s: float = 10.0
    factor: float = 2.0
    jitter: float = 0.2


DEFAULT_RECONNECT_POLICY = ReconnectPolicy()

# Attempts past this exponent reuse the same (capped) delay.
MAX_BACKOFF_EXPONENT = 16


def compute_backoff(policy: ReconnectPolicy, attempt: int) -> float:
    """Delay before reconnect *attempt* (1-based), jittered upward and capped."""
    exponent = min(max(attempt - 1, 0), MAX_BACKOFF_EXPONENT)
    base = policy.initial_s * policy.factor**exponent
    jitter = base * policy.jitter * random.random()
    return min(policy.max_s, base + jitter)


async def sleep_with_abort(delay_s: float, abort: asyncio.Event | None) -> bool:
    """Sleep for *delay_s*, returning early (True) if *abort* is set."""
    if abort is None:
        await asyncio.sleep(delay_s)
        return False
    if abort.is_set():
        return True
    try:
        await asyncio.wait_for(abort.wait(), timeout=delay_s)
    except TimeoutError:
        return False
    return True


async def run_signal_sse_loop(
    *,
    base_url: str,
    account: str | None,
    on_event: Callable[[SignalFrame], None],
    abort: asyncio.Event | None = None,
    stream: StreamSource = stream_signal_events,
    policy: ReconnectPolicy = DEFAULT_RECONNECT_POLICY,
    metrics: ConnectorMetrics | None = None,
    on_state: Callable[[StreamState], None] | None = None,
) -> None:
    """Keep the event subscription alive until *abort* is set.

    *on_event* is called synchronously for each frame in arrival order; it
    must not block (the monitor schedules the real work as a task).
    """

    def _aborted() -> bool:
        return abort is not None and abort.is_set()

    def _set_state(state: StreamState) -> None:
        if on_state is not None:
            on_state(state)

    attempts = 0
    try:
        while not _aborted():
            _set_state(StreamState.CONNECTING)
            try:
                await stream(
                    base_url,
                    account,
                    on_event,
                    on_open=lambda: _set_state(StreamState.STREAMING),
                )
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if _aborted():
                    return
                attempts = min(attempts + 1, MAX_BACKOFF_EXPONENT + 1)
                delay = compute_backoff(policy, attempts)
                _set_state(StreamState.BACKOFF)
                if metrics is not None:
                    metrics.record_error(error_type=get_error_type(exc), operation="event_stream")
                    metrics.record_stream_reconnect(reason="error")
                logger.warning(
                    "Signal event stream failed; reconnecting in %.1fs",
                    delay,
                    extra={"base_url": base_url, "attempt": attempts, "error": str(exc)},
                )
                if await sleep_with_abort(delay, abort):
                    return
                continue

            if _aborted():
                return
            attempts = 0
            delay = compute_backoff(policy, 1)
            _set_state(StreamState.BACKOFF)
            if metrics is not None:
                metrics.record_stream_reconnect(reason="ended")
            logger.info(
                "Signal event stream ended; reconnecting in %.1fs",
                delay,
                extra={"base_url": base_url},
            )
            if await sleep_with_abort(delay, abort):
                return
    finally:
        _set_state(StreamState.STOPPED)
