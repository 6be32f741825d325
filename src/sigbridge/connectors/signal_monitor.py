"""Signal monitor: inbound event resolution and notification pipeline.

This module consumes the signal-cli daemon's event stream for one account and
turns each ``receive`` frame into at most one reaction notification and at
most one conversational message handed to the reply pipeline.

Per frame:
1. Decode and validate the envelope (bad frames are logged and dropped)
2. Drop sync echoes, envelopes without a sender, and the bot's own messages
3. Reaction facet → decision engine → session system-event queue
4. Message facet → access policy (pairing on demand) → reply dispatch

The two facets are independent: a frame carrying both a reaction and a
message runs both paths. A per-frame ``FrameGuard`` keeps per-conversation
side effects (pairing issuance, last-route update) to one per frame.

Frames are dispatched in arrival order but each handler runs as its own task,
so completion order is not guaranteed. Handler failures are logged and never
reach the stream loop.

The monitor does not format, chunk, or send agent replies; it builds an
``InboundMessageContext`` and hands it to the configured ``ReplyDispatcher``.

Environment Variables:
    SIGBRIDGE_CONFIG: Path to sigbridge.toml (optional, default ./sigbridge.toml)
    SIGBRIDGE_ACCOUNT_ID: Signal account id to monitor (optional)
    SIGBRIDGE_MEDIA_DIR: Directory for inbound attachments (optional, default data/media)
"""

from __future__ import annotations

import asyncio
import base64
import functools
import logging
import os
import signal
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal, Protocol

import httpx
from opentelemetry import trace

from sigbridge.access import AccessDecision, evaluate_access
from sigbridge.config import ResolvedSignalAccount, load_config, resolve_signal_account
from sigbridge.connectors.health import HealthServer, HealthStatus, create_health_app
from sigbridge.connectors.metrics import ConnectorMetrics, get_error_type
from sigbridge.connectors.signal_client import (
    SignalFrame,
    SignalRpcSender,
    signal_check,
    signal_rpc_request,
    stream_signal_events,
)
from sigbridge.connectors.signal_models import (
    RECEIVE_EVENT,
    Attachment,
    DataMessage,
    Envelope,
    ReactionMessage,
    decode_receive_frame,
)
from sigbridge.connectors.sse_reconnect import (
    DEFAULT_RECONNECT_POLICY,
    ReconnectPolicy,
    StreamSource,
    StreamState,
    run_signal_sse_loop,
    sleep_with_abort,
)
from sigbridge.core.logging import (
    bind_stream_state,
    configure_logging,
    frame_log_context,
    monitor_log_context,
)
from sigbridge.identity import (
    ReactionTarget,
    SenderIdentity,
    candidate_matches_account,
    format_pairing_id_line,
    format_sender_display,
    format_sender_id,
    is_own_account,
    resolve_peer_id,
    resolve_reaction_targets,
    resolve_recipient,
    resolve_sender,
)
from sigbridge.media import LocalMediaStore, MediaStore, media_kind_from_mime
from sigbridge.pairing import (
    AllowFromStore,
    InMemoryPairingStore,
    PairingStore,
    build_pairing_reply,
)
from sigbridge.reactions import (
    build_reaction_context_key,
    build_reaction_event_text,
    should_emit_reaction_notification,
)
from sigbridge.routing import (
    AgentRoute,
    DefaultSessionRouter,
    RoutePeer,
    SessionRouter,
    SessionStore,
)
from sigbridge.system_events import NotificationSink, SystemEventQueue

logger = logging.getLogger(__name__)
_tracer = trace.get_tracer(__name__)

PROVIDER = "signal"
DEFAULT_READY_TIMEOUT_S = 10.0
READY_POLL_INTERVAL_S = 0.15
DEFAULT_GROUP_NAME = "Signal Group"

ChatType = Literal["direct", "group"]


class SignalDaemonNotReadyError(Exception):
    """Raised when the daemon never becomes reachable during startup."""


class AttachmentTooLargeError(Exception):
    """Raised when an attachment's declared size exceeds the media cap."""

    def __init__(self, attachment_id: str, max_bytes: int) -> None:
        self.attachment_id = attachment_id
        self.max_bytes = max_bytes
        super().__init__(
            f"Signal attachment {attachment_id} exceeds "
            f"{max_bytes / (1024 * 1024):.0f}MB limit"
        )


@dataclass(frozen=True)
class InboundMessageContext:
    """Canonical inbound message handed to the reply pipeline."""

    body: str
    raw_body: str
    from_address: str
    to_address: str
    session_key: str
    account_id: str
    chat_type: ChatType
    sender_name: str
    sender_id: str
    command_authorized: bool
    group_subject: str | None = None
    message_sid: str | None = None
    timestamp: int | None = None
    media_path: str | None = None
    media_type: str | None = None
    provider: str = PROVIDER
    surface: str = PROVIDER
    originating_channel: str = PROVIDER

    @property
    def originating_to(self) -> str:
        return self.to_address


class ReplyDispatcher(Protocol):
    async def dispatch(self, ctx: InboundMessageContext) -> None: ...


class MessageSender(Protocol):
    async def send_text(self, to: str, text: str) -> None: ...


class DaemonHandle(Protocol):
    def stop(self) -> None: ...


class DaemonLauncher(Protocol):
    def start(self) -> DaemonHandle: ...


class LoggingReplyDispatcher:
    """Reply dispatcher that only records inbound messages in the log."""

    async def dispatch(self, ctx: InboundMessageContext) -> None:
        logger.info(
            "Signal inbound message",
            extra={
                "from": ctx.from_address,
                "session_key": ctx.session_key,
                "chat_type": ctx.chat_type,
                "command_authorized": ctx.command_authorized,
                "length": len(ctx.body),
            },
        )


@dataclass
class SignalMonitorDeps:
    """External collaborators of the monitor."""

    allow_from_store: AllowFromStore
    pairing_store: PairingStore
    router: SessionRouter
    sink: NotificationSink
    reply_dispatcher: ReplyDispatcher
    session_store: SessionStore | None = None
    sender: MessageSender | None = None
    media_store: MediaStore | None = None
    stream: StreamSource = stream_signal_events
    http_client: httpx.AsyncClient | None = None
    daemon: DaemonLauncher | None = None


@dataclass
class FrameGuard:
    """Claims per-frame side effects so each happens at most once per frame."""

    _claimed: set[str] = field(default_factory=set)

    def claim(self, effect: str) -> bool:
        if effect in self._claimed:
            return False
        self._claimed.add(effect)
        return True


def format_agent_envelope(
    provider: str, from_label: str, timestamp_ms: int | None, body: str
) -> str:
    """Prefix *body* with a ``[Provider from timestamp]`` header for the agent."""
    header = [provider, from_label]
    if timestamp_ms:
        ts = datetime.fromtimestamp(timestamp_ms / 1000, UTC)
        header.append(ts.strftime("%Y-%m-%dT%H:%MZ"))
    return f"[{' '.join(header)}] {body}"


def select_target_label(targets: list[ReactionTarget], account: str | None) -> str | None:
    """Label for the reacted-to author: the candidate matching *account*, else the first."""
    for target in targets:
        if candidate_matches_account(target, account):
            return target.display
    return targets[0].display if targets else None


class SignalMonitor:
    """Inbound pipeline for one Signal account.

    Responsibilities:
    - Supervise the daemon event stream until ``abort`` is set
    - Resolve sender identity and drop self/sync/sender-less envelopes
    - Raise deduplicated reaction notifications
    - Gate conversational messages through the access policy
    - Hand authorized messages to the reply dispatcher

    Does NOT:
    - Spawn the daemon (an optional ``DaemonLauncher`` does)
    - Format or send agent replies
    - Persist pairing or session state
    """

    def __init__(
        self,
        account: ResolvedSignalAccount,
        deps: SignalMonitorDeps,
        *,
        abort: asyncio.Event | None = None,
        reconnect_policy: ReconnectPolicy = DEFAULT_RECONNECT_POLICY,
        ready_timeout_s: float = DEFAULT_READY_TIMEOUT_S,
    ) -> None:
        self._account_info = account
        self._cfg = account.config
        self._deps = deps
        self._abort = abort or asyncio.Event()
        self._reconnect_policy = reconnect_policy
        self._ready_timeout_s = ready_timeout_s

        self._account = self._cfg.account
        self._base_url = account.base_url
        self._inflight: set[asyncio.Task[None]] = set()

        self._metrics = ConnectorMetrics(
            connector_type=PROVIDER, endpoint_identity=account.account_id
        )

        # Health tracking
        self._start_time = time.time()
        self._last_event_at: float | None = None
        self._stream_state: StreamState | None = None

    @property
    def abort(self) -> asyncio.Event:
        return self._abort

    # -------------------------------------------------------------------------
    # Main entry point
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        """Run until aborted.

        Raises
        ------
        SignalDaemonNotReadyError
            If a launched daemon never becomes reachable.
        """
        with monitor_log_context(self._account_info.account_id):
            await self._run()

    async def _run(self) -> None:
        daemon_handle = self._deps.daemon.start() if self._deps.daemon is not None else None

        logger.info(
            "Starting Signal monitor",
            extra={
                "base_url": self._base_url,
                "dm_policy": str(self._cfg.dm_policy),
                "group_policy": str(self._cfg.group_policy),
                "reaction_notifications": str(self._cfg.reaction_notifications),
            },
        )
        try:
            if daemon_handle is not None:
                await self.wait_for_daemon_ready()

            await run_signal_sse_loop(
                base_url=self._base_url,
                account=self._account,
                on_event=self._dispatch_frame,
                abort=self._abort,
                stream=self._deps.stream,
                policy=self._reconnect_policy,
                metrics=self._metrics,
                on_state=self._set_stream_state,
            )
        except Exception:
            if self._abort.is_set():
                return
            raise
        finally:
            if daemon_handle is not None:
                daemon_handle.stop()
            await self.drain()
            logger.info("Signal monitor stopped")

    async def wait_for_daemon_ready(self) -> None:
        """Poll the daemon until it answers, ``abort`` is set, or the timeout passes."""
        started = time.monotonic()
        last_error: str | None = None

        while time.monotonic() - started < self._ready_timeout_s:
            if self._abort.is_set():
                return
            result = await signal_check(self._base_url, 1.0, client=self._deps.http_client)
            self._metrics.record_source_api_call("check", "success" if result.ok else "error")
            if result.ok:
                return
            last_error = result.error or (
                f"HTTP {result.status}" if result.status else "unreachable"
            )
            if await sleep_with_abort(READY_POLL_INTERVAL_S, self._abort):
                return

        logger.error(
            "Signal daemon not ready after %.1fs",
            self._ready_timeout_s,
            extra={"base_url": self._base_url, "error": last_error},
        )
        raise SignalDaemonNotReadyError(
            f"signal daemon not ready ({last_error or 'unknown error'})"
        )

    async def drain(self, timeout_s: float = 5.0) -> None:
        """Wait for in-flight frame handlers to finish."""
        if not self._inflight:
            return
        pending = list(self._inflight)
        _, still_running = await asyncio.wait(pending, timeout=timeout_s)
        for task in still_running:
            task.cancel()

    async def get_health_status(self) -> HealthStatus:
        uptime = time.time() - self._start_time
        last_event_at = None
        if self._last_event_at is not None:
            last_event_at = datetime.fromtimestamp(self._last_event_at, UTC).isoformat()

        if self._stream_state is None:
            connectivity = "unknown"
        elif self._stream_state is StreamState.STREAMING:
            connectivity = "connected"
        elif self._stream_state is StreamState.CONNECTING:
            connectivity = "unknown"
        else:
            connectivity = "disconnected"

        return HealthStatus(
            status="unhealthy" if connectivity == "disconnected" else "healthy",
            uptime_seconds=uptime,
            last_event_at=last_event_at,
            stream_state=str(self._stream_state or "idle"),
            source_api_connectivity=connectivity,
            timestamp=datetime.now(UTC).isoformat(),
        )

    # -------------------------------------------------------------------------
    # Internal: dispatch
    # -------------------------------------------------------------------------

    def _set_stream_state(self, state: StreamState) -> None:
        self._stream_state = state
        bind_stream_state(state)

    def _dispatch_frame(self, frame: SignalFrame) -> None:
        """Schedule *frame* for handling without waiting on it."""
        self._last_event_at = time.time()
        self._set_stream_state(StreamState.STREAMING)
        task = asyncio.create_task(self._run_handler(frame))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run_handler(self, frame: SignalFrame) -> None:
        event = frame.get("event")
        with (
            frame_log_context(event),
            _tracer.start_as_current_span(
                "signal.frame",
                attributes={"signal.account_id": self._account_info.account_id},
            ),
        ):
            try:
                await self.handle_frame(frame)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._metrics.record_error(
                    error_type=get_error_type(exc), operation="event_handler"
                )
                logger.exception("Signal event handler failed")

    async def handle_frame(self, frame: SignalFrame) -> None:
        """Process one raw stream frame end to end."""
        event_name = frame.get("event", "")
        self._metrics.record_frame_received(event_name)

        payload = decode_receive_frame(frame)
        if payload is None:
            if event_name == RECEIVE_EVENT and frame.get("data"):
                self._metrics.record_frame_dropped("decode_error")
            return

        envelope = payload.envelope
        if envelope is None:
            return
        if envelope.is_sync_echo:
            self._metrics.record_frame_dropped("sync_echo")
            return

        sender = resolve_sender(
            envelope.source_number,
            envelope.source_uuid,
            envelope.source_name,
            account=self._account,
        )
        if sender is None:
            self._metrics.record_frame_dropped("no_sender")
            logger.debug("Dropped Signal envelope without sender")
            return
        if is_own_account(sender, self._account):
            self._metrics.record_frame_dropped("self_message")
            return

        reaction = envelope.reaction_message
        data_message = envelope.conversational_message
        if reaction is None and data_message is None:
            self._metrics.record_frame_dropped("no_payload")
            return

        guard = FrameGuard()
        if reaction is not None:
            try:
                await self._handle_reaction(envelope, reaction, sender)
            except Exception as exc:
                self._metrics.record_error(error_type=get_error_type(exc), operation="reaction")
                logger.exception("Signal reaction handling failed")
        if data_message is not None:
            await self._handle_message(envelope, data_message, sender, guard)

    def _route(self, is_group: bool, group_id: str | None, sender: SenderIdentity) -> AgentRoute:
        peer = RoutePeer(
            kind="group" if is_group else "dm",
            id=(group_id or "unknown") if is_group else resolve_peer_id(sender),
        )
        return self._deps.router.resolve(PROVIDER, self._account_info.account_id, peer)

    # -------------------------------------------------------------------------
    # Internal: reaction path
    # -------------------------------------------------------------------------

    async def _handle_reaction(
        self,
        envelope: Envelope,
        reaction: ReactionMessage,
        sender: SenderIdentity,
    ) -> None:
        if reaction.is_remove:
            self._metrics.record_reaction_notification("removed")
            return

        emoji_label = (reaction.emoji or "").strip() or "emoji"
        sender_name = envelope.source_name or format_sender_display(sender)
        logger.debug("Signal reaction: %s from %s", emoji_label, sender_name)

        targets = resolve_reaction_targets(reaction)
        should_notify = should_emit_reaction_notification(
            self._cfg.reaction_notifications,
            self._account,
            targets,
            sender,
            self._cfg.reaction_allowlist,
        )
        if not should_notify:
            self._metrics.record_reaction_notification("suppressed")
            return

        group_info = reaction.group_info
        group_id = group_info.group_id if group_info else None
        group_name = group_info.group_name if group_info else None
        is_group = bool(group_id)
        route = self._route(is_group, group_id, sender)

        message_id = (
            str(reaction.target_sent_timestamp) if reaction.target_sent_timestamp else "unknown"
        )
        text = build_reaction_event_text(
            emoji_label=emoji_label,
            actor_label=sender_name,
            message_id=message_id,
            target_label=select_target_label(targets, self._account),
            group_label=f"{group_name or DEFAULT_GROUP_NAME} id:{group_id}" if is_group else None,
        )
        context_key = build_reaction_context_key(
            message_id, format_sender_id(sender), emoji_label, group_id
        )
        enqueued = self._deps.sink.enqueue(
            text, session_key=route.session_key, context_key=context_key
        )
        self._metrics.record_reaction_notification("enqueued" if enqueued else "duplicate")

    # -------------------------------------------------------------------------
    # Internal: message path
    # -------------------------------------------------------------------------

    async def _read_store_allow_from(self) -> list[str]:
        try:
            return list(await self._deps.allow_from_store.read_allow_from(PROVIDER))
        except Exception as exc:
            self._metrics.record_error(error_type=get_error_type(exc), operation="allow_store_read")
            logger.warning("Failed to read Signal allow-from store", extra={"error": str(exc)})
            return []

    async def _handle_message(
        self,
        envelope: Envelope,
        data_message: DataMessage,
        sender: SenderIdentity,
        guard: FrameGuard,
    ) -> None:
        sender_display = format_sender_display(sender)
        sender_recipient = resolve_recipient(sender)
        if not sender_recipient:
            return

        group_info = data_message.group_info
        group_id = group_info.group_id if group_info else None
        group_name = group_info.group_name if group_info else None
        is_group = bool(group_id)
        chat_type: ChatType = "group" if is_group else "direct"

        store_allow_from = await self._read_store_allow_from()
        access = evaluate_access(
            sender,
            is_group=is_group,
            dm_policy=self._cfg.dm_policy,
            group_policy=self._cfg.group_policy,
            allow_from=self._cfg.allow_from,
            group_allow_from=self._cfg.effective_group_allow_from,
            store_allow_from=store_allow_from,
        )
        self._metrics.record_access_decision(chat_type, str(access.decision))

        if access.decision is AccessDecision.DENY_WITH_PAIRING:
            if guard.claim("pairing"):
                await self._issue_pairing(envelope, sender)
            return
        if access.decision is AccessDecision.DENY_SILENT:
            logger.debug(
                "Blocked Signal %s message from %s (%s)",
                chat_type,
                sender_display,
                access.reason,
            )
            return

        message_text = (data_message.message or "").strip()
        media_path, media_type = await self._maybe_fetch_first_attachment(
            data_message, sender_recipient, group_id
        )

        kind = media_kind_from_mime(media_type)
        if kind:
            placeholder = f"<media:{kind}>"
        elif data_message.attachments:
            placeholder = "<media:attachment>"
        else:
            placeholder = ""

        quote_text = (data_message.quote.text or "").strip() if data_message.quote else ""
        body_text = message_text or placeholder or quote_text
        if not body_text:
            return

        sender_name = envelope.source_name or sender_display
        if is_group:
            from_label = f"{group_name or DEFAULT_GROUP_NAME} id:{group_id}"
        else:
            from_label = f"{sender_name} id:{sender_display}"
        body = format_agent_envelope("Signal", from_label, envelope.timestamp, body_text)

        route = self._route(is_group, group_id, sender)
        signal_to = f"group:{group_id}" if is_group else f"signal:{sender_recipient}"
        ctx = InboundMessageContext(
            body=body,
            raw_body=body_text,
            from_address=signal_to,
            to_address=signal_to,
            session_key=route.session_key,
            account_id=route.account_id,
            chat_type=chat_type,
            group_subject=group_name if is_group else None,
            sender_name=sender_name,
            sender_id=sender_display,
            message_sid=str(envelope.timestamp) if envelope.timestamp else None,
            timestamp=envelope.timestamp,
            media_path=media_path,
            media_type=media_type,
            command_authorized=access.command_authorized,
        )

        if not is_group and self._deps.session_store is not None and guard.claim("last_route"):
            try:
                await self._deps.session_store.update_last_route(
                    route.main_session_key,
                    provider=PROVIDER,
                    to=sender_recipient,
                    account_id=route.account_id,
                )
            except Exception as exc:
                self._metrics.record_error(error_type=get_error_type(exc), operation="last_route")
                logger.warning("Failed to update Signal last route", extra={"error": str(exc)})

        logger.debug(
            "Signal inbound: from=%s len=%d preview=%r",
            ctx.from_address,
            len(body),
            body[:200],
        )
        await self._deps.reply_dispatcher.dispatch(ctx)

    async def _issue_pairing(self, envelope: Envelope, sender: SenderIdentity) -> None:
        sender_id = format_sender_id(sender)
        request = await self._deps.pairing_store.upsert(
            PROVIDER, sender_id, {"name": envelope.source_name}
        )
        self._metrics.record_pairing_request(request.created)
        if not request.created:
            logger.debug("Signal pairing request already pending", extra={"sender_id": sender_id})
            return

        logger.info("Signal pairing request", extra={"sender_id": sender_id})
        if self._deps.sender is None:
            logger.warning("No Signal sender configured; pairing code not delivered")
            return
        try:
            await self._deps.sender.send_text(
                f"signal:{resolve_recipient(sender)}",
                build_pairing_reply(PROVIDER, format_pairing_id_line(sender), request.code),
            )
        except Exception as exc:
            self._metrics.record_error(error_type=get_error_type(exc), operation="pairing_reply")
            logger.warning(
                "Signal pairing reply failed",
                extra={"sender_id": sender_id, "error": str(exc)},
            )

    # -------------------------------------------------------------------------
    # Internal: attachments
    # -------------------------------------------------------------------------

    async def _maybe_fetch_first_attachment(
        self,
        data_message: DataMessage,
        sender_recipient: str,
        group_id: str | None,
    ) -> tuple[str | None, str | None]:
        if not data_message.attachments or self._cfg.ignore_attachments:
            return None, None
        first = data_message.attachments[0]
        if not first.id or self._deps.media_store is None:
            return None, None
        try:
            fetched = await self.fetch_attachment(first, sender=sender_recipient, group_id=group_id)
        except Exception as exc:
            self._metrics.record_error(error_type=get_error_type(exc), operation="attachment_fetch")
            logger.error("Signal attachment fetch failed", extra={"error": str(exc)})
            return None, None
        if fetched is None:
            return None, None
        path, content_type = fetched
        return path, content_type or first.content_type

    async def fetch_attachment(
        self,
        attachment: Attachment,
        *,
        sender: str | None = None,
        group_id: str | None = None,
    ) -> tuple[str, str | None] | None:
        """Download *attachment* via ``getAttachment`` and store it.

        Returns ``(path, content_type)`` or None when nothing was fetched.

        Raises
        ------
        AttachmentTooLargeError
            If the declared size exceeds the account's media cap.
        """
        if not attachment.id or self._deps.media_store is None:
            return None
        max_bytes = self._cfg.media_max_bytes
        if attachment.size and attachment.size > max_bytes:
            raise AttachmentTooLargeError(attachment.id, max_bytes)

        params: dict[str, Any] = {"id": attachment.id}
        if self._account:
            params["account"] = self._account
        if group_id:
            params["groupId"] = group_id
        elif sender:
            params["recipient"] = sender
        else:
            return None

        try:
            result = await signal_rpc_request(
                "getAttachment",
                params,
                base_url=self._base_url,
                client=self._deps.http_client,
            )
        except Exception:
            self._metrics.record_source_api_call("getAttachment", "error")
            raise
        self._metrics.record_source_api_call("getAttachment", "success")

        data = result.get("data") if isinstance(result, dict) else None
        if not data:
            return None
        saved = await self._deps.media_store.save(
            base64.b64decode(data), attachment.content_type, max_bytes
        )
        return saved.path, saved.content_type


async def monitor_signal_provider(
    account: ResolvedSignalAccount,
    deps: SignalMonitorDeps,
    *,
    abort: asyncio.Event | None = None,
    reconnect_policy: ReconnectPolicy = DEFAULT_RECONNECT_POLICY,
    ready_timeout_s: float = DEFAULT_READY_TIMEOUT_S,
) -> None:
    """Monitor one Signal account until *abort* is set."""
    monitor = SignalMonitor(
        account,
        deps,
        abort=abort,
        reconnect_policy=reconnect_policy,
        ready_timeout_s=ready_timeout_s,
    )
    await monitor.run()


async def run_signal_monitor(config_path: Path | None = None) -> None:
    """CLI entry point for running the Signal monitor.

    Reads ``sigbridge.toml`` and runs until SIGINT/SIGTERM.
    """
    config = load_config(config_path)
    resolved = resolve_signal_account(config, os.environ.get("SIGBRIDGE_ACCOUNT_ID") or None)
    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_file=Path(config.logging.log_file) if config.logging.log_file else None,
    )

    abort = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, abort.set)

    store = InMemoryPairingStore()
    media_dir = Path(os.environ.get("SIGBRIDGE_MEDIA_DIR", "data/media"))

    async with httpx.AsyncClient(timeout=10.0) as client:
        deps = SignalMonitorDeps(
            allow_from_store=store,
            pairing_store=store,
            router=DefaultSessionRouter(),
            sink=SystemEventQueue(),
            reply_dispatcher=LoggingReplyDispatcher(),
            sender=SignalRpcSender(resolved.base_url, resolved.config.account, client=client),
            media_store=LocalMediaStore(media_dir),
            stream=functools.partial(stream_signal_events, client=client),
            http_client=client,
        )
        monitor = SignalMonitor(resolved, deps, abort=abort)

        health_server: HealthServer | None = None
        if config.health.enabled:
            health_server = HealthServer(
                create_health_app(monitor.get_health_status, pairing_admin=store),
                port=config.health.port,
            )
            health_server.start()
        try:
            await monitor.run()
        finally:
            if health_server is not None:
                health_server.stop()


def main() -> None:
    asyncio.run(run_signal_monitor())


if __name__ == "__main__":
    main()
