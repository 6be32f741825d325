"""Prometheus metrics instrumentation for the Signal monitor.

Metrics exported:
- sigbridge_frames_received_total: Counter of stream frames by event name
- sigbridge_frames_dropped_total: Counter of frames/envelopes dropped, by reason
- sigbridge_reaction_notifications_total: Counter of reaction decisions, by result
- sigbridge_access_decisions_total: Counter of access decisions, by chat type
- sigbridge_pairing_requests_total: Counter of pairing upserts, by created flag
- sigbridge_stream_reconnects_total: Counter of stream reconnect attempts
- sigbridge_source_api_calls_total: Counter of daemon API calls
- sigbridge_errors_total: Counter of errors by type

All metrics include standard labels:
- connector_type: signal
- endpoint_identity: configured account id
- Additional metric-specific labels as needed
"""

from __future__ import annotations

from prometheus_client import Counter

frames_received_total = Counter(
    "sigbridge_frames_received_total",
    "Total number of stream frames received",
    labelnames=["connector_type", "endpoint_identity", "event"],
)

frames_dropped_total = Counter(
    "sigbridge_frames_dropped_total",
    "Total number of frames or envelopes dropped before dispatch",
    labelnames=["connector_type", "endpoint_identity", "reason"],
)

reaction_notifications_total = Counter(
    "sigbridge_reaction_notifications_total",
    "Total number of reaction notification decisions",
    labelnames=["connector_type", "endpoint_identity", "result"],
)

access_decisions_total = Counter(
    "sigbridge_access_decisions_total",
    "Total number of access policy decisions",
    labelnames=["connector_type", "endpoint_identity", "chat_type", "decision"],
)

pairing_requests_total = Counter(
    "sigbridge_pairing_requests_total",
    "Total number of pairing request upserts",
    labelnames=["connector_type", "endpoint_identity", "created"],
)

stream_reconnects_total = Counter(
    "sigbridge_stream_reconnects_total",
    "Total number of event stream reconnect attempts",
    labelnames=["connector_type", "endpoint_identity", "reason"],
)

source_api_calls_total = Counter(
    "sigbridge_source_api_calls_total",
    "Total number of daemon API calls",
    labelnames=["connector_type", "endpoint_identity", "api_method", "status"],
)

errors_total = Counter(
    "sigbridge_errors_total",
    "Total number of errors by type",
    labelnames=["connector_type", "endpoint_identity", "error_type", "operation"],
)


class ConnectorMetrics:
    """Metrics collector for a specific monitor instance.

    Provides convenient methods to record metrics with consistent labels.
    """

    def __init__(self, connector_type: str, endpoint_identity: str) -> None:
        """Initialize metrics collector.

        Args:
            connector_type: Type of connector (e.g., "signal")
            endpoint_identity: Identity of the endpoint (account id)
        """
        self._connector_type = connector_type
        self._endpoint_identity = endpoint_identity

    def _labels(self) -> dict[str, str]:
        return {
            "connector_type": self._connector_type,
            "endpoint_identity": self._endpoint_identity,
        }

    def record_frame_received(self, event: str) -> None:
        frames_received_total.labels(**self._labels(), event=event or "unknown").inc()

    def record_frame_dropped(self, reason: str) -> None:
        """Record a dropped frame.

        Args:
            reason: Why it was dropped ("decode_error", "sync_echo", "no_sender",
                    "self_message", "no_payload")
        """
        frames_dropped_total.labels(**self._labels(), reason=reason).inc()

    def record_reaction_notification(self, result: str) -> None:
        """Record a reaction decision.

        Args:
            result: "enqueued", "duplicate", "suppressed", or "removed"
        """
        reaction_notifications_total.labels(**self._labels(), result=result).inc()

    def record_access_decision(self, chat_type: str, decision: str) -> None:
        access_decisions_total.labels(
            **self._labels(), chat_type=chat_type, decision=decision
        ).inc()

    def record_pairing_request(self, created: bool) -> None:
        pairing_requests_total.labels(**self._labels(), created=str(created).lower()).inc()

    def record_stream_reconnect(self, reason: str) -> None:
        """Record a reconnect attempt.

        Args:
            reason: "error" after a failed stream, "ended" after a clean end
        """
        stream_reconnects_total.labels(**self._labels(), reason=reason).inc()

    def record_source_api_call(self, api_method: str, status: str) -> None:
        """Record a daemon API call.

        Args:
            api_method: API method name (e.g., "check", "getAttachment", "send")
            status: Call status ("success", "error")
        """
        source_api_calls_total.labels(
            **self._labels(), api_method=api_method, status=status
        ).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record an error occurrence.

        Args:
            error_type: Type of error (e.g., "http_error", "timeout", "parse_error")
            operation: Operation that failed (e.g., "event_handler", "attachment_fetch")
        """
        errors_total.labels(**self._labels(), error_type=error_type, operation=operation).inc()


def get_error_type(exc: BaseException) -> str:
    """Extract error type from exception.

    Args:
        exc: Exception instance

    Returns:
        Error type string for metrics labeling
    """
    exc_type = type(exc).__name__

    if "HTTPStatus" in exc_type or "HTTP" in exc_type:
        return "http_error"
    if "Timeout" in exc_type:
        return "timeout"
    if "ConnectionError" in exc_type or "ConnectError" in exc_type:
        return "connection_error"
    if "JSON" in exc_type or "Parse" in exc_type:
        return "parse_error"
    if "ValueError" in exc_type or "ValidationError" in exc_type:
        return "validation_error"

    return exc_type.lower()
