"""Logging for the Signal monitor.

Existing ``logging.getLogger(__name__)`` call sites are rendered by structlog
(``text`` for a console, ``json`` for log shipping). Each record carries the
fields the monitor has bound through :mod:`structlog.contextvars`:

- ``account_id`` and ``stream_state`` for the lifetime of a monitor run
  (:func:`monitor_log_context`, :func:`bind_stream_state`)
- ``frame_event`` while a frame handler runs (:func:`frame_log_context`)

Frame handlers run in their own tasks, each with a copy of the supervisor's
context, so per-frame fields never leak into the supervisor or into sibling
frames. When a frame span is recording, ``trace_id``/``span_id`` are added too.
"""

from __future__ import annotations

import logging
import sys
from contextlib import AbstractContextManager
from pathlib import Path

import structlog
from opentelemetry import trace

_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "uvicorn.error")


def monitor_log_context(account_id: str) -> AbstractContextManager[None]:
    """Bind the run-wide fields; they are restored when the run returns."""
    return structlog.contextvars.bound_contextvars(account_id=account_id, stream_state="idle")


def bind_stream_state(state: str) -> None:
    structlog.contextvars.bind_contextvars(stream_state=str(state))


def frame_log_context(event: str | None) -> AbstractContextManager[None]:
    return structlog.contextvars.bound_contextvars(frame_event=event or "message")


def add_trace_ids(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Attach the current span's ids; records outside a span get none."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = trace.format_trace_id(ctx.trace_id)
        event_dict["span_id"] = trace.format_span_id(ctx.span_id)
    return event_dict


def _pre_chain(time_fmt: str) -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=time_fmt),
        add_trace_ids,
        structlog.stdlib.ExtraAdder(),
    ]


def _formatter(
    renderer: structlog.types.Processor, pre_chain: list[structlog.types.Processor]
) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=pre_chain,
    )


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_file: Path | None = None,
) -> None:
    """Install the console handler and, if *log_file* is set, a JSON file handler.

    Safe to call again: earlier root handlers are closed and replaced.
    """
    if fmt == "json":
        pre_chain = _pre_chain("iso")
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        pre_chain = _pre_chain("%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer()

    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(renderer, pre_chain))
    root.addHandler(console)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            _formatter(structlog.processors.JSONRenderer(), _pre_chain("iso"))
        )
        root.addHandler(file_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
