"""Wire models for signal-cli ``receive`` events.

The daemon's SSE stream emits frames shaped like::

    event: receive
    data: {"account": "+1555...", "envelope": {...}, "exception": {...}}

Field names on the wire are camelCase; the models expose snake_case
attributes via aliases and ignore anything they do not know about.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

RECEIVE_EVENT = "receive"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GroupInfo(_WireModel):
    group_id: str | None = Field(default=None, alias="groupId")
    group_name: str | None = Field(default=None, alias="groupName")


class Attachment(_WireModel):
    id: str | None = None
    content_type: str | None = Field(default=None, alias="contentType")
    filename: str | None = None
    size: int | None = None


class Quote(_WireModel):
    text: str | None = None


class DataMessage(_WireModel):
    timestamp: int | None = None
    message: str | None = None
    attachments: list[Attachment] = Field(default_factory=list)
    group_info: GroupInfo | None = Field(default=None, alias="groupInfo")
    quote: Quote | None = None


class EditMessage(_WireModel):
    data_message: DataMessage | None = Field(default=None, alias="dataMessage")


class ReactionMessage(_WireModel):
    emoji: str | None = None
    target_author: str | None = Field(default=None, alias="targetAuthor")
    target_author_uuid: str | None = Field(default=None, alias="targetAuthorUuid")
    target_sent_timestamp: int | None = Field(default=None, alias="targetSentTimestamp")
    is_remove: bool | None = Field(default=None, alias="isRemove")
    group_info: GroupInfo | None = Field(default=None, alias="groupInfo")


class Envelope(_WireModel):
    """One decoded inbound event."""

    source_number: str | None = Field(default=None, alias="sourceNumber")
    source_uuid: str | None = Field(default=None, alias="sourceUuid")
    source_name: str | None = Field(default=None, alias="sourceName")
    timestamp: int | None = None
    data_message: DataMessage | None = Field(default=None, alias="dataMessage")
    edit_message: EditMessage | None = Field(default=None, alias="editMessage")
    sync_message: Any = Field(default=None, alias="syncMessage")
    reaction_message: ReactionMessage | None = Field(default=None, alias="reactionMessage")

    @property
    def is_sync_echo(self) -> bool:
        return self.sync_message is not None

    @property
    def conversational_message(self) -> DataMessage | None:
        """The new or edited message payload, if any."""
        if self.data_message is not None:
            return self.data_message
        if self.edit_message is not None:
            return self.edit_message.data_message
        return None


class ReceiveException(_WireModel):
    message: str | None = None


class ReceivePayload(_WireModel):
    account: str | None = None
    envelope: Envelope | None = None
    exception: ReceiveException | None = None


def decode_receive_frame(frame: dict[str, Any]) -> ReceivePayload | None:
    """Decode a raw SSE frame into a ``ReceivePayload``.

    Returns None for non-``receive`` frames, empty frames, and frames that
    fail to parse. Parse failures are logged, never raised. An ``exception``
    reported by the daemon is logged but the payload is still returned so any
    usable envelope can be processed.
    """
    if frame.get("event") != RECEIVE_EVENT:
        return None
    data = frame.get("data")
    if not data:
        return None

    try:
        raw = json.loads(data) if isinstance(data, str | bytes) else data
        payload = ReceivePayload.model_validate(raw)
    except (json.JSONDecodeError, ValidationError, TypeError) as exc:
        logger.error("Failed to parse Signal event", extra={"error": str(exc)})
        return None

    if payload.exception is not None and payload.exception.message:
        logger.error(
            "Signal receive exception",
            extra={"error": payload.exception.message, "account": payload.account},
        )
    return payload
