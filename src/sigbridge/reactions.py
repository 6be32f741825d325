"""Reaction notification decisions for Signal.

A reaction is metadata about an earlier message, not a new conversational
message. Whether it is surfaced to the agent (as a session system event) is
controlled per account by ``reaction_notifications``:

- ``off``: never
- ``own``: only reactions to messages authored by the configured account
- ``allowlist``: only reactions *from* senders on ``reaction_allowlist``
- ``all``: every added reaction

Removals are never surfaced; callers drop them before asking.
"""

from __future__ import annotations

import enum
from collections.abc import Sequence

from sigbridge.identity import (
    ReactionTarget,
    SenderIdentity,
    candidate_matches_account,
    is_sender_allowed,
)

PROVIDER = "signal"


class ReactionNotificationMode(enum.StrEnum):
    OFF = "off"
    OWN = "own"
    ALLOWLIST = "allowlist"
    ALL = "all"


DEFAULT_REACTION_MODE = ReactionNotificationMode.OWN


def should_emit_reaction_notification(
    mode: ReactionNotificationMode | None,
    account: str | None,
    targets: Sequence[ReactionTarget],
    sender: SenderIdentity | None,
    allowlist: Sequence[str] = (),
) -> bool:
    """Decide whether an added reaction should raise a notification.

    In ``own`` mode every target candidate is checked under its own matching
    rule, so a payload carrying both a UUID and a phone target matches a
    phone-configured account through the phone candidate.
    """
    effective = ReactionNotificationMode(mode) if mode else DEFAULT_REACTION_MODE
    if effective is ReactionNotificationMode.OFF:
        return False
    if effective is ReactionNotificationMode.OWN:
        if not account or not account.strip() or not targets:
            return False
        return any(candidate_matches_account(target, account) for target in targets)
    if effective is ReactionNotificationMode.ALLOWLIST:
        if sender is None or not allowlist:
            return False
        return is_sender_allowed(sender, allowlist)
    return True


def build_reaction_event_text(
    emoji_label: str,
    actor_label: str,
    message_id: str,
    target_label: str | None = None,
    group_label: str | None = None,
) -> str:
    text = f"Signal reaction added: {emoji_label} by {actor_label} msg {message_id}"
    if target_label:
        text = f"{text} from {target_label}"
    if group_label:
        text = f"{text} in {group_label}"
    return text


def build_reaction_context_key(
    message_id: str,
    sender_id: str,
    emoji_label: str,
    group_id: str | None = None,
) -> str:
    """Deterministic dedup key for one added reaction.

    Re-delivery of the same provider event yields the same key, so the
    notification sink can suppress the repeat.
    """
    parts = [PROVIDER, "reaction", "added", message_id, sender_id, emoji_label, group_id or ""]
    return ":".join(part for part in parts if part)
