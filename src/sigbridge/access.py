"""Access policy for inbound Signal conversational messages.

Direct messages and group messages are gated independently:

- ``dm_policy`` decides whether a direct sender may talk to the agent, and
  whether an unknown sender is offered a pairing code.
- ``group_policy`` decides whether group traffic is read at all, and from whom.

Allow-lists are the union of the static configuration and the persisted
pairing approvals, never the intersection. Reaction events do not pass
through this module.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass

from sigbridge.identity import SenderIdentity, is_sender_allowed


class DmPolicy(enum.StrEnum):
    OPEN = "open"
    PAIRING = "pairing"
    DISABLED = "disabled"
    ALLOWLIST = "allowlist"


class GroupPolicy(enum.StrEnum):
    OPEN = "open"
    ALLOWLIST = "allowlist"
    DISABLED = "disabled"


class AccessDecision(enum.StrEnum):
    ALLOW = "allow"
    DENY_SILENT = "deny_silent"
    DENY_WITH_PAIRING = "deny_with_pairing"


@dataclass(frozen=True)
class AccessResult:
    """Outcome of evaluating one conversational message.

    ``command_authorized`` is computed independently of ``decision``: for
    groups with an empty allow-list every reader may issue commands.
    """

    decision: AccessDecision
    command_authorized: bool
    reason: str

    @property
    def allowed(self) -> bool:
        return self.decision is AccessDecision.ALLOW


def normalize_allow_list(raw: Iterable[str | int] | None) -> list[str]:
    """Stringify, trim, and drop empty allow-list entries."""
    return [str(entry).strip() for entry in (raw or []) if str(entry).strip()]


def effective_allow_list(static: Iterable[str], stored: Iterable[str]) -> list[str]:
    """Union of configured and persisted entries, order-preserving and de-duplicated."""
    merged: list[str] = []
    seen: set[str] = set()
    for entry in [*static, *stored]:
        if entry not in seen:
            seen.add(entry)
            merged.append(entry)
    return merged


def evaluate_direct_message(
    sender: SenderIdentity,
    policy: DmPolicy,
    allow_from: Iterable[str],
    store_allow_from: Iterable[str] = (),
) -> AccessResult:
    policy = DmPolicy(policy)
    if policy is DmPolicy.DISABLED:
        return AccessResult(AccessDecision.DENY_SILENT, False, "dm_policy=disabled")

    effective = effective_allow_list(allow_from, store_allow_from)
    if is_sender_allowed(sender, effective):
        return AccessResult(AccessDecision.ALLOW, True, "sender in allow_from")
    if policy is DmPolicy.OPEN:
        return AccessResult(AccessDecision.ALLOW, True, "dm_policy=open")
    if policy is DmPolicy.PAIRING:
        return AccessResult(AccessDecision.DENY_WITH_PAIRING, False, "dm_policy=pairing")
    return AccessResult(AccessDecision.DENY_SILENT, False, f"dm_policy={policy}")


def evaluate_group_message(
    sender: SenderIdentity,
    policy: GroupPolicy,
    group_allow_from: Iterable[str],
    store_allow_from: Iterable[str] = (),
) -> AccessResult:
    policy = GroupPolicy(policy)
    effective = effective_allow_list(group_allow_from, store_allow_from)
    listed = is_sender_allowed(sender, effective)
    # An empty group allow-list leaves command authorization open.
    command_authorized = listed if effective else True

    if policy is GroupPolicy.DISABLED:
        return AccessResult(AccessDecision.DENY_SILENT, False, "group_policy=disabled")
    if policy is GroupPolicy.ALLOWLIST:
        if not effective:
            return AccessResult(
                AccessDecision.DENY_SILENT, False, "group_policy=allowlist, no group_allow_from"
            )
        if not listed:
            return AccessResult(
                AccessDecision.DENY_SILENT, False, "sender not in group_allow_from"
            )
    return AccessResult(AccessDecision.ALLOW, command_authorized, f"group_policy={policy}")


def evaluate_access(
    sender: SenderIdentity,
    *,
    is_group: bool,
    dm_policy: DmPolicy,
    group_policy: GroupPolicy,
    allow_from: Iterable[str],
    group_allow_from: Iterable[str],
    store_allow_from: Iterable[str] = (),
) -> AccessResult:
    """Evaluate a conversational message from *sender*.

    Callers drop self-messages before reaching this point.
    """
    stored = list(store_allow_from)
    if is_group:
        return evaluate_group_message(sender, group_policy, group_allow_from, stored)
    return evaluate_direct_message(sender, dm_policy, allow_from, stored)
