"""Signal identity resolution across phone-number and UUID namespaces.

Signal reports the same actor under two identifier types: an E.164 phone
number (``sourceNumber`` / ``targetAuthor``) and an opaque account UUID
(``sourceUuid`` / ``targetAuthorUuid``). Either, both, or neither may be
present on a given event.

Every comparison in this module is done per *candidate*: each identifier the
provider supplied is kept, and a match is attempted against all of them using
the rule for that candidate's type. Collapsing the candidates into a single
preferred value before comparing is what makes phone-configured accounts miss
reactions that also carry a UUID.

Used by:
- The Signal monitor, to resolve the sender of every inbound envelope.
- The access policy evaluator, for allow-list checks.
- The reaction decision engine, for ``own``-mode target matching.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sigbridge.connectors.signal_models import ReactionMessage

UUID_PREFIX = "uuid:"
WILDCARD = "*"

_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_ADDRESS_PREFIXES = ("signal:", "tel:")


class IdentityKind(enum.StrEnum):
    """Identifier namespace of a Signal identity."""

    PHONE = "phone"
    UUID = "uuid"


def normalize_e164(raw: str) -> str:
    """Normalize a phone-like string to ``+<digits>``.

    Strips ``signal:``/``tel:`` prefixes, whitespace, and punctuation. Returns
    an empty string when *raw* carries no digits at all.
    """
    value = _strip_address_prefix(raw.strip())
    digits = re.sub(r"\D", "", value)
    if not digits:
        return ""
    return f"+{digits}"


def looks_like_uuid(raw: str) -> bool:
    """Return True if *raw* is a UUID, with or without the ``uuid:`` prefix."""
    value = _strip_address_prefix(raw.strip())
    if value.lower().startswith(UUID_PREFIX):
        return True
    return _UUID_PATTERN.match(value) is not None


def account_identity_kind(account: str | None) -> IdentityKind | None:
    """Classify the configured own-account string.

    ``uuid:``-prefixed or UUID-shaped values are UUID accounts; anything else
    is treated as a phone number. Returns None when no account is configured.
    """
    if account is None or not account.strip():
        return None
    return IdentityKind.UUID if looks_like_uuid(account) else IdentityKind.PHONE


def _strip_address_prefix(value: str) -> str:
    for prefix in _ADDRESS_PREFIXES:
        if value.lower().startswith(prefix):
            return value[len(prefix) :].strip()
    return value


def _strip_uuid_prefix(value: str) -> str:
    if value.lower().startswith(UUID_PREFIX):
        return value[len(UUID_PREFIX) :].strip()
    return value


@dataclass(frozen=True)
class IdentityCandidate:
    """A single typed identifier: an E.164 number or a raw UUID."""

    kind: IdentityKind
    id: str

    @property
    def display(self) -> str:
        """Human-readable label; UUIDs are shown with the ``uuid:`` prefix."""
        if self.kind is IdentityKind.UUID:
            return f"{UUID_PREFIX}{self.id}"
        return self.id


# The author of a reacted-to message, as reported by the reaction event.
ReactionTarget = IdentityCandidate


@dataclass(frozen=True)
class SenderIdentity:
    """Canonical sender of an envelope.

    ``kind``/``id`` is the primary identity used for keys, routing, and
    replies. ``candidates`` holds every identifier the envelope supplied
    (primary first) so that matching can try all of them.
    """

    kind: IdentityKind
    id: str
    name: str | None = None
    candidates: tuple[IdentityCandidate, ...] = ()

    @property
    def primary(self) -> IdentityCandidate:
        return IdentityCandidate(self.kind, self.id)

    @property
    def e164(self) -> str | None:
        for candidate in self.candidates:
            if candidate.kind is IdentityKind.PHONE:
                return candidate.id
        return None

    @property
    def uuid(self) -> str | None:
        for candidate in self.candidates:
            if candidate.kind is IdentityKind.UUID:
                return candidate.id
        return None


def resolve_sender(
    source_number: str | None,
    source_uuid: str | None,
    source_name: str | None = None,
    *,
    account: str | None = None,
) -> SenderIdentity | None:
    """Resolve the canonical sender from raw envelope fields.

    When both identifiers are present the primary identity takes the type of
    the configured *account* (phone when no account is configured), so that
    identity comparisons against the account are like-for-like. Returns None
    when neither field is usable.
    """
    phone: IdentityCandidate | None = None
    if source_number and source_number.strip():
        normalized = normalize_e164(source_number)
        if normalized:
            phone = IdentityCandidate(IdentityKind.PHONE, normalized)

    uuid_candidate: IdentityCandidate | None = None
    if source_uuid and source_uuid.strip():
        uuid_candidate = IdentityCandidate(
            IdentityKind.UUID, _strip_uuid_prefix(source_uuid.strip())
        )

    if phone is None and uuid_candidate is None:
        return None

    name = source_name.strip() if source_name and source_name.strip() else None

    if phone is not None and uuid_candidate is not None:
        if account_identity_kind(account) is IdentityKind.UUID:
            ordered = (uuid_candidate, phone)
        else:
            ordered = (phone, uuid_candidate)
    elif phone is not None:
        ordered = (phone,)
    else:
        ordered = (uuid_candidate,)

    primary = ordered[0]
    return SenderIdentity(kind=primary.kind, id=primary.id, name=name, candidates=ordered)


def format_sender_id(sender: SenderIdentity) -> str:
    """Canonical comparison key: E.164 for phones, ``uuid:<id>`` for UUIDs."""
    return sender.primary.display


def format_sender_display(sender: SenderIdentity) -> str:
    return sender.primary.display


def resolve_recipient(sender: SenderIdentity) -> str:
    """Address to use when replying directly to *sender* (no prefix)."""
    return sender.id


def resolve_peer_id(sender: SenderIdentity) -> str:
    """Peer id used for session routing of direct conversations."""
    return sender.primary.display


def format_pairing_id_line(sender: SenderIdentity) -> str:
    if sender.kind is IdentityKind.PHONE:
        return f"Your Signal number: {sender.id}"
    return f"Your Signal sender id: {format_sender_id(sender)}"


def resolve_reaction_targets(reaction: ReactionMessage) -> list[ReactionTarget]:
    """Return every author candidate a reaction event reports, in discovery order."""
    targets: list[ReactionTarget] = []
    uuid_value = (reaction.target_author_uuid or "").strip()
    if uuid_value:
        targets.append(IdentityCandidate(IdentityKind.UUID, _strip_uuid_prefix(uuid_value)))
    author = (reaction.target_author or "").strip()
    if author:
        if looks_like_uuid(author):
            targets.append(IdentityCandidate(IdentityKind.UUID, _strip_uuid_prefix(author)))
        else:
            normalized = normalize_e164(author)
            if normalized:
                targets.append(IdentityCandidate(IdentityKind.PHONE, normalized))
    return targets


def candidate_matches(candidate: IdentityCandidate, entry: str) -> bool:
    """Match one candidate against one configured identifier string.

    Phone candidates compare by normalized E.164 equality. UUID candidates
    compare against the raw or ``uuid:``-prefixed form, case-insensitively.
    """
    value = _strip_address_prefix(entry.strip())
    if not value:
        return False
    if candidate.kind is IdentityKind.UUID:
        expected = candidate.id.lower()
        lowered = value.lower()
        return lowered == expected or lowered == f"{UUID_PREFIX}{expected}"
    if looks_like_uuid(value):
        return False
    normalized = normalize_e164(value)
    return bool(normalized) and normalized == candidate.id


def candidate_matches_account(candidate: IdentityCandidate, account: str | None) -> bool:
    if account is None or not account.strip():
        return False
    return candidate_matches(candidate, account)


def is_own_account(sender: SenderIdentity, account: str | None) -> bool:
    """True when any of the sender's identifiers is the configured own account."""
    return any(candidate_matches_account(c, account) for c in sender.candidates)


def is_sender_allowed(sender: SenderIdentity, allow_list: Iterable[str]) -> bool:
    """True when *allow_list* contains ``*`` or any entry matching any sender candidate."""
    entries = [entry.strip() for entry in allow_list if entry and entry.strip()]
    if not entries:
        return False
    if WILDCARD in entries:
        return True
    return any(candidate_matches(c, entry) for c in sender.candidates for entry in entries)
