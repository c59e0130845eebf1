"""Shared constants for the models layer.

Defines the event kinds Chronicle reasons about and the kind groups used by
the acceptance policy, the conversation fetcher, and the archiver. Placing
them here keeps every layer above ``models`` free of magic numbers.

See Also:
    [chronicle.curation.policy][]: Applies
        [THREAD_KINDS][chronicle.models.constants.THREAD_KINDS] and
        [REFERENCE_KINDS][chronicle.models.constants.REFERENCE_KINDS].
    [chronicle.services.refresher.archiver][]: Subscribes to
        [ARCHIVE_KINDS][chronicle.models.constants.ARCHIVE_KINDS].
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class ServiceName(StrEnum):
    """Canonical service identifiers used in logging and metrics.

    Attributes:
        REFRESHER: Periodic trust-network rebuild and archival service
            ([RefreshScheduler][chronicle.services.refresher.RefreshScheduler]).
    """

    REFRESHER = "refresher"


class EventKind(IntEnum):
    """Well-known Nostr event kinds handled by Chronicle.

    Attributes:
        SET_METADATA: Kind 0 -- user profile metadata (NIP-01).
        TEXT_NOTE: Kind 1 -- short text note, root or reply (NIP-10).
        CONTACTS: Kind 3 -- follow list (NIP-02).
        ENCRYPTED_DIRECT_MESSAGE: Kind 4 -- legacy encrypted DM (NIP-04).
        DELETION: Kind 5 -- deletion request (NIP-09).
        REPOST: Kind 6 -- repost (NIP-18).
        REACTION: Kind 7 -- reaction (NIP-25).
        ZAP_REQUEST: Kind 9734 -- zap request (NIP-57).
        ZAP: Kind 9735 -- zap receipt (NIP-57).
        RELAY_LIST: Kind 10002 -- relay list metadata (NIP-65).
        ARTICLE: Kind 30023 -- long-form article (NIP-23).
    """

    SET_METADATA = 0
    TEXT_NOTE = 1
    CONTACTS = 3
    ENCRYPTED_DIRECT_MESSAGE = 4
    DELETION = 5
    REPOST = 6
    REACTION = 7
    ZAP_REQUEST = 9_734
    ZAP = 9_735
    RELAY_LIST = 10_002
    ARTICLE = 30_023


EVENT_KIND_MAX = 65_535

#: Kinds that open or continue a thread and feed the root-thread registry.
ROOT_KINDS: frozenset[int] = frozenset({EventKind.TEXT_NOTE, EventKind.ARTICLE})

#: Kinds that point at another event and may ride on an already stored target.
REFERENCE_KINDS: frozenset[int] = frozenset(
    {
        EventKind.DELETION,
        EventKind.REACTION,
        EventKind.ZAP_REQUEST,
        EventKind.ZAP,
    }
)

#: Kinds accepted as part of a known thread (and backfilled by the fetcher).
THREAD_KINDS: frozenset[int] = ROOT_KINDS | REFERENCE_KINDS

#: Kinds collected by an archival pass over the owners' history.
ARCHIVE_KINDS: frozenset[int] = THREAD_KINDS | frozenset(
    {EventKind.ENCRYPTED_DIRECT_MESSAGE, EventKind.REPOST}
)

#: Kinds describing an owner's profile, refreshed every cycle.
PROFILE_KINDS: frozenset[int] = frozenset(
    {EventKind.SET_METADATA, EventKind.CONTACTS, EventKind.RELAY_LIST}
)
