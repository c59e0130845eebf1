"""Pure frozen dataclasses for Nostr events, filters, and trust snapshots.

The models layer is the foundation of the diamond DAG. It has **no
dependencies** on any other Chronicle package and performs no I/O. Every
model uses ``@dataclass(frozen=True, slots=True)`` and validates in
``__post_init__`` so invalid instances never escape the constructor.

Attributes:
    Event: Immutable Nostr event with ``nostr_sdk`` and database conversions.
    EventFilter: NIP-01 filter usable in memory and against remote relays.
    ThreadReference: Root reference extracted from an event's ``e`` tags by
        [get_thread_root()][chronicle.models.thread.get_thread_root].
    TrustNetwork: Immutable web-of-trust snapshot.
    EventKind: Well-known event kinds and the kind groups built from them.

See Also:
    [chronicle.curation][]: Acceptance engine consuming these models.
"""

from .constants import (
    ARCHIVE_KINDS,
    EVENT_KIND_MAX,
    PROFILE_KINDS,
    REFERENCE_KINDS,
    ROOT_KINDS,
    THREAD_KINDS,
    EventKind,
    ServiceName,
)
from .event import Event, EventDbParams
from .filter import EventFilter
from .thread import ThreadReference, get_thread_root
from .trust_network import TrustNetwork


__all__ = [
    "ARCHIVE_KINDS",
    "EVENT_KIND_MAX",
    "PROFILE_KINDS",
    "REFERENCE_KINDS",
    "ROOT_KINDS",
    "THREAD_KINDS",
    "Event",
    "EventDbParams",
    "EventFilter",
    "EventKind",
    "ServiceName",
    "ThreadReference",
    "TrustNetwork",
    "get_thread_root",
]
