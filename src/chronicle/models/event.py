"""
Immutable Nostr event record.

Chronicle treats events as trusted-for-shape: ``id`` and ``sig`` are verified
upstream (by the relay runtime or by ``nostr_sdk`` when fetching from remote
relays). This module only checks that every field has the expected shape so
that invalid records never reach the acceptance policy or the store.

Conversion helpers bridge the plain dataclass and ``nostr_sdk.Event``:
[from_nostr()][chronicle.models.event.Event.from_nostr] for events fetched
from relays and [to_nostr()][chronicle.models.event.Event.to_nostr] for
events published to backup relays.

See Also:
    [chronicle.models.thread][]: Thread-root extraction from ``tags``.
    [chronicle.core.store][]: Persists events in PostgreSQL.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, NamedTuple

from nostr_sdk import Event as NostrEvent

from ._validation import validate_hex, validate_instance, validate_int_range, validate_str_no_null
from .constants import EVENT_KIND_MAX


class EventDbParams(NamedTuple):
    """Positional parameters for the event insert statement.

    Produced by [Event.to_db_params()][chronicle.models.event.Event.to_db_params]
    and consumed by [EventStore][chronicle.core.store.EventStore].
    """

    id: bytes
    pubkey: bytes
    created_at: int
    kind: int
    tags: str
    content: str
    sig: bytes


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable Nostr event.

    Attributes:
        id: 64-char hex event id (SHA-256 of the serialized event).
        pubkey: 64-char hex author public key.
        created_at: Unix timestamp of creation.
        kind: Integer kind in ``[0, 65535]``.
        tags: Ordered tags; each tag is a tuple of strings whose first
            element names the tag type (``"e"``, ``"p"``, ...).
        content: Raw content string.
        sig: 128-char hex Schnorr signature.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If a hex field is malformed, the kind is out of range,
            or any string contains null bytes.

    Examples:
        ```python
        event = Event.from_dict(json.loads(raw))
        event.tag_values("p")   # ('ab12...', ...)
        ```
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: tuple[tuple[str, ...], ...]
    content: str
    sig: str

    def __post_init__(self) -> None:
        validate_hex(self.id, "id", 64)
        validate_hex(self.pubkey, "pubkey", 64)
        validate_hex(self.sig, "sig", 128)
        validate_int_range(self.created_at, "created_at", 0)
        validate_int_range(self.kind, "kind", 0, EVENT_KIND_MAX)
        validate_str_no_null(self.content, "content")

        # Normalize lists coming from JSON into nested tuples
        tags = tuple(tuple(tag) for tag in self.tags)
        for tag in tags:
            for value in tag:
                validate_str_no_null(value, "tags")
        object.__setattr__(self, "tags", tags)

    def tag_values(self, name: str) -> tuple[str, ...]:
        """Return the first value of every tag named *name*, in tag order."""
        return tuple(tag[1] for tag in self.tags if len(tag) >= 2 and tag[0] == name)

    # -------------------------------------------------------------------------
    # Conversions
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 JSON object representation."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        """Build an Event from a NIP-01 JSON object.

        Raises:
            KeyError: If a required field is missing.
        """
        return cls(
            id=data["id"],
            pubkey=data["pubkey"],
            created_at=data["created_at"],
            kind=data["kind"],
            tags=tuple(tuple(tag) for tag in data["tags"]),
            content=data["content"],
            sig=data["sig"],
        )

    @classmethod
    def from_nostr(cls, nostr_event: NostrEvent) -> Event:
        """Convert a ``nostr_sdk.Event`` received from a relay."""
        validate_instance(nostr_event, NostrEvent, "nostr_event")
        return cls(
            id=nostr_event.id().to_hex(),
            pubkey=nostr_event.author().to_hex(),
            created_at=nostr_event.created_at().as_secs(),
            kind=nostr_event.kind().as_u16(),
            tags=tuple(tuple(tag.as_vec()) for tag in nostr_event.tags().to_vec()),
            content=nostr_event.content(),
            sig=nostr_event.signature(),
        )

    def to_nostr(self) -> NostrEvent:
        """Convert to a ``nostr_sdk.Event`` for publishing."""
        return NostrEvent.from_json(json.dumps(self.to_dict()))

    def to_db_params(self) -> EventDbParams:
        """Return positional parameters for the event insert statement."""
        return EventDbParams(
            id=bytes.fromhex(self.id),
            pubkey=bytes.fromhex(self.pubkey),
            created_at=self.created_at,
            kind=self.kind,
            tags=json.dumps([list(tag) for tag in self.tags]),
            content=self.content,
            sig=bytes.fromhex(self.sig),
        )

    @classmethod
    def from_db_params(cls, params: EventDbParams) -> Event:
        """Reconstruct an Event from a stored row."""
        return cls(
            id=params.id.hex(),
            pubkey=params.pubkey.hex(),
            created_at=params.created_at,
            kind=params.kind,
            tags=tuple(tuple(tag) for tag in json.loads(params.tags)),
            content=params.content,
            sig=params.sig.hex(),
        )
