"""Subscription filter shared by the store, the relay runtime, and remote fetches.

An [EventFilter][chronicle.models.filter.EventFilter] mirrors a NIP-01 filter.
It can be evaluated in memory with
[matches()][chronicle.models.filter.EventFilter.matches] or translated into a
``nostr_sdk.Filter`` with
[to_nostr_filter()][chronicle.models.filter.EventFilter.to_nostr_filter] for
remote subscriptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from nostr_sdk import Alphabet, EventId, Filter, Kind, PublicKey, SingleLetterTag, Timestamp


if TYPE_CHECKING:
    from collections.abc import Mapping

    from .event import Event


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EventFilter:
    """Immutable NIP-01 filter.

    Empty fields match everything. Tag conditions are keyed by single-letter
    tag name (without ``#``) and match when the event carries at least one
    tag of that name whose value is listed.

    Attributes:
        ids: Event ids to match.
        authors: Author pubkeys to match.
        kinds: Event kinds to match.
        tags: ``{letter: values}`` tag conditions.
        since: Inclusive lower bound on ``created_at``.
        until: Inclusive upper bound on ``created_at``.
        limit: Maximum number of results requested.
    """

    ids: frozenset[str] = frozenset()
    authors: frozenset[str] = frozenset()
    kinds: frozenset[int] = frozenset()
    tags: Mapping[str, frozenset[str]] = field(default_factory=lambda: MappingProxyType({}))
    since: int | None = None
    until: int | None = None
    limit: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "ids", frozenset(self.ids))
        object.__setattr__(self, "authors", frozenset(self.authors))
        object.__setattr__(self, "kinds", frozenset(self.kinds))
        for letter in self.tags:
            if len(letter) != 1 or not letter.isalpha():
                raise ValueError(f"tag filter name must be a single letter, got {letter!r}")
        object.__setattr__(
            self,
            "tags",
            MappingProxyType({k: frozenset(v) for k, v in self.tags.items() if v}),
        )

    def __hash__(self) -> int:
        return hash(
            (
                self.ids,
                self.authors,
                self.kinds,
                frozenset(self.tags.items()),
                self.since,
                self.until,
                self.limit,
            )
        )

    def is_empty(self) -> bool:
        """Return True if the filter has no condition at all."""
        return not (
            self.ids
            or self.authors
            or self.kinds
            or self.tags
            or self.since is not None
            or self.until is not None
        )

    def matches(self, event: Event) -> bool:
        """Evaluate the filter against *event* (``limit`` is ignored)."""
        if self.ids and event.id not in self.ids:
            return False
        if self.authors and event.pubkey not in self.authors:
            return False
        if self.kinds and event.kind not in self.kinds:
            return False
        if self.since is not None and event.created_at < self.since:
            return False
        if self.until is not None and event.created_at > self.until:
            return False
        for letter, values in self.tags.items():
            if not any(value in values for value in event.tag_values(letter)):
                return False
        return True

    def to_nostr_filter(self) -> Filter:
        """Build the equivalent ``nostr_sdk.Filter``."""
        f = Filter()
        if self.ids:
            f = f.ids([EventId.parse(event_id) for event_id in sorted(self.ids)])
        if self.authors:
            f = f.authors([PublicKey.parse(pubkey) for pubkey in sorted(self.authors)])
        if self.kinds:
            f = f.kinds([Kind(k) for k in sorted(self.kinds)])
        if self.since is not None:
            f = f.since(Timestamp.from_secs(self.since))
        if self.until is not None:
            f = f.until(Timestamp.from_secs(self.until))
        if self.limit is not None:
            f = f.limit(self.limit)

        for letter, values in self.tags.items():
            try:
                alphabet = getattr(Alphabet, letter.upper())
            except AttributeError:
                logger.warning("invalid_tag_filter tag=%s", letter)
                continue
            tag = (
                SingleLetterTag.lowercase(alphabet)
                if letter.islower()
                else SingleLetterTag.uppercase(alphabet)
            )
            for value in sorted(values):
                f = f.custom_tag(tag, value)

        return f
