"""Immutable web-of-trust snapshot.

A [TrustNetwork][chronicle.models.trust_network.TrustNetwork] is produced
wholesale by
[TrustNetworkBuilder.rebuild()][chronicle.curation.trust.TrustNetworkBuilder.rebuild]
and never mutated afterwards, so it can be shared by every concurrent
acceptance decision without locking.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from time import time
from types import MappingProxyType
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


@dataclass(frozen=True, slots=True)
class TrustNetwork:
    """Set of trusted authors plus the follower counts they were selected by.

    Attributes:
        members: Trusted author pubkeys (owners are always included).
        follower_counts: Candidate pubkey -> number of distinct reachable
            accounts following it. Includes rejected candidates.
        built_at: Unix timestamp of the rebuild that produced the snapshot.
    """

    members: frozenset[str] = frozenset()
    follower_counts: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    built_at: int = field(default_factory=lambda: int(time()))

    def __post_init__(self) -> None:
        object.__setattr__(self, "members", frozenset(self.members))
        object.__setattr__(self, "follower_counts", MappingProxyType(dict(self.follower_counts)))

    def __contains__(self, pubkey: object) -> bool:
        return pubkey in self.members

    def __len__(self) -> int:
        return len(self.members)

    def follower_count(self, pubkey: str) -> int:
        """Return the observed follower count of *pubkey* (0 if never seen)."""
        return self.follower_counts.get(pubkey, 0)

    @classmethod
    def of_owners(cls, owners: Iterable[str]) -> TrustNetwork:
        """Return the minimal network made of the owners alone."""
        return cls(members=frozenset(owners))
