"""
Web-of-trust computation and the shared snapshot holder.

[TrustNetworkBuilder][chronicle.curation.trust.TrustNetworkBuilder] walks the
follow graph breadth-first from the owners, fetching kind-3 contact lists
from the seed relays one batch of authors at a time:

1. hop 1 reads the owners' own lists; every followed key is a candidate;
2. each further hop reads the lists of the previous hop's new candidates;
3. a candidate's follower count is the number of distinct reached accounts
   whose list includes it;
4. members are the owners plus every candidate with at least
   ``min_followers`` followers.

Only the newest contact list of each author counts. A batch that fails or
times out is logged and skipped; a rebuild that obtains no owner list raises
[TrustNetworkUnavailableError][chronicle.core.exceptions.TrustNetworkUnavailableError]
so the caller keeps the previous snapshot.

[TrustNetworkHolder][chronicle.curation.trust.TrustNetworkHolder] owns the
current snapshot. Readers call ``snapshot`` or ``contains()`` and never
block; the refresh loop replaces the whole snapshot with a single reference
assignment.
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import TYPE_CHECKING

from chronicle.core.exceptions import TrustNetworkUnavailableError
from chronicle.core.logger import Logger
from chronicle.models import Event, EventFilter, EventKind, TrustNetwork
from chronicle.models._validation import is_hex


if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from chronicle.utils.protocol import SourcePool


class TrustNetworkHolder:
    """Single-writer, many-reader reference to the current trust network."""

    def __init__(self, initial: TrustNetwork | None = None) -> None:
        self._snapshot = initial if initial is not None else TrustNetwork()

    @property
    def snapshot(self) -> TrustNetwork:
        """The currently installed network."""
        return self._snapshot

    def install(self, network: TrustNetwork) -> None:
        """Replace the current network with *network*."""
        self._snapshot = network

    def contains(self, pubkey: str) -> bool:
        return pubkey in self._snapshot

    def follower_count(self, pubkey: str) -> int:
        return self._snapshot.follower_count(pubkey)


def _follows_of(event: Event) -> set[str]:
    return {pubkey for pubkey in event.tag_values("p") if is_hex(pubkey, 64)}


class TrustNetworkBuilder:
    """Builds [TrustNetwork][chronicle.models.TrustNetwork] snapshots from remote follow lists.

    Args:
        source: Remote relay access.
        seed_relays: Relays queried for contact lists.
        hops: Number of follow-graph levels to expand (``1`` = owners' follows).
        min_followers: Minimum follower count for non-owner members.
        batch_size: Authors per contact-list request.
        timeout: Seconds allowed per batch.
    """

    def __init__(
        self,
        source: SourcePool,
        seed_relays: Sequence[str],
        *,
        hops: int = 2,
        min_followers: int = 3,
        batch_size: int = 500,
        timeout: float = 30.0,
    ) -> None:
        if hops < 1:
            raise ValueError(f"hops must be >= 1, got {hops}")
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._source = source
        self._seed_relays = list(seed_relays)
        self._hops = hops
        self._min_followers = min_followers
        self._batch_size = batch_size
        self._timeout = timeout
        self._logger = Logger("trust")

    async def fetch_follow_lists(self, authors: Iterable[str]) -> dict[str, set[str]]:
        """Return ``{author: followed pubkeys}`` from each author's newest contact list.

        Authors without a retrievable list are absent from the result.
        """
        pending = sorted(set(authors))
        latest: dict[str, Event] = {}

        for start in range(0, len(pending), self._batch_size):
            batch = pending[start : start + self._batch_size]
            event_filter = EventFilter(
                authors=frozenset(batch), kinds=frozenset({EventKind.CONTACTS})
            )
            try:
                async for event in self._source.subscribe_many(
                    self._seed_relays, [event_filter], timeout=self._timeout
                ):
                    if event.kind != EventKind.CONTACTS or event.pubkey not in event_filter.authors:
                        continue
                    current = latest.get(event.pubkey)
                    if current is None or event.created_at > current.created_at:
                        latest[event.pubkey] = event
            except (OSError, TimeoutError) as e:
                self._logger.warning(
                    "follow_batch_failed", offset=start, size=len(batch), error=str(e)
                )

        return {author: _follows_of(event) for author, event in latest.items()}

    async def rebuild(self, owner_pubkeys: Iterable[str]) -> TrustNetwork:
        """Compute a fresh network reachable from *owner_pubkeys*.

        Raises:
            TrustNetworkUnavailableError: If no owner contact list was fetched.
        """
        started = time.monotonic()
        owners = frozenset(owner_pubkeys)

        lists = await self.fetch_follow_lists(owners)
        if not lists:
            raise TrustNetworkUnavailableError(
                f"no follow list retrievable for {len(owners)} owner(s)"
            )

        followers: defaultdict[str, set[str]] = defaultdict(set)
        reached: set[str] = set(owners)
        frontier: set[str] = set(owners)

        for hop in range(1, self._hops + 1):
            if hop > 1:
                lists = await self.fetch_follow_lists(frontier)

            discovered: set[str] = set()
            for author, follows in lists.items():
                for pubkey in follows:
                    if pubkey == author:
                        continue
                    followers[pubkey].add(author)
                    if pubkey not in reached:
                        discovered.add(pubkey)

            reached |= discovered
            frontier = discovered
            self._logger.debug("hop_expanded", hop=hop, lists=len(lists), new=len(frontier))
            if not frontier:
                break

        counts = {pubkey: len(accounts) for pubkey, accounts in followers.items()}
        members = owners | {
            pubkey for pubkey, count in counts.items() if count >= self._min_followers
        }

        network = TrustNetwork(members=members, follower_counts=counts)
        self._logger.info(
            "trust_network_built",
            members=len(network),
            candidates=len(counts),
            hops=self._hops,
            min_followers=self._min_followers,
            duration_s=round(time.monotonic() - started, 2),
        )
        return network
