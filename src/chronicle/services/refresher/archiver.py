"""Archival of owner-authored and owner-mentioning events.

Each pass subscribes to the seed relays with two filters over the archival
kinds (notes, articles, DMs, deletions, reposts, reactions, zap requests,
zaps): one for events authored by an owner, one for events tagging an owner
with ``p``. Every distinct event is offered to
[AcceptancePolicy.ingest()][chronicle.curation.policy.AcceptancePolicy.ingest];
the pass ends when the time budget is spent.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from chronicle.core.exceptions import ChronicleError
from chronicle.core.logger import Logger
from chronicle.models import ARCHIVE_KINDS, EventFilter


if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from chronicle.curation.policy import AcceptancePolicy
    from chronicle.utils.protocol import SourcePool


@dataclass(slots=True)
class ArchiveStats:
    """Tallies of one archival pass."""

    trusted: int = 0
    untrusted: int = 0
    duplicates: int = 0
    failed: int = 0
    duration: float = 0.0

    @property
    def received(self) -> int:
        return self.trusted + self.untrusted + self.duplicates + self.failed


class Archiver:
    """Pulls owner history from the seed relays through the acceptance policy."""

    def __init__(
        self,
        source: SourcePool,
        seed_relays: Sequence[str],
        owner_pubkeys: Iterable[str],
        policy: AcceptancePolicy,
        *,
        default_budget: float = 1440.0,
    ) -> None:
        self._source = source
        self._seed_relays = list(seed_relays)
        self._owners = frozenset(owner_pubkeys)
        self._policy = policy
        self._default_budget = default_budget
        self._logger = Logger("archiver")

    def filters(self) -> list[EventFilter]:
        return [
            EventFilter(kinds=ARCHIVE_KINDS, authors=self._owners),
            EventFilter(kinds=ARCHIVE_KINDS, tags={"p": self._owners}),
        ]

    async def run(self, time_budget: float | None = None) -> ArchiveStats:
        """Run one archival pass lasting at most *time_budget* seconds."""
        budget = time_budget if time_budget is not None else self._default_budget
        stats = ArchiveStats()
        seen: set[str] = set()
        started = time.monotonic()

        self._logger.info("archive_started", relays=len(self._seed_relays), budget_s=budget)

        async for event in self._source.subscribe_many(
            self._seed_relays, self.filters(), timeout=budget
        ):
            if event.id in seen:
                stats.duplicates += 1
                continue
            seen.add(event.id)

            try:
                accepted = await self._policy.ingest(event)
            except ChronicleError as e:
                stats.failed += 1
                self._logger.warning("archive_ingest_failed", id=event.id, error=str(e))
                continue

            if accepted:
                stats.trusted += 1
            else:
                stats.untrusted += 1

        stats.duration = round(time.monotonic() - started, 2)
        self._logger.info(
            "archive_completed",
            trusted=stats.trusted,
            untrusted=stats.untrusted,
            duplicates=stats.duplicates,
            failed=stats.failed,
            duration_s=stats.duration,
        )
        return stats
