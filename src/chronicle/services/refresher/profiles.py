"""Local copies of the owners' profile, contact list and relay list.

Clients reading from the relay resolve the owners without leaving it: each
refresh stores the newest kind 0, 3 and 10002 event of every owner found on
the seed relays.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from chronicle.core.exceptions import ChronicleError
from chronicle.core.logger import Logger
from chronicle.models import PROFILE_KINDS, Event, EventFilter


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Sequence

    from chronicle.utils.protocol import SourcePool


class ProfileRefresher:
    """Fetches and stores the owners' replaceable profile events."""

    def __init__(
        self,
        source: SourcePool,
        seed_relays: Sequence[str],
        owner_pubkeys: Iterable[str],
        store: Callable[[Event], Awaitable[bool]],
        *,
        timeout: float = 30.0,
    ) -> None:
        self._source = source
        self._seed_relays = list(seed_relays)
        self._owners = frozenset(owner_pubkeys)
        self._store = store
        self._timeout = timeout
        self._logger = Logger("profiles")

    async def refresh(self) -> int:
        """Store the newest profile events of every owner.

        Returns:
            Number of events the store reported as new.
        """
        event_filter = EventFilter(authors=self._owners, kinds=PROFILE_KINDS)
        latest: dict[tuple[str, int], Event] = {}

        async for event in self._source.subscribe_many(
            self._seed_relays, [event_filter], timeout=self._timeout
        ):
            if not event_filter.matches(event):
                continue
            key = (event.pubkey, event.kind)
            current = latest.get(key)
            if current is None or event.created_at > current.created_at:
                latest[key] = event

        stored = 0
        for event in latest.values():
            try:
                if await self._store(event):
                    stored += 1
            except ChronicleError as e:
                self._logger.warning("profile_store_failed", id=event.id, error=str(e))

        self._logger.info("profiles_refreshed", found=len(latest), stored=stored)
        return stored
