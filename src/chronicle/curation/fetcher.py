"""
On-demand backfill of thread context.

When an owner replies inside a thread whose root is not archived yet, the
[ConversationFetcher][chronicle.curation.fetcher.ConversationFetcher] pulls
the root and every thread-kind event referencing it from the seed relays
(plus the relay hint carried by the reply) and stores them directly.

Fetched events bypass the acceptance policy: they are kept because they
reference a root an owner engaged with, not because their authors are
trusted. The fetcher never touches the root-thread registry.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from chronicle.core.exceptions import ChronicleError
from chronicle.core.logger import Logger
from chronicle.models import THREAD_KINDS, Event, EventFilter
from chronicle.utils.keys import normalize_relay_url


if TYPE_CHECKING:
    import asyncio
    from collections.abc import Sequence

    from chronicle.core.tasks import TaskSupervisor
    from chronicle.models import ThreadReference
    from chronicle.utils.protocol import SourcePool


StoreHook = Callable[[Event], Awaitable[bool]]


class ConversationFetcher:
    """Backfills a thread from remote relays within a fixed time budget.

    Concurrent requests for the same root are collapsed: while a fetch for a
    root is running, further requests for it return immediately.

    Args:
        source: Remote relay access.
        seed_relays: Relays always queried.
        store: Persistence hook; returns True for newly stored events.
        supervisor: Owner of the detached fetch tasks.
        timeout: Seconds a single fetch may run.
    """

    def __init__(
        self,
        source: SourcePool,
        seed_relays: Sequence[str],
        store: StoreHook,
        supervisor: TaskSupervisor,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._source = source
        self._seed_relays = list(seed_relays)
        self._store = store
        self._supervisor = supervisor
        self._timeout = timeout
        self._in_flight: set[str] = set()
        self._logger = Logger("fetcher")

    @property
    def in_flight(self) -> frozenset[str]:
        """Roots whose backfill is currently running."""
        return frozenset(self._in_flight)

    def _claim(self, root_id: str) -> bool:
        if root_id in self._in_flight:
            self._logger.debug("fetch_already_running", root=root_id)
            return False
        self._in_flight.add(root_id)
        return True

    def spawn(self, reference: ThreadReference) -> asyncio.Task[int] | None:
        """Start a detached [fetch()][chronicle.curation.fetcher.ConversationFetcher.fetch].

        Returns the task, or ``None`` if the root is already being fetched
        or the supervisor is shut down.
        """
        if not self._claim(reference.event_id):
            return None
        task = self._supervisor.spawn(
            self._fetch_claimed(reference), name=f"backfill:{reference.event_id[:12]}"
        )
        if task is None:
            self._in_flight.discard(reference.event_id)
        return task

    async def fetch(self, reference: ThreadReference) -> int:
        """Backfill the thread rooted at *reference*.

        Returns:
            Number of events the store reported as new.
        """
        if not self._claim(reference.event_id):
            return 0
        return await self._fetch_claimed(reference)

    def _relays_for(self, reference: ThreadReference) -> list[str]:
        relays = list(self._seed_relays)
        if reference.relay_hint:
            try:
                relays.insert(0, normalize_relay_url(reference.relay_hint))
            except ValueError:
                self._logger.debug("relay_hint_ignored", hint=reference.relay_hint)
        return list(dict.fromkeys(relays))

    async def _fetch_claimed(self, reference: ThreadReference) -> int:
        root_id = reference.event_id
        filters = [
            EventFilter(ids=frozenset({root_id})),
            EventFilter(kinds=THREAD_KINDS, tags={"e": frozenset({root_id})}),
        ]
        started = time.monotonic()
        received = 0
        stored = 0

        try:
            async for event in self._source.subscribe_many(
                self._relays_for(reference), filters, timeout=self._timeout
            ):
                received += 1
                try:
                    if await self._store(event):
                        stored += 1
                except ChronicleError as e:
                    self._logger.warning("backfill_store_failed", id=event.id, error=str(e))
        except (OSError, TimeoutError) as e:
            self._logger.warning("backfill_failed", root=root_id, error=str(e))
        finally:
            self._in_flight.discard(root_id)

        self._logger.info(
            "conversation_fetched",
            root=root_id,
            received=received,
            stored=stored,
            duration_s=round(time.monotonic() - started, 2),
        )
        return stored
