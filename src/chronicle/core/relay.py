"""
In-process relay runtime that the acceptance engine plugs into.

[Relay][chronicle.core.relay.Relay] holds ordered lists of hooks and runs
them for every inbound event and query:

* ``reject_event`` predicates run first; the first one returning
  ``(True, reason)`` refuses the event.
* ``store_event`` hooks persist it and report whether it was new.
* New events are broadcast to every live subscriber whose filter matches.

Hooks are plain async callables so the store, the acceptance policy, and
tests can be mixed freely. Wire serving (WebSocket ``REQ``/``EVENT``
framing) sits outside this module and drives these methods.

See Also:
    [AcceptancePolicy][chronicle.curation.policy.AcceptancePolicy]:
        Installed as a ``reject_event`` predicate.
    [EventStore][chronicle.core.store.EventStore]: Installed as the store,
        query, and delete hooks.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from chronicle.models import Event, EventFilter, EventKind

from .logger import Logger


RejectEventHook = Callable[[Event], Awaitable[tuple[bool, str]]]
StoreEventHook = Callable[[Event], Awaitable[bool]]
QueryEventsHook = Callable[[EventFilter], Awaitable[list[Event]]]
DeleteEventHook = Callable[[str], Awaitable[Any]]
RejectFilterHook = Callable[[EventFilter], Awaitable[tuple[bool, str]]]
RejectConnectionHook = Callable[[str], Awaitable[bool]]

DUPLICATE_MESSAGE = "duplicate: already have this event"

_BASE64_MEDIA = re.compile(r"data:(?:image|video)/[\w.+-]+;base64,", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class RelayInfo:
    """NIP-11 relay information document fields."""

    name: str = "chronicle"
    description: str = ""
    pubkey: str = ""
    contact: str = ""
    icon: str = ""
    software: str = "chronicle"
    version: str = ""
    supported_nips: tuple[int, ...] = (1, 9, 11, 40)

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-11 JSON document, omitting empty fields."""
        document: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "pubkey": self.pubkey,
            "contact": self.contact,
            "icon": self.icon,
            "software": self.software,
            "version": self.version,
            "supported_nips": list(self.supported_nips),
        }
        return {k: v for k, v in document.items() if v}


async def reject_empty_filters(event_filter: EventFilter) -> tuple[bool, str]:
    """Refuse filters without any condition (full-table scans)."""
    if event_filter.is_empty():
        return True, "blocked: can't handle empty filters"
    return False, ""


async def reject_complex_filters(event_filter: EventFilter) -> tuple[bool, str]:
    """Refuse filters with more than two tag conditions once tags plus kinds exceed four."""
    tag_conditions = len(event_filter.tags)
    if tag_conditions > 2 and tag_conditions + len(event_filter.kinds) > 4:
        return True, "blocked: too many things to filter for"
    return False, ""


async def reject_base64_media(event: Event) -> tuple[bool, str]:
    """Refuse events embedding images or videos as base64 ``data:`` URIs."""
    if _BASE64_MEDIA.search(event.content):
        return True, "blocked: event with base64 media"
    return False, ""


@dataclass
class Relay:
    """Hook-driven relay runtime.

    Attributes:
        info: NIP-11 information served to clients.
        reject_event: Predicates vetoing inbound events.
        store_event: Persistence hooks; each returns True if the event is new.
        query_events: Query hooks whose results are merged by id.
        delete_event: Deletion hooks receiving the target event id.
        reject_filter: Predicates vetoing subscriptions.
        reject_connection: Predicates vetoing remote addresses.
    """

    info: RelayInfo = field(default_factory=RelayInfo)
    reject_event: list[RejectEventHook] = field(default_factory=list)
    store_event: list[StoreEventHook] = field(default_factory=list)
    query_events: list[QueryEventsHook] = field(default_factory=list)
    delete_event: list[DeleteEventHook] = field(default_factory=list)
    reject_filter: list[RejectFilterHook] = field(default_factory=list)
    reject_connection: list[RejectConnectionHook] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._listeners: dict[asyncio.Queue[Event], EventFilter | None] = {}
        self._logger = Logger("relay")

    # -------------------------------------------------------------------------
    # Inbound Events
    # -------------------------------------------------------------------------

    async def add_event(self, event: Event) -> tuple[bool, str]:
        """Process an event submitted by a client.

        Returns:
            The NIP-01 ``OK`` pair: ``(accepted, message)``.
        """
        for predicate in self.reject_event:
            rejected, message = await predicate(event)
            if rejected:
                self._logger.debug("event_rejected", id=event.id, reason=message)
                return False, message

        if event.kind == EventKind.DELETION:
            await self._apply_deletion(event)

        if not await self.store(event):
            return True, DUPLICATE_MESSAGE

        self.broadcast(event)
        return True, ""

    async def store(self, event: Event) -> bool:
        """Run every store hook; return True if any reported the event as new."""
        if not self.store_event:
            return True
        is_new = False
        for hook in self.store_event:
            if await hook(event):
                is_new = True
        return is_new

    async def delete(self, event_id: str) -> None:
        """Run every delete hook for *event_id*."""
        for hook in self.delete_event:
            await hook(event_id)

    async def _apply_deletion(self, deletion: Event) -> None:
        # NIP-09: only the author of the target may delete it
        targets = deletion.tag_values("e")
        if not targets:
            return
        for target in await self.query(EventFilter(ids=frozenset(targets)), check_filter=False):
            if target.pubkey == deletion.pubkey:
                await self.delete(target.id)
                self._logger.info("event_deleted", id=target.id, by=deletion.id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def query(self, event_filter: EventFilter, *, check_filter: bool = True) -> list[Event]:
        """Merge the results of every query hook, newest first.

        A filter vetoed by a ``reject_filter`` predicate yields no results.
        """
        if check_filter:
            for predicate in self.reject_filter:
                rejected, message = await predicate(event_filter)
                if rejected:
                    self._logger.debug("filter_rejected", reason=message)
                    return []

        merged: dict[str, Event] = {}
        for hook in self.query_events:
            for event in await hook(event_filter):
                merged.setdefault(event.id, event)

        results = sorted(merged.values(), key=lambda e: e.created_at, reverse=True)
        if event_filter.limit is not None:
            results = results[: event_filter.limit]
        return results

    async def accept_connection(self, remote_address: str) -> bool:
        """Return False if any ``reject_connection`` predicate vetoes *remote_address*."""
        for predicate in self.reject_connection:
            if await predicate(remote_address):
                return False
        return True

    # -------------------------------------------------------------------------
    # Live Subscribers
    # -------------------------------------------------------------------------

    def subscribe(self, event_filter: EventFilter | None = None) -> asyncio.Queue[Event]:
        """Register a listener receiving every broadcast event matching *event_filter*."""
        queue: asyncio.Queue[Event] = asyncio.Queue()
        self._listeners[queue] = event_filter
        return queue

    def unsubscribe(self, queue: asyncio.Queue[Event]) -> None:
        """Remove a listener; unknown queues are ignored."""
        self._listeners.pop(queue, None)

    def broadcast(self, event: Event) -> int:
        """Deliver *event* to matching listeners and return how many received it."""
        delivered = 0
        for queue, event_filter in self._listeners.items():
            if event_filter is None or event_filter.matches(event):
                queue.put_nowait(event)
                delivered += 1
        return delivered
