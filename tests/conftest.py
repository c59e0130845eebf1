"""
Pytest configuration and shared fixtures for Chronicle tests.

Provides:
- Event factory producing shape-valid events
- In-memory event store and remote relay pool fakes
- Relay runtime, registry, trust holder and policy fixtures
"""

from __future__ import annotations

import hashlib
import itertools
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

import pytest

from chronicle.core.relay import Relay
from chronicle.core.tasks import TaskSupervisor
from chronicle.curation.policy import AcceptancePolicy
from chronicle.curation.registry import RootThreadRegistry
from chronicle.curation.trust import TrustNetworkHolder
from chronicle.models import Event, EventFilter, EventKind, TrustNetwork


OWNER = "0" * 63 + "1"
TRUSTED = "0" * 63 + "2"
STRANGER = "0" * 63 + "3"

_ids = itertools.count(1)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Event Helpers
# ============================================================================


def make_id(seed: str | None = None) -> str:
    """Return a 64-char hex id, unique per call unless *seed* is given."""
    value = seed if seed is not None else f"event-{next(_ids)}"
    return hashlib.sha256(value.encode()).hexdigest()


def make_event(
    *,
    pubkey: str = STRANGER,
    kind: int = EventKind.TEXT_NOTE,
    tags: Sequence[Sequence[str]] = (),
    created_at: int = 1_700_000_000,
    content: str = "hello",
    event_id: str | None = None,
) -> Event:
    """Build a shape-valid event; signatures are never verified by the models."""
    return Event(
        id=event_id or make_id(),
        pubkey=pubkey,
        created_at=created_at,
        kind=int(kind),
        tags=tuple(tuple(tag) for tag in tags),
        content=content,
        sig="ab" * 64,
    )


def reply_to(root_id: str, *, relay_hint: str = "", **kwargs: Any) -> Event:
    """Build an event whose NIP-10 root is *root_id*."""
    tags = [("e", root_id, relay_hint, "root"), *kwargs.pop("tags", ())]
    return make_event(tags=tags, **kwargs)


def contact_list(author: str, follows: Sequence[str], *, created_at: int = 1_700_000_000) -> Event:
    return make_event(
        pubkey=author,
        kind=EventKind.CONTACTS,
        tags=[("p", pubkey) for pubkey in follows],
        created_at=created_at,
        content="",
    )


# ============================================================================
# Fakes
# ============================================================================


class InMemoryStore:
    """Dict-backed stand-in for [EventStore][chronicle.core.store.EventStore]."""

    def __init__(self, events: Sequence[Event] = ()) -> None:
        self.events: dict[str, Event] = {event.id: event for event in events}

    async def save_event(self, event: Event) -> bool:
        if event.id in self.events:
            return False
        self.events[event.id] = event
        return True

    async def query_events(self, event_filter: EventFilter) -> list[Event]:
        return [event for event in self.events.values() if event_filter.matches(event)]

    async def delete_event(self, event_id: str) -> bool:
        return self.events.pop(event_id, None) is not None


class FakeSourcePool:
    """In-memory [SourcePool][chronicle.utils.protocol.SourcePool].

    ``relays`` maps a URL to the events it holds; URLs in ``failing`` raise
    ``OSError`` on publish and are skipped on subscribe.
    """

    def __init__(self, relays: dict[str, list[Event]] | None = None) -> None:
        self.relays: dict[str, list[Event]] = relays or {}
        self.failing: set[str] = set()
        self.published: list[tuple[str, Event]] = []
        self.requests: list[tuple[list[str], list[EventFilter]]] = []

    async def subscribe_many(
        self,
        urls: Sequence[str],
        filters: Sequence[EventFilter],
        *,
        timeout: float,  # noqa: ASYNC109
    ) -> AsyncIterator[Event]:
        self.requests.append((list(urls), list(filters)))
        seen: set[str] = set()
        for url in dict.fromkeys(urls):
            if url in self.failing:
                continue
            for event in self.relays.get(url, []):
                if event.id in seen or not any(f.matches(event) for f in filters):
                    continue
                seen.add(event.id)
                yield event

    async def publish(self, url: str, event: Event, *, timeout: float) -> None:  # noqa: ASYNC109
        if url in self.failing:
            raise OSError(f"Publish rejected by {url}: blocked")
        self.published.append((url, event))


# ============================================================================
# Component Fixtures
# ============================================================================


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def relay(store: InMemoryStore) -> Relay:
    relay = Relay()
    relay.store_event.append(store.save_event)
    relay.query_events.append(store.query_events)
    relay.delete_event.append(store.delete_event)
    return relay


@pytest.fixture
def source() -> FakeSourcePool:
    return FakeSourcePool()


@pytest.fixture
def supervisor() -> TaskSupervisor:
    return TaskSupervisor()


@pytest.fixture
def registry(tmp_path) -> RootThreadRegistry:
    return RootThreadRegistry(tmp_path / "root_notes")


@pytest.fixture
def trust() -> TrustNetworkHolder:
    return TrustNetworkHolder(TrustNetwork(members=frozenset({OWNER, TRUSTED})))


@pytest.fixture
def policy(
    trust: TrustNetworkHolder, registry: RootThreadRegistry, relay: Relay
) -> AcceptancePolicy:
    return AcceptancePolicy([OWNER], trust, registry, relay)
