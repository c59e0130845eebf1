"""
Trust-gated acceptance of inbound and archived events.

[AcceptancePolicy][chronicle.curation.policy.AcceptancePolicy] decides whether
an event may enter the store. Rules are evaluated in order and the first
match wins:

1. **Owner**: events authored by an owner are always accepted. When the
   event replies inside a thread whose root is not archived yet, a
   conversation backfill is started in the background.
2. **Trusted thread member**: thread kinds (notes, articles, deletions,
   reactions, zap requests, zaps) whose root is a registered thread and
   whose author belongs to the trust network.
3. **Reference to a stored event**: deletions, reactions, zap requests and
   zaps whose root is already in the local store, whoever the author is.
4. Everything else is rejected.

Accepted notes and articles extend the root-thread registry: a root
registers its own id, a reply registers its root id.

See Also:
    [Relay][chronicle.core.relay.Relay]: Host runtime the policy plugs into
        through [reject_event()][chronicle.curation.policy.AcceptancePolicy.reject_event].
    [Archiver][chronicle.services.refresher.archiver.Archiver]: Feeds archived
        events through [ingest()][chronicle.curation.policy.AcceptancePolicy.ingest].
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

from chronicle.core.exceptions import ChronicleError, RegistryError
from chronicle.core.logger import Logger
from chronicle.models import REFERENCE_KINDS, ROOT_KINDS, THREAD_KINDS, Event, EventFilter, get_thread_root


if TYPE_CHECKING:
    from collections.abc import Iterable

    from .backup import BackupPropagator
    from .fetcher import ConversationFetcher
    from .registry import RootThreadRegistry
    from .trust import TrustNetworkHolder


REJECTION_MESSAGE = "blocked: event not allowed"


class Decision(StrEnum):
    """Outcome of [AcceptancePolicy.decide()][chronicle.curation.policy.AcceptancePolicy.decide]."""

    ACCEPT = "accept"
    REJECT = "reject"


class RelayHooks(Protocol):
    """Subset of the [Relay][chronicle.core.relay.Relay] runtime used by the policy."""

    async def store(self, event: Event) -> bool: ...

    def broadcast(self, event: Event) -> int: ...

    async def query(self, event_filter: EventFilter, *, check_filter: bool = True) -> list[Event]: ...


@dataclass
class AcceptanceCounters:
    """Running accepted/rejected tallies.

    ``sink`` receives ``(name, increment)`` for every update so the counts can
    be mirrored elsewhere (Prometheus in production, a list in tests).
    """

    accepted: int = 0
    rejected: int = 0
    sink: Callable[[str, float], None] | None = field(default=None, repr=False)

    def record(self, decision: Decision) -> None:
        if decision is Decision.ACCEPT:
            self.accepted += 1
            name = "events_accepted"
        else:
            self.rejected += 1
            name = "events_rejected"
        if self.sink is not None:
            self.sink(name, 1)


class AcceptancePolicy:
    """Acceptance rules plus the side effects of accepting an event.

    Args:
        owner_pubkeys: Hex pubkeys of the relay owners.
        trust: Holder of the current trust network.
        registry: Registered thread roots.
        relay: Host runtime used to store, broadcast, and look up events.
        fetcher: Backfills threads owners reply in; ``None`` disables it.
        backup: Replicates accepted events; ``None`` disables it.
        counters: Decision tallies.
    """

    def __init__(
        self,
        owner_pubkeys: Iterable[str],
        trust: TrustNetworkHolder,
        registry: RootThreadRegistry,
        relay: RelayHooks,
        *,
        fetcher: ConversationFetcher | None = None,
        backup: BackupPropagator | None = None,
        counters: AcceptanceCounters | None = None,
    ) -> None:
        self._owners = frozenset(owner_pubkeys)
        self._trust = trust
        self._registry = registry
        self._relay = relay
        self._fetcher = fetcher
        self._backup = backup
        self._counters = counters or AcceptanceCounters()
        self._logger = Logger("policy")

    @property
    def owners(self) -> frozenset[str]:
        return self._owners

    @property
    def counters(self) -> AcceptanceCounters:
        return self._counters

    async def decide(self, event: Event, check_thread_archived: bool = True) -> Decision:
        """Apply the acceptance rules to *event* and record the outcome."""
        decision = await self._evaluate(event, check_thread_archived)
        self._counters.record(decision)
        return decision

    async def _evaluate(self, event: Event, check_thread_archived: bool) -> Decision:
        root = get_thread_root(event.tags)

        if event.pubkey in self._owners:
            if (
                check_thread_archived
                and root is not None
                and self._fetcher is not None
                and not self._registry.includes(root.event_id)
            ):
                self._fetcher.spawn(root)
            return Decision.ACCEPT

        if root is None:
            return Decision.REJECT

        if (
            event.kind in THREAD_KINDS
            and self._registry.includes(root.event_id)
            and self._trust.contains(event.pubkey)
        ):
            return Decision.ACCEPT

        if event.kind in REFERENCE_KINDS and await self._is_stored(root.event_id):
            return Decision.ACCEPT

        return Decision.REJECT

    async def _is_stored(self, event_id: str) -> bool:
        try:
            found = await self._relay.query(
                EventFilter(ids=frozenset({event_id}), limit=1), check_filter=False
            )
        except ChronicleError as e:
            self._logger.warning("stored_root_lookup_failed", root=event_id, error=str(e))
            return False
        return bool(found)

    def register_root(self, event: Event) -> None:
        """Record the thread root of an accepted note or article."""
        if event.kind not in ROOT_KINDS:
            return
        root = get_thread_root(event.tags)
        root_id = event.id if root is None else root.event_id
        try:
            if self._registry.add(root_id):
                self._logger.debug("thread_registered", root=root_id, by=event.id)
        except RegistryError as e:
            self._logger.error("thread_register_failed", root=root_id, error=str(e))

    # -------------------------------------------------------------------------
    # Host Integration
    # -------------------------------------------------------------------------

    async def reject_event(self, event: Event) -> tuple[bool, str]:
        """``reject_event`` predicate for the [Relay][chronicle.core.relay.Relay] runtime.

        On acceptance the registry is updated and the event is sent to the
        backup relays; the runtime then stores and broadcasts it.

        Returns:
            ``(True, reason)`` to refuse the event, ``(False, "")`` to let it in.
        """
        if await self.decide(event, check_thread_archived=True) is Decision.REJECT:
            return True, REJECTION_MESSAGE

        self.register_root(event)
        if self._backup is not None:
            self._backup.propagate(event)
        return False, ""

    async def ingest(self, event: Event) -> bool:
        """Accept-path for events pulled by the archiver.

        Decides without chasing thread roots, updates the registry, stores
        the event, and only when the store reports it as new broadcasts it
        and sends it to the backup relays. Duplicate deliveries therefore
        have no effect beyond the first.

        Returns:
            True if the event was accepted.
        """
        if await self.decide(event, check_thread_archived=False) is Decision.REJECT:
            return False

        self.register_root(event)
        if await self._relay.store(event):
            self._relay.broadcast(event)
            if self._backup is not None:
                self._backup.propagate(event)
        return True
