"""Acceptance engine: who may write to the relay and which threads are archived.

Attributes:
    AcceptancePolicy: Rule evaluation plus accept-side effects.
    RootThreadRegistry: File-backed set of archived thread roots.
    TrustNetworkBuilder: Follow-graph walk producing trust snapshots.
    TrustNetworkHolder: Atomically swapped reference to the current snapshot.
    ConversationFetcher: Background backfill of threads owners reply in.
    BackupPropagator: Fire-and-forget replication to backup relays.

See Also:
    [chronicle.services.refresher][chronicle.services.refresher]: Periodic
        trust rebuilds and archival passes driving this layer.
"""

from .backup import BackupPropagator
from .fetcher import ConversationFetcher
from .policy import REJECTION_MESSAGE, AcceptanceCounters, AcceptancePolicy, Decision, RelayHooks
from .registry import RootThreadRegistry
from .trust import TrustNetworkBuilder, TrustNetworkHolder


__all__ = [
    "REJECTION_MESSAGE",
    "AcceptanceCounters",
    "AcceptancePolicy",
    "BackupPropagator",
    "ConversationFetcher",
    "Decision",
    "RelayHooks",
    "RootThreadRegistry",
    "TrustNetworkBuilder",
    "TrustNetworkHolder",
]
