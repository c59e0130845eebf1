"""Refresher service package.

Re-exports all public symbols::

    from chronicle.services.refresher import RefreshScheduler, ChronicleConfig, Archiver
"""

from .archiver import Archiver, ArchiveStats
from .configs import SEED_RELAYS, ArchiveConfig, ChronicleConfig, RelayInfoConfig, TimeoutsConfig
from .profiles import ProfileRefresher
from .service import RefreshScheduler, SchedulerState


__all__ = [
    "SEED_RELAYS",
    "ArchiveConfig",
    "ArchiveStats",
    "Archiver",
    "ChronicleConfig",
    "ProfileRefresher",
    "RefreshScheduler",
    "RelayInfoConfig",
    "SchedulerState",
    "TimeoutsConfig",
]
