r"""Chronicle -- trust-gated archiving relay for Nostr.

Decides which events may enter the relay (owners, trusted thread members,
references to stored events), keeps the set of archived threads, rebuilds a
web of trust from the owners' follow graph, backfills threads on demand,
and replicates accepted events to backup relays.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
              services         Refresh scheduler, archiver, profiles
                 |
              curation         Acceptance policy, registry, trust, backfill
              /      \
          core        utils    Infrastructure | keys, remote relay access
              \      /
              models           Pure frozen dataclasses (zero I/O)
```

Note:
    Top-level imports (``from chronicle import Event``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("chronicle")

__all__ = [
    "AcceptancePolicy",
    "BaseService",
    "ChronicleConfig",
    "Event",
    "EventFilter",
    "EventStore",
    "Logger",
    "RefreshScheduler",
    "Relay",
    "RootThreadRegistry",
    "TrustNetwork",
    "TrustNetworkBuilder",
    "TrustNetworkHolder",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("chronicle.core", "BaseService"),
    "EventStore": ("chronicle.core", "EventStore"),
    "Logger": ("chronicle.core", "Logger"),
    "Relay": ("chronicle.core", "Relay"),
    "Event": ("chronicle.models", "Event"),
    "EventFilter": ("chronicle.models", "EventFilter"),
    "TrustNetwork": ("chronicle.models", "TrustNetwork"),
    "AcceptancePolicy": ("chronicle.curation", "AcceptancePolicy"),
    "RootThreadRegistry": ("chronicle.curation", "RootThreadRegistry"),
    "TrustNetworkBuilder": ("chronicle.curation", "TrustNetworkBuilder"),
    "TrustNetworkHolder": ("chronicle.curation", "TrustNetworkHolder"),
    "ChronicleConfig": ("chronicle.services", "ChronicleConfig"),
    "RefreshScheduler": ("chronicle.services", "RefreshScheduler"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'chronicle' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
