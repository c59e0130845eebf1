"""Chronicle exception hierarchy.

Typed exceptions distinguish the fatal startup failures (configuration,
registry load) from the best-effort remote failures that are logged and
retried on the next refresh cycle.

Exception hierarchy:

```text
ChronicleError (base -- never raised directly)
├── ConfigurationError               -- config validation, missing keys, bad YAML
├── RegistryError                    -- root-thread registry file unreadable/unwritable
├── StorageError                     -- event store failures
├── ConnectivityError                -- remote relay unreachable or timed out
│   └── TrustNetworkUnavailableError -- no owner follow list could be fetched
└── PublishingError                  -- event rejected by or not delivered to a relay
```

See Also:
    [RootThreadRegistry][chronicle.curation.registry.RootThreadRegistry]:
        Raises [RegistryError][chronicle.core.exceptions.RegistryError].
    [TrustNetworkBuilder][chronicle.curation.trust.TrustNetworkBuilder]:
        Raises
        [TrustNetworkUnavailableError][chronicle.core.exceptions.TrustNetworkUnavailableError].
    [BackupPropagator][chronicle.curation.backup.BackupPropagator]: Raises
        [PublishingError][chronicle.core.exceptions.PublishingError].
"""

from __future__ import annotations


class ChronicleError(Exception):
    """Base exception for all Chronicle errors.

    Never raised directly -- always use a specific subclass.
    """


class ConfigurationError(ChronicleError):
    """Invalid or missing configuration (YAML, env vars, CLI flags).

    Fatal at startup: the process does not start.
    """


class RegistryError(ChronicleError):
    """The root-thread registry file cannot be read or written.

    Fatal at startup: the registry must be intact before events are served.
    """


class StorageError(ChronicleError):
    """The event store failed to persist, query, or delete an event."""


class ConnectivityError(ChronicleError):
    """Base for remote relay connectivity failures.

    Never fatal: the failing step is logged and retried on the next cycle.
    """


class TrustNetworkUnavailableError(ConnectivityError):
    """No owner follow list could be fetched during a trust-network rebuild.

    The previously installed snapshot stays in place.
    """


class PublishingError(ChronicleError):
    """An event could not be delivered to a relay."""
