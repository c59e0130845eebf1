"""Core layer: infrastructure shared by the curation engine and the services.

Sits in the middle of the diamond DAG -- depends only on
``chronicle.models`` and is depended upon by ``chronicle.curation`` and
``chronicle.services``.

Attributes:
    Relay: Hook-driven relay runtime. See [Relay][chronicle.core.relay.Relay].
    EventStore: PostgreSQL event table over the asyncpg
        [Pool][chronicle.core.pool.Pool].
    TaskSupervisor: Owner of detached background tasks.
    BaseService: Abstract generic base class with lifecycle management
        ([run()][chronicle.core.base_service.BaseService.run] /
        [run_forever()][chronicle.core.base_service.BaseService.run_forever] /
        shutdown), YAML factories, and Prometheus metrics integration.
    Logger: Structured logger supporting key=value and JSON output modes.
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.

See Also:
    [chronicle.models][chronicle.models]: Pure dataclass models consumed by this layer.
"""

from .base_service import BaseService, BaseServiceConfig, ConfigT
from .exceptions import (
    ChronicleError,
    ConfigurationError,
    ConnectivityError,
    PublishingError,
    RegistryError,
    StorageError,
    TrustNetworkUnavailableError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
    counter_sink,
    start_metrics_server,
)
from .pool import DatabaseConfig, Pool, PoolConfig, PoolLimitsConfig, PoolRetryConfig
from .relay import (
    Relay,
    RelayInfo,
    reject_base64_media,
    reject_complex_filters,
    reject_empty_filters,
)
from .store import EventStore, StoreConfig
from .tasks import TaskSupervisor
from .yaml import load_yaml


__all__ = [
    "CYCLE_DURATION_SECONDS",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "BaseService",
    "BaseServiceConfig",
    "ChronicleError",
    "ConfigT",
    "ConfigurationError",
    "ConnectivityError",
    "DatabaseConfig",
    "EventStore",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "Pool",
    "PoolConfig",
    "PoolLimitsConfig",
    "PoolRetryConfig",
    "PublishingError",
    "RegistryError",
    "Relay",
    "RelayInfo",
    "StorageError",
    "StoreConfig",
    "StructuredFormatter",
    "TaskSupervisor",
    "TrustNetworkUnavailableError",
    "counter_sink",
    "format_kv_pairs",
    "load_yaml",
    "reject_base64_media",
    "reject_complex_filters",
    "reject_empty_filters",
]
