"""CLI entry point for Chronicle.

Loads the configuration, connects the event store, wires the relay runtime
to the acceptance engine, and runs the refresh scheduler either for a
single cycle (``--once``) or continuously with a Prometheus metrics server.

Examples:
    ```bash
    python -m chronicle
    python -m chronicle --once --log-level DEBUG
    python -m chronicle --config config/chronicle.yaml --store-config config/store.yaml
    ```
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any, NamedTuple

from pydantic import ValidationError

from chronicle import __version__
from chronicle.core import (
    ConfigurationError,
    EventStore,
    Pool,
    RegistryError,
    Relay,
    RelayInfo,
    StorageError,
    StoreConfig,
    TaskSupervisor,
    counter_sink,
    reject_base64_media,
    reject_complex_filters,
    reject_empty_filters,
    start_metrics_server,
)
from chronicle.core.logger import Logger, StructuredFormatter
from chronicle.core.yaml import load_yaml
from chronicle.curation import (
    AcceptanceCounters,
    AcceptancePolicy,
    BackupPropagator,
    ConversationFetcher,
    RootThreadRegistry,
    TrustNetworkBuilder,
    TrustNetworkHolder,
)
from chronicle.models import TrustNetwork
from chronicle.services.refresher import Archiver, ChronicleConfig, ProfileRefresher, RefreshScheduler
from chronicle.utils.protocol import NostrSourcePool, SourcePool


CONFIG_BASE = Path("config")
DEFAULT_CONFIG = CONFIG_BASE / "chronicle.yaml"
STORE_CONFIG = CONFIG_BASE / "store.yaml"

logger = Logger("cli")


class Components(NamedTuple):
    """Wired runtime objects sharing one configuration."""

    relay: Relay
    registry: RootThreadRegistry
    trust: TrustNetworkHolder
    policy: AcceptancePolicy
    scheduler: RefreshScheduler
    supervisor: TaskSupervisor


def build_components(
    config: ChronicleConfig,
    store: EventStore,
    source: SourcePool,
    supervisor: TaskSupervisor | None = None,
) -> Components:
    """Wire the relay runtime, the acceptance engine and the scheduler."""
    supervisor = supervisor or TaskSupervisor()

    relay = Relay(
        info=RelayInfo(
            name=config.relay.name,
            description=config.relay.description,
            pubkey=config.owner_pubkeys[0],
            contact=config.relay.contact,
            icon=config.relay.icon,
            version=__version__,
        )
    )
    relay.reject_event.append(reject_base64_media)
    relay.reject_filter.extend((reject_empty_filters, reject_complex_filters))
    relay.store_event.append(store.save_event)
    relay.query_events.append(store.query_events)
    relay.delete_event.append(store.delete_event)

    registry = RootThreadRegistry(config.registry_path, supervisor)
    trust = TrustNetworkHolder(TrustNetwork.of_owners(config.owner_pubkeys))

    fetcher = ConversationFetcher(
        source, config.seed_relays, relay.store, supervisor, timeout=config.timeouts.backfill
    )
    backup = BackupPropagator(
        source, config.backup_relays, supervisor, timeout=config.timeouts.backup
    )
    counters = AcceptanceCounters(
        sink=counter_sink("policy") if config.metrics.enabled else None
    )
    policy = AcceptancePolicy(
        config.owner_pubkeys,
        trust,
        registry,
        relay,
        fetcher=fetcher,
        backup=backup,
        counters=counters,
    )
    relay.reject_event.append(policy.reject_event)

    scheduler = RefreshScheduler(
        config,
        trust_builder=TrustNetworkBuilder(
            source,
            config.seed_relays,
            hops=config.hops,
            min_followers=config.min_followers,
            batch_size=config.follow_batch_size,
            timeout=config.timeouts.follows,
        ),
        trust_holder=trust,
        archiver=Archiver(
            source,
            config.seed_relays,
            config.owner_pubkeys,
            policy,
            default_budget=config.archive_time_budget,
        ),
        profiles=ProfileRefresher(
            source,
            config.seed_relays,
            config.owner_pubkeys,
            relay.store,
            timeout=config.timeouts.profile,
        ),
    )

    return Components(relay, registry, trust, policy, scheduler, supervisor)


async def run_chronicle(components: Components, *, once: bool) -> int:
    """Run the scheduler in one-shot or continuous mode.

    Returns:
        Exit code: 0 for success, 1 for failure.
    """
    scheduler = components.scheduler
    supervisor = components.supervisor

    if once:
        try:
            async with scheduler:
                await scheduler.initialize()
            await supervisor.join()
            logger.info("chronicle_completed")
            return 0
        except Exception as e:  # Intentionally broad: CLI error boundary for one-shot mode
            logger.error("chronicle_failed", error=str(e))
            return 1
        finally:
            await _shutdown(components)

    metrics_config = scheduler.config.metrics
    metrics_server = await start_metrics_server(metrics_config)
    if metrics_config.enabled:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        scheduler.request_shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        async with scheduler:
            await scheduler.run_forever()
        return 0
    except Exception as e:  # Intentionally broad: CLI error boundary for continuous mode
        logger.error("chronicle_failed", error=str(e))
        return 1
    finally:
        await _shutdown(components)
        await metrics_server.stop()


async def _shutdown(components: Components) -> None:
    await components.supervisor.cancel_all()
    try:
        components.registry.persist()
    except RegistryError as e:
        logger.error("registry_persist_failed", error=str(e))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(prog="chronicle", description="Chronicle relay curator")

    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Chronicle config path (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--store-config",
        type=Path,
        default=STORE_CONFIG,
        help=f"Event store config path (default: {STORE_CONFIG})",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run the initial refresh cycle and exit (default: run continuously)",
    )

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Install a ``StructuredFormatter`` on the root handler."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.warning("config_not_found", path=str(path))
        return {}
    return load_yaml(path)


def load_config(path: Path) -> ChronicleConfig:
    """Load and validate the Chronicle configuration.

    Raises:
        ConfigurationError: If the file is missing or invalid.
    """
    try:
        return ChronicleConfig(**load_yaml(path))
    except FileNotFoundError as e:
        raise ConfigurationError(str(e)) from e
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration in {path}: {e}") from e


def load_store(path: Path) -> EventStore:
    """Build the event store from ``pool`` and ``store`` sections of *path*.

    Raises:
        ConfigurationError: If the settings are invalid (including a missing
            database password variable).
    """
    store_dict = _load_yaml_dict(path)
    try:
        pool = Pool.from_dict(store_dict.get("pool") or {})
        return EventStore(pool, StoreConfig(**(store_dict.get("store") or {})))
    except ValidationError as e:
        raise ConfigurationError(f"invalid store configuration in {path}: {e}") from e


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, load config, connect the store, run."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = load_config(args.config)
        store = load_store(args.store_config)
    except ConfigurationError as e:
        logger.error("configuration_invalid", error=str(e))
        return 1

    components = build_components(config, store, NostrSourcePool(config.timeouts.connect))

    try:
        components.registry.load_from_file()
    except RegistryError as e:
        logger.error("registry_load_failed", error=str(e))
        return 1
    logger.info("monitoring_threads", threads=components.registry.size())

    try:
        async with store:
            await store.initialize()
            return await run_chronicle(components, once=args.once)
    except StorageError as e:
        logger.error("store_unavailable", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
