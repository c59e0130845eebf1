"""Refresh scheduler for Chronicle.

Owns the write side of the trust network. On startup it performs the
initial profile refresh, trust rebuild and (when ``fetch_sync`` is enabled)
archival pass, then repeats the same three steps every
``refresh_interval`` hours. Every step is isolated: a failing step is
logged and the remaining ones still run, and a failed trust rebuild keeps
the previously installed network.

See Also:
    [ChronicleConfig][chronicle.services.refresher.ChronicleConfig]:
        Configuration model for scheduling and trust parameters.
    [BaseService][chronicle.core.base_service.BaseService]: Abstract base
        class providing ``run()`` and ``run_forever()`` lifecycle.

Examples:
    ```python
    scheduler = RefreshScheduler.from_yaml(
        "config/chronicle.yaml",
        trust_builder=builder,
        trust_holder=holder,
        archiver=archiver,
        profiles=profiles,
    )

    async with scheduler:
        await scheduler.run_forever()
    ```
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

from chronicle.core.base_service import BaseService
from chronicle.core.exceptions import TrustNetworkUnavailableError
from chronicle.models.constants import ServiceName

from .configs import ChronicleConfig


if TYPE_CHECKING:
    from chronicle.curation.trust import TrustNetworkBuilder, TrustNetworkHolder

    from .archiver import Archiver, ArchiveStats
    from .profiles import ProfileRefresher


class SchedulerState(StrEnum):
    INITIALIZING = "initializing"
    STEADY = "steady"


class RefreshScheduler(BaseService[ChronicleConfig]):
    """Periodic trust rebuilds, profile refreshes and archival passes.

    See Also:
        [ChronicleConfig][chronicle.services.refresher.ChronicleConfig]:
            Configuration model for this service.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.REFRESHER
    CONFIG_CLASS: ClassVar[type[ChronicleConfig]] = ChronicleConfig

    def __init__(
        self,
        config: ChronicleConfig | None = None,
        *,
        trust_builder: TrustNetworkBuilder,
        trust_holder: TrustNetworkHolder,
        archiver: Archiver,
        profiles: ProfileRefresher,
    ) -> None:
        super().__init__(config)
        self._trust_builder = trust_builder
        self._trust_holder = trust_holder
        self._archiver = archiver
        self._profiles = profiles
        self._state = SchedulerState.INITIALIZING

    @property
    def state(self) -> SchedulerState:
        return self._state

    async def initialize(self) -> None:
        """Run the first refresh cycle and switch to the steady state. Idempotent."""
        if self._state is SchedulerState.STEADY:
            return
        self._logger.info("initialization_started")
        await self._cycle()
        self._state = SchedulerState.STEADY
        self._logger.info(
            "initialization_completed", trusted=len(self._trust_holder.snapshot)
        )

    async def run(self) -> None:
        """Execute one steady-state refresh cycle."""
        await self._cycle()

    async def run_forever(self) -> None:
        """Initialize once, then cycle every ``config.interval`` seconds."""
        await self.initialize()
        if await self.wait(self._config.interval):
            return
        await super().run_forever()

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    async def _cycle(self) -> None:
        await self.refresh_profiles()
        await self.rebuild_trust()
        if self._config.fetch_sync:
            await self.archive()

    async def refresh_profiles(self) -> None:
        try:
            stored = await self._profiles.refresh()
        except Exception as e:  # Intentionally broad: step isolation
            self._logger.error("profile_refresh_failed", error=str(e))
            return
        self.set_gauge("profiles_stored", stored)

    async def rebuild_trust(self) -> None:
        """Install a freshly built network, keeping the current one on failure."""
        try:
            network = await self._trust_builder.rebuild(self._config.owner_pubkeys)
        except TrustNetworkUnavailableError as e:
            self._logger.warning(
                "trust_network_kept", members=len(self._trust_holder.snapshot), error=str(e)
            )
            self.inc_counter("trust_rebuilds_failed")
            return
        except Exception as e:  # Intentionally broad: step isolation
            self._logger.error("trust_rebuild_failed", error=str(e))
            self.inc_counter("trust_rebuilds_failed")
            return

        self._trust_holder.install(network)
        self.set_gauge("trust_network_members", len(network))
        self._logger.info("trust_network_installed", members=len(network))

    async def archive(self) -> ArchiveStats | None:
        try:
            stats = await self._archiver.run(self._config.archive_time_budget)
        except Exception as e:  # Intentionally broad: step isolation
            self._logger.error("archive_failed", error=str(e))
            return None
        self.set_gauge("archived_trusted", stats.trusted)
        self.set_gauge("archived_untrusted", stats.untrusted)
        return stats
