"""
Replication of accepted events to backup relays.

Each destination is published to independently: one slow or failing backup
relay never delays or affects the others, and failures are only logged.
Nothing is retried; the next accepted event simply tries again.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from chronicle.core.exceptions import PublishingError
from chronicle.core.logger import Logger


if TYPE_CHECKING:
    from collections.abc import Sequence

    from chronicle.core.tasks import TaskSupervisor
    from chronicle.models import Event
    from chronicle.utils.protocol import SourcePool


class BackupPropagator:
    """Fire-and-forget publisher for the configured backup relays.

    Args:
        source: Remote relay access.
        backup_relays: Destination relay URLs.
        supervisor: Owner of the detached publish tasks.
        timeout: Seconds allowed per destination.
    """

    def __init__(
        self,
        source: SourcePool,
        backup_relays: Sequence[str],
        supervisor: TaskSupervisor,
        *,
        timeout: float = 5.0,
    ) -> None:
        self._source = source
        self._backup_relays = list(dict.fromkeys(backup_relays))
        self._supervisor = supervisor
        self._timeout = timeout
        self._logger = Logger("backup")

    @property
    def destinations(self) -> list[str]:
        return list(self._backup_relays)

    def propagate(self, event: Event) -> None:
        """Schedule one detached publish per backup relay and return immediately."""
        for url in self._backup_relays:
            self._supervisor.spawn(self.publish_one(url, event), name=f"backup:{url}")

    async def publish_all(self, event: Event) -> dict[str, bool]:
        """Publish to every backup relay concurrently and report each outcome."""
        results = await asyncio.gather(
            *(self.publish_one(url, event) for url in self._backup_relays)
        )
        return dict(zip(self._backup_relays, results, strict=True))

    async def publish_one(self, url: str, event: Event) -> bool:
        """Publish to *url*, logging instead of raising on failure."""
        try:
            await self.publish(url, event)
        except PublishingError as e:
            self._logger.warning("backup_publish_failed", relay=url, id=event.id, error=str(e))
            return False
        self._logger.debug("backup_published", relay=url, id=event.id)
        return True

    async def publish(self, url: str, event: Event) -> None:
        """Publish to *url* within the per-destination timeout.

        Raises:
            PublishingError: If the relay is unreachable, refused the event,
                or did not answer in time.
        """
        try:
            async with asyncio.timeout(self._timeout):
                await self._source.publish(url, event, timeout=self._timeout)
        except TimeoutError as e:
            raise PublishingError(f"timed out after {self._timeout}s") from e
        except OSError as e:
            raise PublishingError(str(e)) from e
