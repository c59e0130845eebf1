"""
Lifecycle shared by the long-running parts of Chronicle.

A service is a pydantic config plus a ``run()`` coroutine doing one bounded
unit of work. [BaseService][chronicle.core.base_service.BaseService] repeats
that unit every ``interval`` seconds, stops on request or after too many
failures in a row, and reports each cycle to Prometheus when metrics are on.
Collaborators go to the subclass constructor; ``from_dict`` and
``from_yaml`` pass extra keyword arguments straight through.

See Also:
    [RefreshScheduler][chronicle.services.refresher.RefreshScheduler]: The
        service built on this class.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Generic, Self, TypeVar, cast

from pydantic import BaseModel, Field

from .logger import Logger
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
)
from .yaml import load_yaml


if TYPE_CHECKING:
    from pathlib import Path
    from types import TracebackType

    from chronicle.models.constants import ServiceName


class BaseServiceConfig(BaseModel):
    """Loop settings every service accepts."""

    interval: float = Field(default=300.0, ge=60.0, description="Seconds between cycles")
    max_consecutive_failures: int = Field(
        default=5, ge=0, description="Failed cycles in a row before giving up (0 = never)"
    )
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


ConfigT = TypeVar("ConfigT", bound=BaseServiceConfig)


class BaseService(ABC, Generic[ConfigT]):
    """Interval loop around an abstract ``run()``.

    Subclasses define ``SERVICE_NAME`` (logger and metric label) and
    ``CONFIG_CLASS`` (used when no config is passed and by the factories).
    Typical use is ``async with service: await service.run_forever()``.
    """

    SERVICE_NAME: ClassVar[ServiceName]
    CONFIG_CLASS: ClassVar[type[BaseModel]]

    def __init__(self, config: ConfigT | None = None) -> None:
        if config is None:
            config = cast("ConfigT", self.CONFIG_CLASS())
        self._config: ConfigT = config
        self._logger = Logger(self.SERVICE_NAME)
        self._stop = asyncio.Event()

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> Self:
        """Validate *data* against ``CONFIG_CLASS`` and build the service.

        Raises:
            pydantic.ValidationError: If *data* is invalid.
        """
        return cls(config=cast("ConfigT", cls.CONFIG_CLASS(**data)), **kwargs)

    @classmethod
    def from_yaml(cls, config_path: str | Path, **kwargs: Any) -> Self:
        """Same as ``from_dict`` on the contents of a YAML file."""
        return cls.from_dict(load_yaml(config_path), **kwargs)

    @property
    def config(self) -> ConfigT:
        return self._config

    @property
    def is_running(self) -> bool:
        return not self._stop.is_set()

    def request_shutdown(self) -> None:
        """Ask the loop to stop after the current step. Signal-handler safe."""
        self._stop.set()

    async def wait(self, timeout: float) -> bool:  # noqa: ASYNC109
        """Sleep up to *timeout* seconds; ``True`` if shutdown interrupted the sleep."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    @abstractmethod
    async def run(self) -> None:
        """One unit of work. Long loops inside should honour ``is_running``."""

    async def run_forever(self) -> None:
        """Repeat ``run()`` every ``config.interval`` seconds until told to stop.

        A failing cycle is logged and counted; the loop ends once
        ``max_consecutive_failures`` cycles failed back to back. Cancellation
        and interpreter exits are never caught.
        """
        interval = self._config.interval
        limit = self._config.max_consecutive_failures
        if self._config.metrics.enabled:
            SERVICE_INFO.info({"service": self.SERVICE_NAME})
        self._logger.info("run_forever_started", interval=interval, max_consecutive_failures=limit)

        streak = 0
        while self.is_running:
            if await self._run_cycle():
                streak = 0
                self._logger.info("cycle_completed", next_cycle_s=interval)
            else:
                streak += 1
                self.set_gauge("consecutive_failures", streak)
                if limit and streak >= limit:
                    self._logger.critical(
                        "max_consecutive_failures_reached", failures=streak, limit=limit
                    )
                    break
            if await self.wait(interval):
                break

        self._logger.info("run_forever_stopped")

    async def _run_cycle(self) -> bool:
        started = time.monotonic()
        try:
            await self.run()
        except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
            raise
        except Exception as e:  # Intentionally broad: one bad cycle must not end the loop
            self.inc_counter("cycles_failed")
            self.inc_counter(f"errors_{type(e).__name__}")
            self._logger.error("run_cycle_error", error=str(e), error_type=type(e).__name__)
            return False

        if self._config.metrics.enabled:
            CYCLE_DURATION_SECONDS.labels(service=self.SERVICE_NAME).observe(
                time.monotonic() - started
            )
        self.inc_counter("cycles_success")
        self.set_gauge("last_cycle_timestamp", time.time())
        self.set_gauge("consecutive_failures", 0)
        return True

    def set_gauge(self, name: str, value: float) -> None:
        """Set ``SERVICE_GAUGE{service, name}``; ignored while metrics are off."""
        if self._config.metrics.enabled:
            SERVICE_GAUGE.labels(service=self.SERVICE_NAME, name=name).set(value)

    def inc_counter(self, name: str, value: float = 1) -> None:
        """Increment ``SERVICE_COUNTER{service, name}``; ignored while metrics are off."""
        if self._config.metrics.enabled:
            SERVICE_COUNTER.labels(service=self.SERVICE_NAME, name=name).inc(value)

    async def __aenter__(self) -> Self:
        self._stop.clear()
        self._logger.info("service_started")
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        self._stop.set()
        self._logger.info("service_stopped")
