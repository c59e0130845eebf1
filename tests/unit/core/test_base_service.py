"""
Unit tests for core.base_service module.

Tests:
- BaseServiceConfig defaults and validation
- Factory methods (from_yaml, from_dict) forwarding collaborators
- run_forever() cycling, shutdown and consecutive failure limit
- wait() interruptible sleep
- Context manager support
- Metric helpers being no-ops when metrics are disabled
"""

import asyncio
from unittest.mock import patch

import pytest
from pydantic import Field

from chronicle.core.base_service import BaseService, BaseServiceConfig


class CountingConfig(BaseServiceConfig):
    batch: int = Field(default=10, ge=1)


class CountingService(BaseService[CountingConfig]):
    SERVICE_NAME = "counting"  # type: ignore[assignment]
    CONFIG_CLASS = CountingConfig

    def __init__(self, config: CountingConfig | None = None, *, label: str = "") -> None:
        super().__init__(config)
        self.label = label
        self.runs = 0
        self.fail = False
        self.stop_after: int | None = None

    async def run(self) -> None:
        self.runs += 1
        if self.stop_after is not None and self.runs >= self.stop_after:
            self.request_shutdown()
        if self.fail:
            raise RuntimeError("cycle failed")


class TestBaseServiceConfig:
    def test_defaults(self):
        config = BaseServiceConfig()
        assert config.interval == 300.0
        assert config.max_consecutive_failures == 5
        assert config.metrics.enabled is False

    def test_interval_minimum(self):
        with pytest.raises(ValueError):
            BaseServiceConfig(interval=30.0)


class TestFactoryMethods:
    def test_default_config(self):
        service = CountingService()
        assert service.config.batch == 10

    def test_from_dict_forwards_kwargs(self):
        service = CountingService.from_dict({"batch": 3, "interval": 90}, label="x")
        assert service.config.batch == 3
        assert service.config.interval == 90.0
        assert service.label == "x"

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "service.yaml"
        path.write_text("batch: 7\n")
        assert CountingService.from_yaml(path).config.batch == 7

    def test_from_yaml_missing(self):
        with pytest.raises(FileNotFoundError):
            CountingService.from_yaml("/nonexistent/service.yaml")


class TestLifecycle:
    async def test_wait_timeout(self):
        service = CountingService()
        assert await service.wait(0.01) is False

    async def test_wait_interrupted(self):
        service = CountingService()
        asyncio.get_running_loop().call_later(0.01, service.request_shutdown)
        assert await service.wait(10) is True
        assert not service.is_running

    async def test_context_manager_resets_shutdown(self):
        service = CountingService()
        service.request_shutdown()
        async with service:
            assert service.is_running
        assert not service.is_running


class TestRunForever:
    async def test_stops_on_shutdown(self):
        service = CountingService()
        service.stop_after = 3
        with patch.object(service, "wait", side_effect=[False, False, True]):
            await service.run_forever()
        assert service.runs == 3

    async def test_stops_after_consecutive_failures(self):
        service = CountingService(CountingConfig(max_consecutive_failures=2))
        service.fail = True
        with patch.object(service, "wait", return_value=False):
            await service.run_forever()
        assert service.runs == 2

    async def test_failure_streak_resets(self):
        service = CountingService(CountingConfig(max_consecutive_failures=2))
        outcomes = iter([True, False, True, False])

        async def run():
            service.runs += 1
            if next(outcomes):
                raise RuntimeError("flaky")
            if service.runs == 4:
                service.request_shutdown()

        service.run = run  # type: ignore[method-assign]
        with patch.object(service, "wait", side_effect=[False, False, False, True]):
            await service.run_forever()
        assert service.runs == 4

    async def test_cancelled_propagates(self):
        service = CountingService()

        async def run():
            raise asyncio.CancelledError

        service.run = run  # type: ignore[method-assign]
        with pytest.raises(asyncio.CancelledError):
            await service.run_forever()


class TestMetrics:
    def test_noop_when_disabled(self):
        service = CountingService()
        with patch("chronicle.core.base_service.SERVICE_GAUGE") as gauge:
            service.set_gauge("x", 1)
            service.inc_counter("y")
        gauge.labels.assert_not_called()

    def test_enabled(self):
        service = CountingService(CountingConfig(metrics={"enabled": True}))
        with patch("chronicle.core.base_service.SERVICE_GAUGE") as gauge:
            service.set_gauge("members", 12)
        gauge.labels.assert_called_once_with(service="counting", name="members")
        gauge.labels.return_value.set.assert_called_once_with(12)
