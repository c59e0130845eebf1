"""Unit tests for core.metrics module."""

from unittest.mock import patch

from chronicle.core.metrics import MetricsConfig, MetricsServer, counter_sink, start_metrics_server


class TestMetricsConfig:
    def test_defaults(self):
        config = MetricsConfig()
        assert config.enabled is False
        assert config.port == 8000
        assert config.path == "/metrics"


class TestCounterSink:
    def test_increments_labelled_counter(self):
        with patch("chronicle.core.metrics.SERVICE_COUNTER") as counter:
            counter_sink("policy")("events_accepted", 1)
        counter.labels.assert_called_once_with(service="policy", name="events_accepted")
        counter.labels.return_value.inc.assert_called_once_with(1)


class TestMetricsServer:
    async def test_disabled_is_noop(self):
        server = await start_metrics_server(MetricsConfig(enabled=False))
        assert isinstance(server, MetricsServer)
        assert server._runner is None
        await server.stop()
