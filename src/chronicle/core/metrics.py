"""
Prometheus metrics for the relay curator.

All collectors live in the default ``prometheus_client`` registry and are
labelled by component, so the refresh scheduler and the acceptance policy
share one gauge and one counter family:

* ``SERVICE_INFO``: component name, set once when a loop starts.
* ``SERVICE_GAUGE``: current values such as trust network size.
* ``SERVICE_COUNTER``: running totals such as accepted events.
* ``CYCLE_DURATION_SECONDS``: how long each refresh cycle took.

[MetricsServer][chronicle.core.metrics.MetricsServer] exposes them over
aiohttp when the ``metrics`` section enables it.
"""

from __future__ import annotations

from collections.abc import Callable

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, Info, generate_latest
from pydantic import BaseModel, Field


class MetricsConfig(BaseModel):
    """The ``metrics`` section. Bind ``0.0.0.0`` to allow scraping from outside a container."""

    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1024, le=65535)
    path: str = "/metrics"


SERVICE_INFO = Info("chronicle_service", "Component running the loop")

SERVICE_GAUGE = Gauge(
    "chronicle_gauge", "Current value of a component metric", ["service", "name"]
)

SERVICE_COUNTER = Counter(
    "chronicle_counter", "Running total of a component metric", ["service", "name"]
)

# Cycles run daily by default; archival of a large network takes hours
CYCLE_DURATION_SECONDS = Histogram(
    "chronicle_cycle_duration_seconds",
    "Wall time of one refresh cycle",
    ["service"],
    buckets=(10, 30, 60, 300, 600, 1800, 3600, 7200, 21600),
)


def counter_sink(service: str) -> Callable[[str, float], None]:
    """Adapt ``SERVICE_COUNTER`` to the ``(name, amount)`` callback the policy counters expect."""

    def increment(name: str, value: float) -> None:
        SERVICE_COUNTER.labels(service=service, name=name).inc(value)

    return increment


class MetricsServer:
    """Serves the default registry on ``config.path``."""

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Bind the endpoint unless metrics are disabled.

        Raises:
            OSError: If the address cannot be bound.
        """
        if not self._config.enabled:
            return
        app = web.Application()
        app.router.add_get(self._config.path, self._scrape)
        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        await web.TCPSite(runner, self._config.host, self._config.port).start()
        self._runner = runner

    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is not None:
            await runner.cleanup()

    @staticmethod
    async def _scrape(_request: web.Request) -> web.Response:
        return web.Response(body=generate_latest(), headers={"Content-Type": CONTENT_TYPE_LATEST})


async def start_metrics_server(config: MetricsConfig | None = None) -> MetricsServer:
    """Start a [MetricsServer][chronicle.core.metrics.MetricsServer]; the caller stops it."""
    server = MetricsServer(config or MetricsConfig())
    await server.start()
    return server
