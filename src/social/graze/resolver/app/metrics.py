"""Metrics sinks for resolution counts and timings.

The backend is picked by METRICS_BACKEND: ``telegraf`` (StatsD over UDP),
``otel`` (OTLP export) or ``none``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union

from aio_statsd import TelegrafStatsdClient
from opentelemetry import metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, Resource

logger = logging.getLogger(__name__)

Number = Union[int, float]
Tags = Optional[Dict[str, Any]]


class MetricsClient(ABC):
    @abstractmethod
    def increment(self, name: str, value: Number = 1, tag_dict: Tags = None) -> None:
        pass

    @abstractmethod
    def timer(self, name: str, value: Number, tag_dict: Tags = None) -> None:
        """Record a duration in seconds."""
        pass

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass


class NoOpMetricsClient(MetricsClient):
    def increment(self, name: str, value: Number = 1, tag_dict: Tags = None) -> None:
        pass

    def timer(self, name: str, value: Number, tag_dict: Tags = None) -> None:
        pass


class TelegrafMetricsClient(MetricsClient):
    def __init__(self, client: TelegrafStatsdClient):
        self.client = client

    def increment(self, name: str, value: Number = 1, tag_dict: Tags = None) -> None:
        self.client.increment(name, value, tag_dict=tag_dict or {})

    def timer(self, name: str, value: Number, tag_dict: Tags = None) -> None:
        self.client.timer(name, value, tag_dict=tag_dict or {})

    async def connect(self) -> None:
        await self.client.connect()

    async def close(self) -> None:
        try:
            await self.client.close()
        except Exception as e:
            logger.warning(f"Error closing Telegraf client: {e}")


class OTELMetricsClient(MetricsClient):
    """
    OpenTelemetry metrics client.

    Counters and histograms are created on first use and cached by name. With an
    exporter endpoint a meter provider exporting over OTLP is installed,
    otherwise the globally configured provider is used.
    """

    def __init__(self, service_name: str = "did-resolver", exporter_endpoint: Optional[str] = None):
        if exporter_endpoint:
            reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=exporter_endpoint))
            metrics.set_meter_provider(
                MeterProvider(
                    resource=Resource.create({SERVICE_NAME: service_name}),
                    metric_readers=[reader],
                )
            )
        self.meter = metrics.get_meter(service_name)
        self._counters: Dict[str, Any] = {}
        self._histograms: Dict[str, Any] = {}

    @staticmethod
    def _attributes(tag_dict: Tags) -> Dict[str, str]:
        return {str(k): str(v) for k, v in (tag_dict or {}).items()}

    def increment(self, name: str, value: Number = 1, tag_dict: Tags = None) -> None:
        counter = self._counters.get(name)
        if counter is None:
            counter = self._counters[name] = self.meter.create_counter(name)
        counter.add(value, attributes=self._attributes(tag_dict))

    def timer(self, name: str, value: Number, tag_dict: Tags = None) -> None:
        histogram = self._histograms.get(name)
        if histogram is None:
            histogram = self._histograms[name] = self.meter.create_histogram(name, unit="s")
        histogram.record(value, attributes=self._attributes(tag_dict))

    async def close(self) -> None:
        provider = metrics.get_meter_provider()
        if isinstance(provider, MeterProvider):
            try:
                provider.shutdown()
            except Exception as e:
                logger.warning(f"Error shutting down meter provider: {e}")


def create_metrics_client(
    backend: str,
    host: str = "localhost",
    port: int = 8125,
    otel_endpoint: Optional[str] = None,
    debug: bool = False,
) -> MetricsClient:
    backend = backend.lower()
    if backend == "telegraf":
        return TelegrafMetricsClient(TelegrafStatsdClient(host=host, port=port, debug=debug))
    if backend == "otel":
        return OTELMetricsClient(exporter_endpoint=otel_endpoint)
    if backend == "none":
        return NoOpMetricsClient()
    raise ValueError(f"Invalid metrics backend: {backend}")
