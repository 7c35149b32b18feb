"""Tracing and metrics for dashboard aggregation."""

import logging
import os
import time
from contextlib import contextmanager
from typing import Optional

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.requests import RequestsInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.semconv.resource import ResourceAttributes

from .config import TelemetryConfig

logger = logging.getLogger(__name__)


class TelemetryManager:
    """
    Owns the OpenTelemetry providers for the process.

    Spans are always created through the global tracer, so instrumented code
    works whether or not this manager was initialized. The manager adds
    exporters (when OTEL_EXPORTER_OTLP_* endpoints are set) and the
    dashboard-specific counters.
    """

    def __init__(self, config: TelemetryConfig):
        self.config = config
        self.tracer: Optional[trace.Tracer] = None
        self.meter: Optional[metrics.Meter] = None
        self._initialized = False

        self._api_call_counter = None
        self._api_call_duration = None
        self._pipeline_counter = None

        if config.enabled:
            self._setup_telemetry()

    def _setup_telemetry(self):
        try:
            resource = Resource(
                attributes={
                    ResourceAttributes.SERVICE_NAME: self.config.service_name,
                    ResourceAttributes.SERVICE_VERSION: self.config.service_version,
                    ResourceAttributes.PROCESS_PID: os.getpid(),
                }
            )

            self._setup_tracing(resource)
            if self.config.metrics_enabled:
                self._setup_metrics(resource)

            RequestsInstrumentor().instrument()

            self._initialized = True
            logger.info("Telemetry initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize telemetry: {e}")
            self.config.enabled = False

    def _setup_tracing(self, resource: Resource):
        tracer_provider = TracerProvider(
            resource=resource, sampler=TraceIdRatioBased(self.config.trace_sampling_rate)
        )

        otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
        if otlp_endpoint:
            tracer_provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint))
            )

        trace.set_tracer_provider(tracer_provider)
        self.tracer = trace.get_tracer(__name__)

    def _setup_metrics(self, resource: Resource):
        otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_METRICS_ENDPOINT")
        if not otlp_endpoint:
            return

        metric_reader = PeriodicExportingMetricReader(
            exporter=OTLPMetricExporter(endpoint=otlp_endpoint),
            export_interval_millis=30000,
        )
        metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[metric_reader]))
        self.meter = metrics.get_meter(__name__)

        self._api_call_counter = self.meter.create_counter(
            name="ado_api_calls_total", description="Total number of ADO API calls", unit="1"
        )
        self._api_call_duration = self.meter.create_histogram(
            name="ado_api_call_duration_seconds",
            description="Duration of ADO API calls in seconds",
            unit="s",
        )
        self._pipeline_counter = self.meter.create_counter(
            name="dashboard_pipelines_total",
            description="Pipelines processed by dashboard requests, by outcome",
            unit="1",
        )

    @contextmanager
    def trace_api_call(self, operation: str, **attributes):
        """
        Record call count and duration around an upstream call.

        Args:
            operation: Name of the operation
            **attributes: Additional metric attributes
        """
        start_time = time.time()
        status = "success"
        try:
            yield
        except Exception:
            status = "error"
            raise
        finally:
            if self._api_call_counter:
                self._api_call_counter.add(1, {"operation": operation, "status": status})
            if self._api_call_duration:
                self._api_call_duration.record(
                    time.time() - start_time, {"operation": operation, **attributes}
                )

    def record_pipeline_outcome(self, outcome: str):
        """
        Count one pipeline of a dashboard request.

        Args:
            outcome: "loaded", "skipped" or "cancelled"
        """
        if self._pipeline_counter:
            self._pipeline_counter.add(1, {"outcome": outcome})

    def shutdown(self):
        """Shutdown telemetry providers."""
        if not self._initialized:
            return

        try:
            provider = trace.get_tracer_provider()
            if hasattr(provider, "shutdown"):
                provider.shutdown()

            provider = metrics.get_meter_provider()
            if hasattr(provider, "shutdown"):
                provider.shutdown()

            logger.info("Telemetry shutdown complete")

        except Exception as e:
            logger.error(f"Error during telemetry shutdown: {e}")


_telemetry_manager: Optional[TelemetryManager] = None


def initialize_telemetry(config: TelemetryConfig) -> TelemetryManager:
    """Initialize the global telemetry manager."""
    global _telemetry_manager
    _telemetry_manager = TelemetryManager(config)
    return _telemetry_manager


def get_telemetry_manager() -> Optional[TelemetryManager]:
    return _telemetry_manager


def shutdown_telemetry():
    """Shutdown the global telemetry manager."""
    global _telemetry_manager
    if _telemetry_manager:
        _telemetry_manager.shutdown()
        _telemetry_manager = None
