"""OpenTelemetry setup with conditional initialization.

The SDK and exporters are imported only when telemetry is enabled, so a
disabled install never pays for them. Tracers and meters are always fetched
from the global API providers: before ``init_telemetry`` (or when it is
disabled) those are no-op proxies, afterwards they forward to the SDK.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from opentelemetry.metrics import Meter
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace.sampling import Sampler
    from opentelemetry.trace import Tracer

    from codekg_core.settings import Settings

_initialized = False

logger = logging.getLogger(__name__)

METRIC_EXPORT_INTERVAL_MS = 60000


def _make_resource(
    settings: Settings,
    service_name: str,
    extra_attributes: dict[str, str] | None,
) -> Resource:
    from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource

    from codekg_core import __version__

    attributes: dict[str, str] = {
        SERVICE_NAME: service_name,
        SERVICE_VERSION: __version__,
        "deployment.environment": "development" if settings.debug else "production",
    }
    if extra_attributes:
        attributes.update(extra_attributes)
    return Resource.create(attributes)


def _make_sampler(settings: Settings) -> Sampler:
    from opentelemetry.sdk.trace.sampling import (
        ALWAYS_OFF,
        ALWAYS_ON,
        ParentBasedTraceIdRatio,
        TraceIdRatioBased,
    )

    ratio = settings.otel_traces_sampler_arg
    name = settings.otel_traces_sampler
    if name == "always_off":
        return ALWAYS_OFF
    if name == "traceidratio":
        return TraceIdRatioBased(ratio)
    if name == "parentbased_traceidratio":
        return ParentBasedTraceIdRatio(ratio)
    if name != "always_on":
        logger.warning("Unknown OTEL sampler %r, sampling everything", name)
    return ALWAYS_ON


def init_telemetry(
    service_suffix: str = "",
    extra_resource_attributes: dict[str, str] | None = None,
) -> bool:
    """Install OTLP trace and metric pipelines if telemetry is enabled.

    Safe to call multiple times; only the first successful call installs
    providers.

    Args:
        service_suffix: Suffix appended to the configured service name (e.g. "-cli")
        extra_resource_attributes: Additional resource attributes

    Returns:
        True if telemetry is active, False if disabled
    """
    global _initialized

    if _initialized:
        return True

    from codekg_core.settings import get_settings

    settings = get_settings()
    if not settings.otel_enabled:
        logger.debug("OpenTelemetry disabled (OTEL_ENABLED=false)")
        return False

    from opentelemetry import metrics, trace
    from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    service_name = settings.otel_service_name + service_suffix
    endpoint = settings.otel_exporter_otlp_endpoint
    resource = _make_resource(settings, service_name, extra_resource_attributes)

    tracer_provider = TracerProvider(resource=resource, sampler=_make_sampler(settings))
    tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(tracer_provider)

    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=endpoint),
        export_interval_millis=METRIC_EXPORT_INTERVAL_MS,
    )
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))

    _initialized = True
    logger.info("OpenTelemetry initialized: service=%s, endpoint=%s", service_name, endpoint)
    return True


def shutdown_telemetry() -> None:
    """Flush pending spans and metrics and stop the exporters.

    Safe to call even if telemetry was never initialized.
    """
    global _initialized

    if not _initialized:
        return

    from opentelemetry import metrics, trace

    for provider in (trace.get_tracer_provider(), metrics.get_meter_provider()):
        shutdown = getattr(provider, "shutdown", None)
        if shutdown is not None:
            shutdown()

    _initialized = False
    logger.info("OpenTelemetry shutdown complete")


def get_tracer(name: str = __name__) -> Tracer:
    """Get a tracer from the global provider (no-op if OTEL disabled)."""
    from opentelemetry import trace

    return trace.get_tracer(name)


def get_meter(name: str = __name__) -> Meter:
    """Get a meter from the global provider (no-op if OTEL disabled)."""
    from opentelemetry import metrics

    return metrics.get_meter(name)
