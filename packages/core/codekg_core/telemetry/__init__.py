"""OpenTelemetry initialization, spans and metrics.

Telemetry is disabled by default. When OTEL_ENABLED=false, spans and metric
instruments are recorded against the no-op providers that ship with the
OTEL API.

Usage:
    from codekg_core.telemetry import init_telemetry, shutdown_telemetry

    telemetry_enabled = init_telemetry(service_suffix="-cli")
    ...
    shutdown_telemetry()
"""

from codekg_core.telemetry.metrics import record_build, record_publish
from codekg_core.telemetry.setup import (
    get_meter,
    get_tracer,
    init_telemetry,
    shutdown_telemetry,
)
from codekg_core.telemetry.spans import trace_graph_operation

__all__ = [
    "init_telemetry",
    "shutdown_telemetry",
    "get_tracer",
    "get_meter",
    "trace_graph_operation",
    "record_build",
    "record_publish",
]
