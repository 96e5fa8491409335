"""Custom span helpers for graph build, query and export instrumentation."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from codekg_core.telemetry.setup import get_tracer


@contextmanager
def trace_graph_operation(
    operation: str,
    **attributes: str | int | float | bool,
) -> Iterator[trace.Span]:
    """Context manager for tracing a graph operation.

    Creates a span named ``graph.<operation>``. The span is yielded so callers
    can add result attributes.

    Usage:
        with trace_graph_operation("build", files=len(paths)) as span:
            report = builder.build(source)
            span.set_attribute("graph.files_failed", len(report.failed))

    Args:
        operation: Operation name (e.g., "build", "export", "find_paths")
        **attributes: Initial span attributes, prefixed with "graph."

    Yields:
        The active span for adding additional attributes
    """
    tracer = get_tracer(__name__)
    attrs = {f"graph.{key}": value for key, value in attributes.items()}
    with tracer.start_as_current_span(f"graph.{operation}", attributes=attrs) as span:
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise

