"""Metric instruments for graph builds and exports.

Instruments are created on first use from the global meter provider. Before
``init_telemetry`` they are no-op proxies that start forwarding once an SDK
provider is installed.
"""

from __future__ import annotations

import threading
from typing import Any

from codekg_core.telemetry.setup import get_meter

_instruments: dict[str, Any] | None = None
_lock = threading.Lock()


def _get_instruments() -> dict[str, Any]:
    global _instruments
    with _lock:
        if _instruments is None:
            meter = get_meter(__name__)
            _instruments = {
                "build_files": meter.create_counter(
                    name="codekg.build.files",
                    unit="{file}",
                    description="Files processed by graph builds, by outcome",
                ),
                "build_duration": meter.create_histogram(
                    name="codekg.build.duration",
                    unit="s",
                    description="Wall time of graph builds",
                ),
                "export_statements": meter.create_counter(
                    name="codekg.export.statements",
                    unit="{statement}",
                    description="Cypher statements executed against the graph database",
                ),
                "export_fallbacks": meter.create_counter(
                    name="codekg.export.fallbacks",
                    unit="{export}",
                    description="Exports written to the fallback directory after a failure",
                ),
            }
        return _instruments


def record_build(built: int, failed: int, skipped: int, duration_s: float, cancelled: bool = False) -> None:
    """Record the outcome of one build run."""
    instruments = _get_instruments()
    files = instruments["build_files"]
    for outcome, count in (("built", built), ("failed", failed), ("skipped", skipped)):
        if count:
            files.add(count, {"outcome": outcome})
    instruments["build_duration"].record(duration_s, {"cancelled": cancelled})


def record_publish(statements: int, fell_back: bool) -> None:
    """Record one publish attempt."""
    instruments = _get_instruments()
    if statements:
        instruments["export_statements"].add(statements)
    if fell_back:
        instruments["export_fallbacks"].add(1)
