"""Aggregate report data over a code graph.

Plain data only; rendering is left to the consumer.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from codekg_core.graph.models import CallKind, Layer
from codekg_core.graph.store import CodeGraph
from codekg_core.settings import get_settings

logger = logging.getLogger(__name__)


@dataclass
class ClassRanking:
    class_id: str
    name: str
    layer: Layer
    method_count: int


@dataclass
class MethodRanking:
    method_id: str
    name: str
    owner_id: str
    caller_count: int


@dataclass
class GraphReport:
    """Distributions and rankings of one graph."""

    total_classes: int = 0
    total_methods: int = 0
    total_calls: int = 0
    unresolved_calls: int = 0
    classes_by_layer: dict[Layer, int] = field(default_factory=dict)
    methods_by_layer: dict[Layer, int] = field(default_factory=dict)
    calls_by_kind: dict[CallKind, int] = field(default_factory=dict)
    top_classes: list[ClassRanking] = field(default_factory=list)
    most_called_methods: list[MethodRanking] = field(default_factory=list)
    cross_layer_calls: dict[tuple[Layer, Layer], int] = field(default_factory=dict)
    average_methods_per_class: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-ready dictionary."""
        return {
            "total_classes": self.total_classes,
            "total_methods": self.total_methods,
            "total_calls": self.total_calls,
            "unresolved_calls": self.unresolved_calls,
            "classes_by_layer": {layer.value: n for layer, n in self.classes_by_layer.items()},
            "methods_by_layer": {layer.value: n for layer, n in self.methods_by_layer.items()},
            "calls_by_kind": {kind.value: n for kind, n in self.calls_by_kind.items()},
            "top_classes": [
                {
                    "class_id": r.class_id,
                    "name": r.name,
                    "layer": r.layer.value,
                    "method_count": r.method_count,
                }
                for r in self.top_classes
            ],
            "most_called_methods": [
                {
                    "method_id": r.method_id,
                    "name": r.name,
                    "owner_id": r.owner_id,
                    "caller_count": r.caller_count,
                }
                for r in self.most_called_methods
            ],
            "cross_layer_calls": [
                {"from": source.value, "to": target.value, "count": n}
                for (source, target), n in self.cross_layer_calls.items()
            ],
            "average_methods_per_class": self.average_methods_per_class,
        }


def build_report(graph: CodeGraph, top_n: int | None = None) -> GraphReport:
    """Compute layer, call-kind and ranking statistics.

    Unresolved call records are counted under CallKind.UNKNOWN. Cross-layer
    tallies count call edges whose caller and callee classes sit in
    different layers.

    Args:
        graph: The graph to summarize
        top_n: Length of the rankings (settings default if None)

    Returns:
        GraphReport
    """
    if top_n is None:
        top_n = get_settings().report_top_n

    classes = graph.get_classes()
    methods = graph.get_methods()
    calls = graph.get_call_edges()
    unresolved = graph.get_unresolved()

    classes_by_layer = Counter(c.layer for c in classes)
    methods_by_layer = Counter(m.layer for m in methods)
    calls_by_kind = Counter(e.call_kind for e in calls)
    if unresolved:
        calls_by_kind[CallKind.UNKNOWN] += len(unresolved)

    ranked_classes = sorted(classes, key=lambda c: (-len(c.method_ids), c.id))[:top_n]

    callers: dict[str, set[str]] = {}
    for edge in calls:
        callers.setdefault(edge.target_id, set()).add(edge.source_id)
    ranked_methods = sorted(callers.items(), key=lambda item: (-len(item[1]), item[0]))[:top_n]
    most_called: list[MethodRanking] = []
    for method_id, sources in ranked_methods:
        method = graph.get_method(method_id)
        if method is None:
            continue
        most_called.append(
            MethodRanking(
                method_id=method_id,
                name=method.name,
                owner_id=method.owner_id,
                caller_count=len(sources),
            )
        )

    cross_layer: Counter[tuple[Layer, Layer]] = Counter()
    for edge in calls:
        caller = graph.get_method(edge.source_id)
        callee = graph.get_method(edge.target_id)
        if caller is None or callee is None:
            continue
        caller_class = graph.get_class(caller.owner_id)
        callee_class = graph.get_class(callee.owner_id)
        if caller_class is None or callee_class is None:
            continue
        if caller_class.layer != callee_class.layer:
            cross_layer[(caller_class.layer, callee_class.layer)] += 1

    report = GraphReport(
        total_classes=len(classes),
        total_methods=len(methods),
        total_calls=len(calls),
        unresolved_calls=len(unresolved),
        classes_by_layer={layer: classes_by_layer[layer] for layer in Layer if classes_by_layer[layer]},
        methods_by_layer={layer: methods_by_layer[layer] for layer in Layer if methods_by_layer[layer]},
        calls_by_kind={kind: calls_by_kind[kind] for kind in CallKind if calls_by_kind[kind]},
        top_classes=[
            ClassRanking(class_id=c.id, name=c.name, layer=c.layer, method_count=len(c.method_ids))
            for c in ranked_classes
        ],
        most_called_methods=most_called,
        cross_layer_calls=dict(
            sorted(cross_layer.items(), key=lambda item: (-item[1], item[0][0].value, item[0][1].value))
        ),
        average_methods_per_class=round(len(methods) / len(classes), 2) if classes else 0.0,
    )
    logger.debug(
        "Built report: %d classes, %d methods, %d calls",
        report.total_classes,
        report.total_methods,
        report.total_calls,
    )
    return report
