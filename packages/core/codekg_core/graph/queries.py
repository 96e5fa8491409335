"""Read-only query algorithms over a CodeGraph.

This module provides:
- connected_nodes: Bounded BFS over the undirected union of all edges
- find_paths: Every simple call path between two methods up to a depth
- detect_cycles: First-found cycle per class in the class dependency projection
- impact_analysis: Direct and transitive callers of a method with a risk level

None of these functions mutate the graph. Callers must not run them while a
build is in progress.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from codekg_core.graph.exceptions import NodeNotFoundError
from codekg_core.graph.models import CallKind, CallsEdge, EdgeType, Node
from codekg_core.graph.store import CodeGraph
from codekg_core.settings import get_settings
from codekg_core.telemetry import trace_graph_operation

logger = logging.getLogger(__name__)

# Indirect impact set sizes at which the risk level steps up
RISK_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (50, "critical"),
    (20, "high"),
    (5, "medium"),
)


class RiskLevel(Enum):
    """Change risk derived from the size of the indirect impact set."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def from_impact_size(cls, size: int) -> RiskLevel:
        for threshold, level in RISK_THRESHOLDS:
            if size >= threshold:
                return cls(level)
        return cls.LOW


@dataclass
class CallPath:
    """A simple directed path along call edges."""

    node_ids: list[str]
    edges: list[CallsEdge]

    @property
    def length(self) -> int:
        return len(self.edges)

    @property
    def confidence(self) -> float:
        """Product of edge confidences (1.0 for the empty path)."""
        result = 1.0
        for edge in self.edges:
            result *= edge.confidence
        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "node_ids": list(self.node_ids),
            "edges": [edge.id for edge in self.edges],
            "length": self.length,
            "confidence": self.confidence,
        }


@dataclass
class ClassCycle:
    """A closed loop in the class dependency projection.

    The last class depends on the first.
    """

    class_ids: list[str]

    def __len__(self) -> int:
        return len(self.class_ids)

    def canonical(self) -> tuple[str, ...]:
        """Rotation starting at the smallest id, used to deduplicate."""
        pivot = self.class_ids.index(min(self.class_ids))
        return tuple(self.class_ids[pivot:] + self.class_ids[:pivot])

    def to_dict(self) -> dict[str, Any]:
        return {"class_ids": list(self.class_ids), "size": len(self.class_ids)}


@dataclass
class ImpactResult:
    """Callers affected by changing one method."""

    method_id: str
    direct_callers: list[str] = field(default_factory=list)
    indirect_callers: list[str] = field(default_factory=list)
    affected_classes: list[str] = field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.LOW

    @property
    def impact_size(self) -> int:
        return len(self.indirect_callers)

    def to_dict(self) -> dict[str, Any]:
        return {
            "method_id": self.method_id,
            "direct_callers": list(self.direct_callers),
            "indirect_callers": list(self.indirect_callers),
            "affected_classes": list(self.affected_classes),
            "risk_level": self.risk_level.value,
            "impact_size": self.impact_size,
        }


def _require(graph: CodeGraph, node_id: str) -> Node:
    node = graph.get_node(node_id)
    if node is None:
        raise NodeNotFoundError(node_id)
    return node


def _call_edges(edges: Iterable[Any], include_unknown: bool) -> list[CallsEdge]:
    return [
        e
        for e in edges
        if isinstance(e, CallsEdge) and (include_unknown or e.call_kind is not CallKind.UNKNOWN)
    ]


def connected_nodes(
    graph: CodeGraph,
    node_id: str,
    depth: int | None = None,
    edge_types: list[EdgeType] | None = None,
) -> list[Node]:
    """Find every node within ``depth`` hops, ignoring edge direction.

    Args:
        graph: The graph to traverse
        node_id: Starting node ID
        depth: Maximum number of hops (settings default if None)
        edge_types: Edge types to follow (None for all)

    Returns:
        Reachable nodes ordered by distance then ID, excluding the start

    Raises:
        NodeNotFoundError: If the start node does not exist
    """
    _require(graph, node_id)
    if depth is None:
        depth = get_settings().graph_max_depth

    distances: dict[str, int] = {node_id: 0}
    frontier: deque[str] = deque([node_id])

    with trace_graph_operation("connected_nodes", depth=depth):
        while frontier:
            current = frontier.popleft()
            current_depth = distances[current]
            if current_depth >= depth:
                continue
            for neighbor, _edge in graph.get_neighbors(current, edge_types, direction="both"):
                if neighbor.id not in distances:
                    distances[neighbor.id] = current_depth + 1
                    frontier.append(neighbor.id)

    found = sorted(
        ((distance, nid) for nid, distance in distances.items() if nid != node_id),
    )
    return [node for _distance, nid in found if (node := graph.get_node(nid)) is not None]


def find_paths(
    graph: CodeGraph,
    start_id: str,
    end_id: str,
    max_depth: int | None = None,
    include_unknown: bool = False,
) -> list[CallPath]:
    """Enumerate every simple call path from start to end.

    Depth-first search along outgoing CallsEdges that never revisits a node
    within one path, so cycles in the call graph are safe. Parallel call
    edges between the same two methods count as one hop; the most confident
    of them is reported for the path.

    Args:
        graph: The graph to search
        start_id: Starting method ID
        end_id: Target method ID
        max_depth: Maximum number of hops per path (settings default if None)
        include_unknown: Follow Unknown-kind call edges as well

    Returns:
        Unranked list of CallPath objects

    Raises:
        NodeNotFoundError: If either endpoint does not exist
    """
    _require(graph, start_id)
    _require(graph, end_id)
    if max_depth is None:
        max_depth = get_settings().path_max_depth

    if start_id == end_id:
        return [CallPath(node_ids=[start_id], edges=[])]

    paths: list[CallPath] = []

    def successors(node_id: str) -> list[tuple[str, CallsEdge]]:
        best: dict[str, CallsEdge] = {}
        for edge in _call_edges(graph.get_outgoing(node_id, [EdgeType.CALLS]), include_unknown):
            current = best.get(edge.target_id)
            if current is None or (edge.confidence, current.id) > (current.confidence, edge.id):
                best[edge.target_id] = edge
        return sorted(best.items())

    with trace_graph_operation("find_paths", max_depth=max_depth) as span:
        # Stack of (node_id, path node ids, path edges)
        stack: list[tuple[str, list[str], list[CallsEdge]]] = [(start_id, [start_id], [])]
        while stack:
            node_id, node_path, edge_path = stack.pop()
            if len(edge_path) >= max_depth:
                continue
            on_path = set(node_path)
            for target_id, edge in reversed(successors(node_id)):
                if target_id in on_path:
                    continue
                if target_id == end_id:
                    paths.append(CallPath(node_ids=[*node_path, target_id], edges=[*edge_path, edge]))
                    continue
                stack.append((target_id, [*node_path, target_id], [*edge_path, edge]))
        span.set_attribute("graph.paths_found", len(paths))

    return paths


def class_dependencies(graph: CodeGraph, include_unknown: bool = False) -> dict[str, set[str]]:
    """Collapse method-level calls to their owning classes.

    Calls within one class are ignored.
    """
    dependencies: dict[str, set[str]] = {cls.id: set() for cls in graph.get_classes()}
    for edge in _call_edges(graph.get_call_edges(), include_unknown):
        caller = graph.get_method(edge.source_id)
        callee = graph.get_method(edge.target_id)
        if caller is None or callee is None or caller.owner_id == callee.owner_id:
            continue
        dependencies.setdefault(caller.owner_id, set()).add(callee.owner_id)
    return dependencies


def detect_cycles(graph: CodeGraph, max_depth: int | None = None) -> list[ClassCycle]:
    """Report the first dependency cycle reachable from each class.

    For each class (in ID order) a depth-first search over the class
    dependency projection tracks its recursion stack; the first back-edge
    yields the stack slice from the revisited class onward. Cycles that are
    rotations of an already reported cycle are skipped. This is not an
    exhaustive enumeration of elementary cycles.

    Args:
        graph: The graph to analyze
        max_depth: Maximum recursion stack size (None for unbounded)

    Returns:
        Cycles in discovery order
    """
    dependencies = class_dependencies(graph)
    successors = {cid: sorted(targets) for cid, targets in dependencies.items()}

    cycles: list[ClassCycle] = []
    seen: set[tuple[str, ...]] = set()

    with trace_graph_operation("detect_cycles", classes=len(successors)) as span:
        for start in sorted(successors):
            cycle = _first_cycle_from(start, successors, max_depth)
            if cycle is None:
                continue
            key = cycle.canonical()
            if key in seen:
                continue
            seen.add(key)
            cycles.append(cycle)
        span.set_attribute("graph.cycles_found", len(cycles))

    if cycles:
        logger.debug("Detected %d class dependency cycles", len(cycles))
    return cycles


def _first_cycle_from(
    start: str,
    successors: dict[str, list[str]],
    max_depth: int | None,
) -> ClassCycle | None:
    stack: list[str] = [start]
    on_stack: set[str] = {start}
    visited: set[str] = {start}
    # Next successor index to try for each stack frame
    cursors: list[int] = [0]

    while stack:
        current = stack[-1]
        targets = successors.get(current, [])
        index = cursors[-1]
        if index >= len(targets):
            on_stack.discard(stack.pop())
            cursors.pop()
            continue
        cursors[-1] = index + 1
        target = targets[index]

        if target in on_stack:
            return ClassCycle(class_ids=stack[stack.index(target) :])
        if target in visited:
            continue
        if max_depth is not None and len(stack) >= max_depth:
            continue
        visited.add(target)
        on_stack.add(target)
        stack.append(target)
        cursors.append(0)

    return None


def impact_analysis(
    graph: CodeGraph,
    method_id: str,
    max_depth: int | None = None,
    include_unknown: bool = False,
) -> ImpactResult:
    """Find every method whose behavior may change with ``method_id``.

    Reverse BFS over incoming CallsEdges. Direct callers are one hop away;
    the indirect impact set is the full transitive closure of callers,
    excluding the method itself.

    Args:
        graph: The graph to analyze
        method_id: The changed method
        max_depth: Maximum number of reverse hops (settings default if None;
            the full closure when that is unset too)
        include_unknown: Follow Unknown-kind call edges as well

    Returns:
        ImpactResult with callers, affected classes and risk level

    Raises:
        NodeNotFoundError: If the method does not exist
    """
    _require(graph, method_id)
    if max_depth is None:
        max_depth = get_settings().impact_max_depth

    def callers_of(node_id: str) -> set[str]:
        return {
            e.source_id for e in _call_edges(graph.get_incoming(node_id, [EdgeType.CALLS]), include_unknown)
        }

    direct = callers_of(method_id) - {method_id}
    distances: dict[str, int] = {method_id: 0}
    frontier: deque[str] = deque([method_id])

    with trace_graph_operation("impact_analysis") as span:
        while frontier:
            current = frontier.popleft()
            current_depth = distances[current]
            if max_depth is not None and current_depth >= max_depth:
                continue
            for caller_id in callers_of(current):
                if caller_id not in distances:
                    distances[caller_id] = current_depth + 1
                    frontier.append(caller_id)

        indirect = sorted(nid for nid in distances if nid != method_id)
        affected = sorted(
            {m.owner_id for nid in indirect if (m := graph.get_method(nid)) is not None}
        )
        risk = RiskLevel.from_impact_size(len(indirect))
        span.set_attribute("graph.impact_size", len(indirect))
        span.set_attribute("graph.risk_level", risk.value)

    return ImpactResult(
        method_id=method_id,
        direct_callers=sorted(direct),
        indirect_callers=indirect,
        affected_classes=affected,
        risk_level=risk,
    )
