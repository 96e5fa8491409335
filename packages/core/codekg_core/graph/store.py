"""Graph store for the code knowledge graph.

CodeGraph keeps nodes in an id index and edges in two adjacency indices
(outgoing-by-source and incoming-by-target), plus a by-file node index used
for file-scoped rebuilds and a by-type edge index.

Referential integrity is enforced on every write:
- adding an edge whose endpoint is missing raises DanglingReferenceError
- removing a node removes every edge that touches it
- removing a class removes the methods it owns
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from typing import Any

from codekg_core.graph.exceptions import (
    DanglingReferenceError,
    DuplicateNodeError,
    NodeNotFoundError,
)
from codekg_core.graph.models import (
    CallsEdge,
    ClassNode,
    Edge,
    EdgeType,
    MethodNode,
    Node,
    UnresolvedCall,
)

logger = logging.getLogger(__name__)


class CodeGraph:
    """In-memory graph of classes, methods and their relationships.

    Provides efficient lookup by:
    - Node ID (direct)
    - File path (all nodes declared in a file)
    - Source / target (adjacency indices)

    Writes are expected from a single builder; reads take no locks.
    """

    def __init__(self) -> None:
        """Initialize an empty graph."""
        self._nodes: dict[str, Node] = {}
        self._edges: dict[str, Edge] = {}

        # Indices for efficient lookup
        self._outgoing: dict[str, dict[str, Edge]] = {}  # source_id -> edges
        self._incoming: dict[str, dict[str, Edge]] = {}  # target_id -> edges
        self._by_type: dict[EdgeType, dict[str, Edge]] = {}  # edge_type -> edges
        self._by_file: dict[str, set[str]] = {}  # file_path -> node_ids
        self._unresolved: dict[str, list[UnresolvedCall]] = {}  # file_path -> records

    # -- Node operations -----------------------------------------------------

    def add_node(self, node: Node) -> None:
        """Add a node to the graph.

        Args:
            node: The class or method node to add

        Raises:
            DuplicateNodeError: If a node with the same ID already exists
        """
        if node.id in self._nodes:
            raise DuplicateNodeError(node.id)
        self._insert_node(node)

    def update_node(self, node: Node) -> None:
        """Replace an existing node, keeping its edges.

        Raises:
            NodeNotFoundError: If no node with that ID exists
        """
        old = self._nodes.get(node.id)
        if old is None:
            raise NodeNotFoundError(node.id)
        self._by_file.get(old.file_path, set()).discard(node.id)
        self._insert_node(node)

    def get_node(self, node_id: str) -> Node | None:
        """Get a node by ID, or None."""
        return self._nodes.get(node_id)

    def get_class(self, class_id: str) -> ClassNode | None:
        node = self._nodes.get(class_id)
        return node if isinstance(node, ClassNode) else None

    def get_method(self, method_id: str) -> MethodNode | None:
        node = self._nodes.get(method_id)
        return node if isinstance(node, MethodNode) else None

    def has_node(self, node_id: str) -> bool:
        """Check if a node exists."""
        return node_id in self._nodes

    def remove_node(self, node_id: str) -> bool:
        """Remove a node and every edge touching it.

        Removing a class also removes the methods it owns.

        Args:
            node_id: The node to remove

        Returns:
            True if the node existed
        """
        node = self._nodes.get(node_id)
        if node is None:
            return False

        if isinstance(node, ClassNode):
            for method_id in list(node.method_ids):
                self._drop_node(method_id)
        elif isinstance(node, MethodNode):
            owner = self.get_class(node.owner_id)
            if owner is not None and node_id in owner.method_ids:
                owner.method_ids.remove(node_id)

        self._drop_node(node_id)
        return True

    # -- Edge operations -----------------------------------------------------

    def add_edge(self, edge: Edge) -> None:
        """Add an edge to the graph.

        An edge with the same ID replaces the previous one.

        Args:
            edge: The edge to add

        Raises:
            DanglingReferenceError: If either endpoint is not in the graph
        """
        for endpoint in (edge.source_id, edge.target_id):
            if endpoint not in self._nodes:
                raise DanglingReferenceError(edge.id, endpoint)
        if edge.id in self._edges:
            self.remove_edge(edge.id)
        self._insert_edge(edge)

    def get_edge(self, edge_id: str) -> Edge | None:
        """Get an edge by ID, or None."""
        return self._edges.get(edge_id)

    def has_edge(self, edge_id: str) -> bool:
        return edge_id in self._edges

    def remove_edge(self, edge_id: str) -> bool:
        """Remove an edge.

        Returns:
            True if the edge existed
        """
        edge = self._edges.pop(edge_id, None)
        if edge is None:
            return False
        self._by_type.get(edge.edge_type, {}).pop(edge_id, None)
        self._outgoing.get(edge.source_id, {}).pop(edge_id, None)
        self._incoming.get(edge.target_id, {}).pop(edge_id, None)
        return True

    def get_outgoing(
        self,
        node_id: str,
        edge_types: Iterable[EdgeType] | None = None,
    ) -> list[Edge]:
        """Get edges leaving a node, optionally filtered by type."""
        edges = self._outgoing.get(node_id, {}).values()
        if edge_types is None:
            return list(edges)
        wanted = set(edge_types)
        return [e for e in edges if e.edge_type in wanted]

    def get_incoming(
        self,
        node_id: str,
        edge_types: Iterable[EdgeType] | None = None,
    ) -> list[Edge]:
        """Get edges arriving at a node, optionally filtered by type."""
        edges = self._incoming.get(node_id, {}).values()
        if edge_types is None:
            return list(edges)
        wanted = set(edge_types)
        return [e for e in edges if e.edge_type in wanted]

    def get_neighbors(
        self,
        node_id: str,
        edge_types: Iterable[EdgeType] | None = None,
        direction: str = "both",
    ) -> list[tuple[Node, Edge]]:
        """Get neighboring nodes.

        Args:
            node_id: The node ID
            edge_types: Filter by edge types (None for all)
            direction: "outgoing", "incoming", or "both"

        Returns:
            List of (neighbor_node, edge) tuples
        """
        results: list[tuple[Node, Edge]] = []

        if direction in ("outgoing", "both"):
            for edge in self.get_outgoing(node_id, edge_types):
                results.append((self._nodes[edge.target_id], edge))

        if direction in ("incoming", "both"):
            for edge in self.get_incoming(node_id, edge_types):
                results.append((self._nodes[edge.source_id], edge))

        return results

    # -- File-scoped operations ----------------------------------------------

    def replace_file(
        self,
        file_path: str,
        nodes: Iterable[Node],
        edges: Iterable[Edge] = (),
        unresolved: Iterable[UnresolvedCall] = (),
    ) -> None:
        """Atomically swap the contribution of one file.

        Every node previously declared in ``file_path`` is removed (cascading
        to its edges), then the new nodes and edges are inserted. All edges are
        validated against the post-swap node set first, so either the whole
        swap applies or nothing changes.

        Args:
            file_path: Path whose contribution is replaced
            nodes: Nodes now declared in the file
            edges: Edges whose endpoints exist after the swap
            unresolved: Unresolved call records attributed to the file

        Raises:
            DuplicateNodeError: If a new node collides with another file's node
            DanglingReferenceError: If an edge references a missing node
        """
        new_nodes = list(nodes)
        new_edges = list(edges)
        removed = set(self._by_file.get(file_path, set()))
        new_ids = {node.id for node in new_nodes}

        for node in new_nodes:
            if node.id in self._nodes and node.id not in removed:
                raise DuplicateNodeError(node.id)

        for edge in new_edges:
            for endpoint in (edge.source_id, edge.target_id):
                if endpoint in new_ids:
                    continue
                if endpoint not in self._nodes or endpoint in removed:
                    raise DanglingReferenceError(edge.id, endpoint)

        # Validation passed; from here on nothing can fail
        self.remove_file(file_path)
        for node in new_nodes:
            self._insert_node(node)
        for edge in new_edges:
            if edge.id in self._edges:
                self.remove_edge(edge.id)
            self._insert_edge(edge)
        records = list(unresolved)
        if records:
            self._unresolved[file_path] = records

        logger.debug(
            "Replaced %s: %d nodes removed, %d added, %d edges",
            file_path,
            len(removed),
            len(new_nodes),
            len(new_edges),
        )

    def remove_file(self, file_path: str) -> int:
        """Remove every node declared in a file and its unresolved calls.

        Returns:
            Number of nodes removed
        """
        node_ids = list(self._by_file.pop(file_path, set()))
        for node_id in node_ids:
            self._drop_node(node_id)
        self._unresolved.pop(file_path, None)
        return len(node_ids)

    def get_nodes_in_file(self, file_path: str) -> list[Node]:
        """Get all nodes declared in a file."""
        node_ids = self._by_file.get(file_path, set())
        return [self._nodes[nid] for nid in sorted(node_ids) if nid in self._nodes]

    def get_files(self) -> list[str]:
        """Get every file path that contributes nodes or unresolved calls."""
        return sorted(set(self._by_file) | set(self._unresolved))

    # -- Unresolved calls ----------------------------------------------------

    def set_unresolved(self, file_path: str, records: Iterable[UnresolvedCall]) -> None:
        """Replace the unresolved call records attributed to a file."""
        items = list(records)
        if items:
            self._unresolved[file_path] = items
        else:
            self._unresolved.pop(file_path, None)

    def get_unresolved(self, file_path: str | None = None) -> list[UnresolvedCall]:
        """Get unresolved call records for one file or for the whole graph."""
        if file_path is not None:
            return list(self._unresolved.get(file_path, []))
        return [record for records in self._unresolved.values() for record in records]

    # -- Bulk accessors ------------------------------------------------------

    def get_all_nodes(self) -> list[Node]:
        return list(self._nodes.values())

    def get_all_edges(self) -> list[Edge]:
        return list(self._edges.values())

    def get_classes(self) -> list[ClassNode]:
        return [n for n in self._nodes.values() if isinstance(n, ClassNode)]

    def get_methods(self) -> list[MethodNode]:
        return [n for n in self._nodes.values() if isinstance(n, MethodNode)]

    def get_methods_of(self, class_id: str) -> list[MethodNode]:
        """Get the methods a class owns, in declaration order."""
        owner = self.get_class(class_id)
        if owner is None:
            return []
        return [m for mid in owner.method_ids if (m := self.get_method(mid)) is not None]

    def get_edges(self, edge_type: EdgeType | None = None) -> list[Edge]:
        if edge_type is None:
            return list(self._edges.values())
        return list(self._by_type.get(edge_type, {}).values())

    def get_call_edges(self) -> list[CallsEdge]:
        return [e for e in self._by_type.get(EdgeType.CALLS, {}).values() if isinstance(e, CallsEdge)]

    def node_count(self) -> int:
        """Get the number of nodes."""
        return len(self._nodes)

    def edge_count(self) -> int:
        """Get the number of edges."""
        return len(self._edges)

    def clear(self) -> None:
        """Drop all nodes, edges and unresolved records."""
        self._nodes.clear()
        self._edges.clear()
        self._outgoing.clear()
        self._incoming.clear()
        self._by_type.clear()
        self._by_file.clear()
        self._unresolved.clear()

    def stats(self) -> dict[str, Any]:
        """Return summary statistics about the graph."""
        edges_by_type = Counter(e.edge_type.value for e in self._edges.values())
        return {
            "total_nodes": len(self._nodes),
            "total_edges": len(self._edges),
            "classes": len(self.get_classes()),
            "methods": len(self.get_methods()),
            "edges_by_type": dict(edges_by_type),
            "unresolved_calls": len(self.get_unresolved()),
            "files": len(self._by_file),
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize graph to dictionary."""
        return {
            "nodes": [node.to_dict() for node in self._nodes.values()],
            "edges": [edge.to_dict() for edge in self._edges.values()],
            "unresolved": [record.to_dict() for record in self.get_unresolved()],
        }

    # -- Internals -----------------------------------------------------------

    def _insert_node(self, node: Node) -> None:
        self._nodes[node.id] = node
        self._by_file.setdefault(node.file_path, set()).add(node.id)

    def _insert_edge(self, edge: Edge) -> None:
        self._edges[edge.id] = edge
        self._outgoing.setdefault(edge.source_id, {})[edge.id] = edge
        self._incoming.setdefault(edge.target_id, {})[edge.id] = edge
        self._by_type.setdefault(edge.edge_type, {})[edge.id] = edge

    def _drop_node(self, node_id: str) -> None:
        node = self._nodes.pop(node_id, None)
        if node is None:
            return
        for edge_id in list(self._outgoing.pop(node_id, {})):
            self.remove_edge(edge_id)
        for edge_id in list(self._incoming.pop(node_id, {})):
            self.remove_edge(edge_id)
        file_nodes = self._by_file.get(node.file_path)
        if file_nodes is not None:
            file_nodes.discard(node_id)
            if not file_nodes:
                del self._by_file[node.file_path]
