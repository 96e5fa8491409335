"""Code knowledge graph of classes, methods and their relationships.

Main components:
- CodeGraph: In-memory graph with id, adjacency, file and type indices
- ClassNode / MethodNode: Declared classes and methods
- ContainsEdge / CallsEdge / InheritsEdge / ImplementsEdge: Typed relationships
- GraphBuilder: Build graphs from per-file structural facts
- Query functions: connected_nodes, find_paths, detect_cycles, impact_analysis
"""

from codekg_core.graph.exceptions import (
    DanglingReferenceError,
    DuplicateNodeError,
    FactValidationError,
    GraphError,
    NodeNotFoundError,
)
from codekg_core.graph.models import (
    CallKind,
    CallsEdge,
    ClassNode,
    ContainsEdge,
    Edge,
    EdgeType,
    ImplementsEdge,
    InheritsEdge,
    Layer,
    MethodNode,
    Node,
    UnresolvedCall,
    make_class_id,
    make_method_id,
)
from codekg_core.graph.store import CodeGraph
from codekg_core.graph.builder import BuildReport, FileFailure, GraphBuilder, extract_file
from codekg_core.graph.queries import (
    CallPath,
    ClassCycle,
    ImpactResult,
    RiskLevel,
    class_dependencies,
    connected_nodes,
    detect_cycles,
    find_paths,
    impact_analysis,
)

__all__ = [
    "BuildReport",
    "CallKind",
    "CallPath",
    "CallsEdge",
    "ClassCycle",
    "ClassNode",
    "CodeGraph",
    "ContainsEdge",
    "DanglingReferenceError",
    "DuplicateNodeError",
    "Edge",
    "EdgeType",
    "FactValidationError",
    "FileFailure",
    "GraphBuilder",
    "GraphError",
    "ImpactResult",
    "ImplementsEdge",
    "InheritsEdge",
    "Layer",
    "MethodNode",
    "Node",
    "NodeNotFoundError",
    "RiskLevel",
    "UnresolvedCall",
    "class_dependencies",
    "connected_nodes",
    "detect_cycles",
    "extract_file",
    "find_paths",
    "impact_analysis",
    "make_class_id",
    "make_method_id",
]
