"""Typed nodes and edges of the code knowledge graph.

This module provides the core data structures for representing the graph:
- Layer: Architectural layer of a class or method
- CallKind: How a call is dispatched
- ClassNode / MethodNode: Declared classes and methods
- ContainsEdge / CallsEdge / InheritsEdge / ImplementsEdge: Typed relationships
- UnresolvedCall: A call site with no statically known target

Node and edge ids are derived deterministically from the declared names, so
rebuilding unchanged input yields identical ids.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from codekg_core.naming import normalize_signature


class Layer(Enum):
    """Architectural layer of a class or method."""

    CONTROLLER = "controller"
    SERVICE = "service"
    REPOSITORY = "repository"
    MAPPER = "mapper"
    ENTITY = "entity"
    UTIL = "util"
    CONFIG = "config"
    COMPONENT = "component"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return _LAYER_DISPLAY[self]


_LAYER_DISPLAY: dict[Layer, str] = {
    Layer.CONTROLLER: "Controller layer",
    Layer.SERVICE: "Service layer",
    Layer.REPOSITORY: "Repository layer",
    Layer.MAPPER: "Mapper/DAO layer",
    Layer.ENTITY: "Entity",
    Layer.UTIL: "Utility",
    Layer.CONFIG: "Configuration",
    Layer.COMPONENT: "Component",
    Layer.UNKNOWN: "Unclassified",
}


class CallKind(Enum):
    """How a call site is dispatched."""

    DIRECT = "direct"
    CONSTRUCTOR = "constructor"
    LAMBDA = "lambda"
    METHOD_REFERENCE = "method_reference"
    INTERFACE = "interface"
    STATIC = "static"
    INHERITED = "inherited"
    UNKNOWN = "unknown"


class EdgeType(Enum):
    """Types of edges in the code graph."""

    CONTAINS = "contains"  # Class declares method
    CALLS = "calls"  # Method calls method
    INHERITS = "inherits"  # Class extends class
    IMPLEMENTS = "implements"  # Class implements interface


def make_class_id(qualified_name: str) -> str:
    """Create a class node ID from a fully-qualified name.

    Returns:
        ID like "class:com.acme.user.UserService"
    """
    return f"class:{qualified_name}"


def make_method_id(owner_qualified_name: str, signature: str) -> str:
    """Create a method node ID from its owner and signature.

    Signatures are normalized by dropping whitespace so that
    "find(int, String)" and "find(int,String)" map to the same node.

    Returns:
        ID like "method:com.acme.user.UserService#find(int,String)"
    """
    return f"method:{owner_qualified_name}#{normalize_signature(signature)}"


@dataclass
class ClassNode:
    """A declared class or interface."""

    id: str
    name: str
    qualified_name: str
    package: str
    layer: Layer
    file_path: str
    is_interface: bool = False
    is_abstract: bool = False
    superclass_id: str | None = None
    interface_ids: set[str] = field(default_factory=set)
    annotations: set[str] = field(default_factory=set)
    method_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "qualified_name": self.qualified_name,
            "package": self.package,
            "layer": self.layer.value,
            "file_path": self.file_path,
            "is_interface": self.is_interface,
            "is_abstract": self.is_abstract,
            "superclass_id": self.superclass_id,
            "interface_ids": sorted(self.interface_ids),
            "annotations": sorted(self.annotations),
            "method_ids": list(self.method_ids),
        }


@dataclass
class MethodNode:
    """A declared method or constructor."""

    id: str
    name: str
    signature: str
    owner_id: str
    layer: Layer
    file_path: str
    start_line: int
    end_line: int
    return_type: str = "void"
    parameter_types: list[str] = field(default_factory=list)
    modifiers: set[str] = field(default_factory=set)
    cyclomatic_complexity: int = 1
    lines_of_code: int = 0

    @property
    def is_static(self) -> bool:
        return "static" in self.modifiers

    @property
    def is_constructor(self) -> bool:
        return self.name == "<init>"

    @property
    def visibility(self) -> str:
        for modifier in ("public", "protected", "private"):
            if modifier in self.modifiers:
                return modifier
        return "package"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "signature": self.signature,
            "owner_id": self.owner_id,
            "layer": self.layer.value,
            "file_path": self.file_path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "return_type": self.return_type,
            "parameter_types": list(self.parameter_types),
            "modifiers": sorted(self.modifiers),
            "cyclomatic_complexity": self.cyclomatic_complexity,
            "lines_of_code": self.lines_of_code,
        }


Node = ClassNode | MethodNode


@dataclass(frozen=True)
class Edge:
    """A directed edge between two nodes.

    Subclasses fix ``edge_type``; the id combines type, endpoints and an
    optional disambiguator so that parallel edges stay distinct.
    """

    source_id: str
    target_id: str

    edge_type = EdgeType.CONTAINS

    @property
    def disambiguator(self) -> str:
        return ""

    @property
    def id(self) -> str:
        base = f"{self.edge_type.value}:{self.source_id}->{self.target_id}"
        if self.disambiguator:
            return f"{base}@{self.disambiguator}"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "edge_type": self.edge_type.value,
            "source_id": self.source_id,
            "target_id": self.target_id,
        }


@dataclass(frozen=True)
class ContainsEdge(Edge):
    """Class → declared method."""

    edge_type = EdgeType.CONTAINS


@dataclass(frozen=True)
class InheritsEdge(Edge):
    """Subclass → superclass."""

    edge_type = EdgeType.INHERITS


@dataclass(frozen=True)
class ImplementsEdge(Edge):
    """Class → implemented interface."""

    edge_type = EdgeType.IMPLEMENTS


@dataclass(frozen=True)
class CallsEdge(Edge):
    """Caller method → callee method.

    ``site_index`` numbers the call sites of the caller's file that share
    ``line``, so repeated calls on one line stay separate edges.
    """

    call_kind: CallKind = CallKind.DIRECT
    confidence: float = 1.0
    file_path: str = ""
    line: int = 0
    site_index: int = 0

    edge_type = EdgeType.CALLS

    @property
    def disambiguator(self) -> str:
        if self.site_index:
            return f"{self.line}.{self.site_index}"
        return str(self.line)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            **super().to_dict(),
            "call_kind": self.call_kind.value,
            "confidence": self.confidence,
            "file_path": self.file_path,
            "line": self.line,
            "site_index": self.site_index,
        }


@dataclass(frozen=True)
class UnresolvedCall:
    """A call site whose target is not a node in the graph.

    ``reason`` is "unresolved" when the fact source could not determine the
    callee, or "external" when a named callee is not part of the graph.
    """

    caller_id: str
    callee_hint: str | None
    file_path: str
    line: int
    reason: str = "unresolved"

    call_kind = CallKind.UNKNOWN
    confidence = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "caller_id": self.caller_id,
            "callee_hint": self.callee_hint,
            "file_path": self.file_path,
            "line": self.line,
            "reason": self.reason,
        }
