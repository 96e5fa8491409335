"""Code knowledge graph engine.

Turns per-file structural facts (classes, methods, call sites) into a typed
graph with layer classification, call-kind classification, graph queries,
Cypher export and report data.
"""

from codekg_core.graph import CodeGraph, GraphBuilder

__version__ = "0.1.0"

__all__ = ["CodeGraph", "GraphBuilder", "__version__"]
