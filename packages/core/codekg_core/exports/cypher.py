"""Cypher batch export for Neo4j-style graph databases.

The export is an ordered list of batches:
schema constraints, Class nodes, Method nodes, CONTAINS, CALLS, EXTENDS,
IMPLEMENTS. Nodes always precede the edges that reference them, so the
script can be replayed top to bottom against an empty database.

Cypher literals are inlined, not parameterized, so every string passes
through ``_esc``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from codekg_core.graph.exceptions import GraphError
from codekg_core.graph.models import (
    CallsEdge,
    ClassNode,
    Edge,
    EdgeType,
    MethodNode,
)
from codekg_core.graph.store import CodeGraph
from codekg_core.settings import Settings, get_settings
from codekg_core.telemetry import record_publish, trace_graph_operation

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS: tuple[str, ...] = (
    "CREATE CONSTRAINT class_id_unique IF NOT EXISTS FOR (c:Class) REQUIRE c.id IS UNIQUE",
    "CREATE CONSTRAINT method_id_unique IF NOT EXISTS FOR (m:Method) REQUIRE m.id IS UNIQUE",
    "CREATE INDEX class_name_index IF NOT EXISTS FOR (c:Class) ON (c.name)",
    "CREATE INDEX method_name_index IF NOT EXISTS FOR (m:Method) ON (m.name)",
    "CREATE INDEX layer_index IF NOT EXISTS FOR (c:Class) ON (c.layer)",
    "CREATE INDEX package_index IF NOT EXISTS FOR (c:Class) ON (c.package)",
)

# (edge type, relationship type, source label, target label)
EDGE_SECTIONS: tuple[tuple[EdgeType, str, str, str], ...] = (
    (EdgeType.CONTAINS, "CONTAINS", "Class", "Method"),
    (EdgeType.CALLS, "CALLS", "Method", "Method"),
    (EdgeType.INHERITS, "EXTENDS", "Class", "Class"),
    (EdgeType.IMPLEMENTS, "IMPLEMENTS", "Class", "Class"),
)


class ExportError(GraphError):
    """Raised when an export cannot be delivered to the graph database.

    The generated export is kept on the exception and, when a fallback
    directory was available, written to ``fallback_path``.
    """

    def __init__(
        self,
        message: str,
        export: CypherExport,
        fallback_path: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.export = export
        self.fallback_path = fallback_path


class CypherExecutor(Protocol):
    """Injected runner for Cypher statements (e.g. a Neo4j session wrapper)."""

    def execute_batch(self, statements: Sequence[str]) -> None:
        """Run a batch of statements, ideally in one transaction."""
        ...


@dataclass
class CypherBatch:
    """A bounded group of statements from one section."""

    section: str
    index: int
    total: int
    statements: list[str] = field(default_factory=list)

    @property
    def header(self) -> str:
        return f"// {self.section} batch {self.index}/{self.total}"

    def render(self) -> str:
        lines = [self.header]
        lines.extend(f"{statement};" for statement in self.statements)
        return "\n".join(lines)


@dataclass
class CypherExport:
    """Ordered Cypher batches for a whole graph."""

    batches: list[CypherBatch] = field(default_factory=list)
    node_count: int = 0
    edge_count: int = 0

    @property
    def statements(self) -> list[str]:
        return [s for batch in self.batches for s in batch.statements]

    @property
    def sections(self) -> list[str]:
        """Section names in output order, without repeats."""
        seen: list[str] = []
        for batch in self.batches:
            if batch.section not in seen:
                seen.append(batch.section)
        return seen

    @property
    def script(self) -> str:
        """The whole export as UTF-8 script text."""
        return "\n\n".join(batch.render() for batch in self.batches) + "\n"

    def write(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.script, encoding="utf-8")
        return path

    def to_dict(self) -> dict[str, Any]:
        return {
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "batches": [
                {
                    "section": b.section,
                    "index": b.index,
                    "total": b.total,
                    "statements": len(b.statements),
                }
                for b in self.batches
            ],
        }


def _esc(s: str) -> str:
    """Escape a string for a single-quoted Cypher literal."""
    return s.replace("\\", "\\\\").replace("'", "\\'")


def cypher_literal(value: Any) -> str:
    """Render a Python value as a Cypher literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return "null"
        return repr(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value) if isinstance(value, (set, frozenset)) else value
        return "[" + ", ".join(cypher_literal(item) for item in items) + "]"
    return f"'{_esc(str(value))}'"


def _property_map(properties: dict[str, Any]) -> str:
    return "{" + ", ".join(f"{key}: {cypher_literal(value)}" for key, value in properties.items()) + "}"


def class_properties(node: ClassNode) -> dict[str, Any]:
    return {
        "id": node.id,
        "name": node.name,
        "qualifiedName": node.qualified_name,
        "package": node.package,
        "layer": node.layer.name,
        "layerDisplay": node.layer.display_name,
        "annotations": node.annotations,
        "superClass": node.superclass_id,
        "interfaces": node.interface_ids,
        "isAbstract": node.is_abstract,
        "isInterface": node.is_interface,
        "methodCount": len(node.method_ids),
        "filePath": node.file_path,
    }


def method_properties(node: MethodNode) -> dict[str, Any]:
    return {
        "id": node.id,
        "name": node.name,
        "signature": node.signature,
        "classId": node.owner_id,
        "returnType": node.return_type,
        "parameterTypes": node.parameter_types,
        "modifiers": node.modifiers,
        "layer": node.layer.name,
        "startLine": node.start_line,
        "endLine": node.end_line,
        "cyclomaticComplexity": node.cyclomatic_complexity,
        "linesOfCode": node.lines_of_code,
        "isConstructor": node.is_constructor,
        "isStatic": node.is_static,
        "visibility": node.visibility,
        "filePath": node.file_path,
    }


def edge_properties(edge: Edge) -> dict[str, Any]:
    if isinstance(edge, CallsEdge):
        return {
            "callType": edge.call_kind.name,
            "lineNumber": edge.line,
            "confidence": edge.confidence,
            "filePath": edge.file_path,
        }
    return {}


def node_statement(label: str, properties: dict[str, Any]) -> str:
    return f"CREATE (:{label} {_property_map(properties)})"


def edge_statement(edge: Edge, rel_type: str, source_label: str, target_label: str) -> str:
    properties = edge_properties(edge)
    rel = f"[:{rel_type} {_property_map(properties)}]" if properties else f"[:{rel_type}]"
    return (
        f"MATCH (a:{source_label} {{id: '{_esc(edge.source_id)}'}}), "
        f"(b:{target_label} {{id: '{_esc(edge.target_id)}'}}) "
        f"CREATE (a)-{rel}->(b)"
    )


def _chunk(section: str, statements: list[str], batch_size: int) -> list[CypherBatch]:
    if not statements:
        return []
    total = (len(statements) + batch_size - 1) // batch_size
    return [
        CypherBatch(
            section=section,
            index=i + 1,
            total=total,
            statements=statements[i * batch_size : (i + 1) * batch_size],
        )
        for i in range(total)
    ]


def generate_cypher_export(
    graph: CodeGraph,
    batch_size: int | None = None,
    include_schema: bool | None = None,
) -> CypherExport:
    """Serialize the graph into ordered, bounded Cypher batches.

    Args:
        graph: The graph to export
        batch_size: Maximum statements per batch (settings default if None)
        include_schema: Emit constraints and indexes first (settings default if None)

    Returns:
        CypherExport with batches in replay order
    """
    settings = get_settings()
    if batch_size is None:
        batch_size = settings.export_batch_size
    if include_schema is None:
        include_schema = settings.export_include_schema
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    export = CypherExport(node_count=graph.node_count(), edge_count=graph.edge_count())

    with trace_graph_operation("export", batch_size=batch_size) as span:
        if include_schema:
            export.batches.extend(_chunk("schema", list(SCHEMA_STATEMENTS), batch_size))

        classes = sorted(graph.get_classes(), key=lambda n: n.id)
        export.batches.extend(
            _chunk("Class", [node_statement("Class", class_properties(n)) for n in classes], batch_size)
        )
        methods = sorted(graph.get_methods(), key=lambda n: n.id)
        export.batches.extend(
            _chunk("Method", [node_statement("Method", method_properties(n)) for n in methods], batch_size)
        )

        for edge_type, rel_type, source_label, target_label in EDGE_SECTIONS:
            edges = sorted(graph.get_edges(edge_type), key=lambda e: e.id)
            statements = [edge_statement(e, rel_type, source_label, target_label) for e in edges]
            export.batches.extend(_chunk(rel_type, statements, batch_size))

        span.set_attribute("graph.batches", len(export.batches))

    logger.debug(
        "Generated Cypher export: %d nodes, %d edges, %d batches",
        export.node_count,
        export.edge_count,
        len(export.batches),
    )
    return export


def _fallback_path(fallback_dir: Path) -> Path:
    stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%f")
    return fallback_dir / f"codekg_export_{stamp}.cypher"


def publish_export(
    export: CypherExport,
    executor: CypherExecutor,
    fallback_dir: Path | str | None = None,
    settings: Settings | None = None,
) -> int:
    """Run every batch through the executor, in order.

    Transient failures (connection errors, timeouts) are retried per batch.
    When a batch still fails, the full script is written to the fallback
    directory and ExportError is raised.

    Args:
        export: The generated export
        executor: Statement runner for the target database
        fallback_dir: Where to write the script on failure (settings default if None)
        settings: Settings override

    Returns:
        Number of statements executed

    Raises:
        ExportError: If any batch fails after retries
    """
    settings = settings or get_settings()
    max_wait = settings.export_retry_max_wait

    run_batch = retry(
        retry=retry_if_exception_type((ConnectionError, TimeoutError)),
        wait=wait_exponential_jitter(initial=min(1.0, max_wait), max=max_wait, jitter=max_wait / 5),
        stop=stop_after_attempt(settings.export_retry_attempts),
        reraise=True,
    )(executor.execute_batch)

    executed = 0
    with trace_graph_operation("publish", batches=len(export.batches)) as span:
        try:
            for batch in export.batches:
                run_batch(batch.statements)
                executed += len(batch.statements)
        except Exception as e:
            target_dir = Path(fallback_dir if fallback_dir is not None else settings.export_fallback_dir)
            path = export.write(_fallback_path(target_dir))
            logger.error(
                "Cypher export failed after %d statements (%s); script written to %s",
                executed,
                e,
                path,
            )
            span.set_attribute("graph.fallback_path", str(path))
            record_publish(executed, fell_back=True)
            raise ExportError(f"Export failed: {e}", export=export, fallback_path=path) from e
        span.set_attribute("graph.statements", executed)

    record_publish(executed, fell_back=False)

    logger.info("Published %d Cypher statements in %d batches", executed, len(export.batches))
    return executed
