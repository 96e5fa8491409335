"""Tests for the Cypher batch export."""

from collections.abc import Sequence
from pathlib import Path

import pytest
from codekg_core.exports import (
    CypherExport,
    ExportError,
    cypher_literal,
    generate_cypher_export,
    publish_export,
)
from codekg_core.graph import CodeGraph
from factories import build, call, cid, class_fact, file_facts, make_settings, method_fact, mid

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def graph() -> CodeGraph:
    """Impl extends Base, implements Api, and calls an inherited helper."""
    return build(
        file_facts(
            "src/Base.java",
            classes=[class_fact("Base", modifiers=["abstract"])],
            methods=[method_fact("Base", "helper()")],
        ),
        file_facts("src/Api.java", classes=[class_fact("Api", modifiers=["interface"])]),
        file_facts(
            "src/ImplService.java",
            classes=[
                class_fact(
                    "ImplService",
                    superclass="com.acme.Base",
                    interfaces=["com.acme.Api"],
                    annotations=['@Qualifier("it\'s")'],
                )
            ],
            methods=[method_fact("ImplService", "run()", line=10)],
            calls=[call("ImplService.run()", "Base.helper()", line=12)],
        ),
    ).graph


class RecordingExecutor:
    """Executor that records batches and fails on demand."""

    def __init__(self, failures: Sequence[Exception] = (), fail_on_batch: int | None = None) -> None:
        self.batches: list[list[str]] = []
        self.attempts = 0
        self._failures = list(failures)
        self._fail_on_batch = fail_on_batch

    def execute_batch(self, statements: Sequence[str]) -> None:
        self.attempts += 1
        if self._fail_on_batch is not None and len(self.batches) == self._fail_on_batch:
            if self._failures:
                raise self._failures.pop(0)
        self.batches.append(list(statements))


# =============================================================================
# GENERATION
# =============================================================================


class TestGenerate:
    """Tests for generate_cypher_export."""

    def test_section_order(self, graph: CodeGraph) -> None:
        """Schema, then nodes, then relationships."""
        export = generate_cypher_export(graph, batch_size=50, include_schema=True)
        assert export.sections == ["schema", "Class", "Method", "CONTAINS", "CALLS", "EXTENDS", "IMPLEMENTS"]
        assert export.node_count == graph.node_count()
        assert export.edge_count == graph.edge_count()

    def test_nodes_precede_edges(self, graph: CodeGraph) -> None:
        statements = generate_cypher_export(graph, batch_size=50, include_schema=False).statements
        creates = [i for i, s in enumerate(statements) if s.startswith("CREATE (:")]
        matches = [i for i, s in enumerate(statements) if s.startswith("MATCH")]
        assert len(creates) == graph.node_count()
        assert len(matches) == graph.edge_count()
        assert max(creates) < min(matches)

    def test_schema_optional(self, graph: CodeGraph) -> None:
        export = generate_cypher_export(graph, batch_size=50, include_schema=False)
        assert "schema" not in export.sections
        assert not any("CONSTRAINT" in s for s in export.statements)

    def test_batches_are_bounded(self, graph: CodeGraph) -> None:
        """Each section is split into numbered batches of at most batch_size."""
        export = generate_cypher_export(graph, batch_size=2, include_schema=True)
        assert all(len(b.statements) <= 2 for b in export.batches)
        schema = [b for b in export.batches if b.section == "schema"]
        assert [b.header for b in schema] == [
            "// schema batch 1/3",
            "// schema batch 2/3",
            "// schema batch 3/3",
        ]
        classes = [b for b in export.batches if b.section == "Class"]
        assert [len(b.statements) for b in classes] == [2, 1]

    def test_invalid_batch_size(self, graph: CodeGraph) -> None:
        with pytest.raises(ValueError):
            generate_cypher_export(graph, batch_size=0)

    def test_class_statement(self, graph: CodeGraph) -> None:
        """Class nodes carry identity, layer, flags and escaped strings."""
        export = generate_cypher_export(graph, batch_size=50, include_schema=False)
        (statement,) = [
            s
            for s in export.statements
            if s.startswith("CREATE (:Class {") and f"id: '{cid('ImplService')}'" in s
        ]
        assert "layer: 'SERVICE'" in statement
        assert "layerDisplay: 'Service layer'" in statement
        assert f"superClass: '{cid('Base')}'" in statement
        assert "isInterface: false" in statement
        assert "methodCount: 1" in statement
        assert "annotations: ['@Qualifier(\"it\\'s\")']" in statement

    def test_call_statement(self, graph: CodeGraph) -> None:
        export = generate_cypher_export(graph, batch_size=50, include_schema=False)
        (batch,) = [b for b in export.batches if b.section == "CALLS"]
        (statement,) = batch.statements
        assert statement == (
            f"MATCH (a:Method {{id: '{mid('ImplService.run()')}'}}), "
            f"(b:Method {{id: '{mid('Base.helper()')}'}}) "
            "CREATE (a)-[:CALLS {callType: 'INHERITED', lineNumber: 12, confidence: 0.9, "
            "filePath: 'src/ImplService.java'}]->(b)"
        )

    def test_structural_edges_have_no_properties(self, graph: CodeGraph) -> None:
        export = generate_cypher_export(graph, batch_size=50, include_schema=False)
        (batch,) = [b for b in export.batches if b.section == "EXTENDS"]
        assert batch.statements[0].endswith("CREATE (a)-[:EXTENDS]->(b)")

    def test_script(self, graph: CodeGraph, tmp_path: Path) -> None:
        """The script has headers, terminated statements and a trailing newline."""
        export = generate_cypher_export(graph, batch_size=50, include_schema=True)
        script = export.script
        assert script.startswith("// schema batch 1/1\nCREATE CONSTRAINT class_id_unique")
        assert script.endswith(";\n")
        assert script.count(";\n") == len(export.statements)

        path = export.write(tmp_path / "out" / "graph.cypher")
        assert path.read_text(encoding="utf-8") == script

    def test_deterministic(self, graph: CodeGraph) -> None:
        first = generate_cypher_export(graph, batch_size=3, include_schema=True).script
        assert generate_cypher_export(graph, batch_size=3, include_schema=True).script == first

    def test_empty_graph(self) -> None:
        export = generate_cypher_export(CodeGraph(), batch_size=10, include_schema=False)
        assert export.batches == []
        assert export.to_dict() == {"node_count": 0, "edge_count": 0, "batches": []}


class TestCypherLiteral:
    """Tests for literal rendering."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, "null"),
            (True, "true"),
            (False, "false"),
            (42, "42"),
            (0.5, "0.5"),
            (float("nan"), "null"),
            ("plain", "'plain'"),
            ("O'Brien", "'O\\'Brien'"),
            ("C:\\temp", "'C:\\\\temp'"),
            (["b", "a"], "['b', 'a']"),
            ({"b", "a"}, "['a', 'b']"),
            ([], "[]"),
        ],
    )
    def test_literals(self, value: object, expected: str) -> None:
        assert cypher_literal(value) == expected


# =============================================================================
# PUBLISHING
# =============================================================================


class TestPublish:
    """Tests for publish_export."""

    @pytest.fixture
    def export(self, graph: CodeGraph) -> CypherExport:
        return generate_cypher_export(graph, batch_size=2, include_schema=True)

    def test_success(self, export: CypherExport, tmp_path: Path) -> None:
        """Every batch is executed once, in order."""
        executor = RecordingExecutor()
        executed = publish_export(export, executor, fallback_dir=tmp_path, settings=make_settings())

        assert executed == len(export.statements)
        assert executor.batches == [b.statements for b in export.batches]
        assert list(tmp_path.iterdir()) == []

    def test_transient_failure_is_retried(self, export: CypherExport, tmp_path: Path) -> None:
        executor = RecordingExecutor(failures=[ConnectionError("reset")], fail_on_batch=1)
        executed = publish_export(export, executor, fallback_dir=tmp_path, settings=make_settings())

        assert executed == len(export.statements)
        assert executor.attempts == len(export.batches) + 1
        assert executor.batches == [b.statements for b in export.batches]

    def test_persistent_transient_failure(self, export: CypherExport, tmp_path: Path) -> None:
        """Retries stop after the configured attempts."""
        executor = RecordingExecutor(failures=[TimeoutError("slow")] * 5, fail_on_batch=0)
        with pytest.raises(ExportError):
            publish_export(
                export,
                executor,
                fallback_dir=tmp_path,
                settings=make_settings(export_retry_attempts=3),
            )
        assert executor.attempts == 3

    def test_failure_writes_fallback(self, export: CypherExport, tmp_path: Path) -> None:
        """A hard failure keeps the full script on disk and is not retried."""
        executor = RecordingExecutor(failures=[ValueError("syntax error")], fail_on_batch=2)

        with pytest.raises(ExportError) as exc_info:
            publish_export(export, executor, fallback_dir=tmp_path, settings=make_settings())

        error = exc_info.value
        assert executor.attempts == 3
        assert error.export is export
        assert isinstance(error.__cause__, ValueError)
        assert error.fallback_path is not None
        assert error.fallback_path.parent == tmp_path
        assert error.fallback_path.name.startswith("codekg_export_")
        assert error.fallback_path.read_text(encoding="utf-8") == export.script

    def test_fallback_dir_from_settings(self, export: CypherExport, tmp_path: Path) -> None:
        executor = RecordingExecutor(failures=[RuntimeError("down")], fail_on_batch=0)
        settings = make_settings(export_fallback_dir=str(tmp_path / "fallback"))

        with pytest.raises(ExportError) as exc_info:
            publish_export(export, executor, settings=settings)

        assert exc_info.value.fallback_path.parent == tmp_path / "fallback"
