"""Tests for graph reports."""

import json

import pytest
from codekg_core.graph import CallKind, CodeGraph, Layer
from codekg_core.reports import build_report
from factories import build, call, cid, class_fact, file_facts, method_fact, mid


@pytest.fixture
def graph() -> CodeGraph:
    """Controller -> service -> repository/util, with one unresolved call."""
    return build(
        file_facts(
            "src/UserController.java",
            classes=[class_fact("UserController", annotations=["@RestController"])],
            methods=[method_fact("UserController", "get()", line=1), method_fact("UserController", "list()", line=10)],
            calls=[
                call("UserController.get()", "UserService.find()", line=5),
                call("UserController.get()", None, line=6),
                call("UserController.list()", "UserService.find()", line=15),
            ],
        ),
        file_facts(
            "src/UserService.java",
            classes=[class_fact("UserService", annotations=["@Service"])],
            methods=[method_fact("UserService", "find()")],
            calls=[
                call("UserService.find()", "UserRepository.load()", line=3),
                call("UserService.find()", "StringUtils.trim()", line=4),
            ],
        ),
        file_facts(
            "src/UserRepository.java",
            classes=[class_fact("UserRepository", annotations=["@Repository"])],
            methods=[method_fact("UserRepository", "load()"), method_fact("UserRepository", "save()", line=8)],
        ),
        file_facts(
            "src/StringUtils.java",
            classes=[class_fact("StringUtils")],
            methods=[method_fact("StringUtils", "trim()", modifiers=["public", "static"])],
        ),
    ).graph


class TestBuildReport:
    """Tests for build_report."""

    def test_totals(self, graph: CodeGraph) -> None:
        report = build_report(graph, top_n=10)
        assert report.total_classes == 4
        assert report.total_methods == 6
        assert report.total_calls == 4
        assert report.unresolved_calls == 1
        assert report.average_methods_per_class == 1.5

    def test_layer_distribution(self, graph: CodeGraph) -> None:
        """Only populated layers are listed."""
        report = build_report(graph, top_n=10)
        assert report.classes_by_layer == {
            Layer.CONTROLLER: 1,
            Layer.SERVICE: 1,
            Layer.REPOSITORY: 1,
            Layer.UTIL: 1,
        }
        assert report.methods_by_layer == {
            Layer.CONTROLLER: 2,
            Layer.SERVICE: 1,
            Layer.REPOSITORY: 2,
            Layer.UTIL: 1,
        }

    def test_unresolved_counted_as_unknown(self, graph: CodeGraph) -> None:
        report = build_report(graph, top_n=10)
        assert report.calls_by_kind == {
            CallKind.DIRECT: 3,
            CallKind.STATIC: 1,
            CallKind.UNKNOWN: 1,
        }

    def test_rankings(self, graph: CodeGraph) -> None:
        """Ties break on id; rankings are cut at top_n."""
        report = build_report(graph, top_n=2)
        assert [r.class_id for r in report.top_classes] == [cid("UserController"), cid("UserRepository")]
        assert [r.method_count for r in report.top_classes] == [2, 2]
        assert [(r.method_id, r.caller_count) for r in report.most_called_methods] == [
            (mid("UserService.find()"), 2),
            (mid("StringUtils.trim()"), 1),
        ]

    def test_cross_layer_calls(self, graph: CodeGraph) -> None:
        report = build_report(graph, top_n=10)
        assert list(report.cross_layer_calls.items()) == [
            ((Layer.CONTROLLER, Layer.SERVICE), 2),
            ((Layer.SERVICE, Layer.REPOSITORY), 1),
            ((Layer.SERVICE, Layer.UTIL), 1),
        ]

    def test_json_ready(self, graph: CodeGraph) -> None:
        data = json.loads(json.dumps(build_report(graph, top_n=3).to_dict()))
        assert data["classes_by_layer"]["controller"] == 1
        assert data["calls_by_kind"]["unknown"] == 1
        assert data["cross_layer_calls"][0] == {"from": "controller", "to": "service", "count": 2}
        assert data["top_classes"][0]["layer"] == "controller"

    def test_empty_graph(self) -> None:
        report = build_report(CodeGraph(), top_n=5)
        assert report.total_classes == 0
        assert report.average_methods_per_class == 0.0
        assert report.calls_by_kind == {}
        assert report.top_classes == []
