"""Tests for structural fact schemas and fact sources."""

import json
from pathlib import Path

import pytest
from codekg_core.facts import (
    CallShape,
    CallSiteFact,
    ClassFact,
    FileFacts,
    JsonFactSource,
    MethodFact,
    StaticFactSource,
)
from codekg_core.naming import normalize_signature, parse_signature
from pydantic import ValidationError


class TestClassFact:
    """Tests for ClassFact defaults."""

    def test_package_derived_from_name(self) -> None:
        fact = ClassFact(qualified_name="com.acme.user.UserService")
        assert fact.package == "com.acme.user"
        assert fact.simple_name == "UserService"

    def test_flags_derived_from_modifiers(self) -> None:
        """Interface and abstract flags come from modifiers unless given."""
        iface = ClassFact(qualified_name="com.acme.Repo", modifiers=["public", "interface"])
        assert iface.is_interface
        assert iface.is_abstract

        abstract = ClassFact(qualified_name="com.acme.Base", modifiers=["abstract"])
        assert abstract.is_abstract
        assert not abstract.is_interface

        explicit = ClassFact(qualified_name="com.acme.X", modifiers=["interface"], is_interface=False)
        assert not explicit.is_interface

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ClassFact(qualified_name="")


class TestMethodFact:
    """Tests for MethodFact validation and derived values."""

    def test_line_range_validated(self) -> None:
        """end_line may not precede start_line."""
        with pytest.raises(ValidationError):
            MethodFact(owner="com.acme.A", signature="m()", start_line=10, end_line=3)

    def test_complexity_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            MethodFact(owner="com.acme.A", signature="m()", cyclomatic_complexity=0)

    def test_name_and_params_from_signature(self) -> None:
        """Generic arguments do not split parameters."""
        fact = MethodFact(owner="com.acme.A", signature="put(Map<String, List<Long>>, int)")
        assert fact.name == "put"
        assert fact.params == ["Map<String,List<Long>>", "int"]

    def test_explicit_parameter_types_win(self) -> None:
        fact = MethodFact(owner="com.acme.A", signature="put(K,V)", parameter_types=["String", "Long"])
        assert fact.params == ["String", "Long"]

    def test_lines_of_code(self) -> None:
        """LOC defaults to the line span."""
        assert MethodFact(owner="com.acme.A", signature="m()", start_line=5, end_line=9).loc == 5
        assert MethodFact(owner="com.acme.A", signature="m()").loc == 0
        assert MethodFact(owner="com.acme.A", signature="m()", lines_of_code=3).loc == 3


class TestCallSiteFact:
    """Tests for CallSiteFact."""

    def test_resolved_requires_owner_and_signature(self) -> None:
        resolved = CallSiteFact(
            caller_owner="com.acme.A",
            caller_signature="a()",
            callee_owner="com.acme.B",
            callee_signature="b(int, long)",
        )
        assert resolved.resolved
        assert resolved.callee_hint == "com.acme.B#b(int,long)"

        partial = CallSiteFact(caller_owner="com.acme.A", caller_signature="a()", callee_owner="com.acme.B")
        assert not partial.resolved
        assert partial.callee_hint == "com.acme.B#?"

        unknown = CallSiteFact(caller_owner="com.acme.A", caller_signature="a()")
        assert unknown.callee_hint is None

    def test_shape_parsed_from_value(self) -> None:
        fact = CallSiteFact.model_validate(
            {"caller_owner": "com.acme.A", "caller_signature": "a()", "shape": "interface_dispatch"}
        )
        assert fact.shape is CallShape.INTERFACE_DISPATCH


class TestSignatures:
    """Tests for signature helpers."""

    def test_normalize(self) -> None:
        assert normalize_signature("find( int , String )") == "find(int,String)"

    @pytest.mark.parametrize(
        ("signature", "expected"),
        [
            ("run()", ("run", [])),
            ("run", ("run", [])),
            ("<init>(String)", ("<init>", ["String"])),
            ("of(Map<K,V>,Set<K>)", ("of", ["Map<K,V>", "Set<K>"])),
        ],
    )
    def test_parse(self, signature: str, expected: tuple[str, list[str]]) -> None:
        assert parse_signature(signature) == expected


class TestFactSources:
    """Tests for fact source implementations."""

    def test_static_source(self) -> None:
        """Files come back in insertion order; unknown paths raise."""
        source = StaticFactSource([FileFacts(file_path="b.java"), FileFacts(file_path="a.java")])
        assert source.list_files() == ["b.java", "a.java"]
        assert source.extract("a.java").file_path == "a.java"
        with pytest.raises(FileNotFoundError):
            source.extract("c.java")

    def test_json_source(self, tmp_path: Path) -> None:
        """Entries are validated lazily, one file at a time."""
        document = {
            "files": [
                {
                    "file_path": "src/A.java",
                    "classes": [{"qualified_name": "com.acme.A"}],
                    "methods": [{"owner": "com.acme.A", "signature": "m()", "start_line": 1, "end_line": 3}],
                    "call_sites": [],
                },
                {
                    "file_path": "src/Broken.java",
                    "methods": [{"owner": "com.acme.B", "signature": "m()", "start_line": 9, "end_line": 1}],
                },
                {"classes": []},
            ]
        }
        path = tmp_path / "facts.json"
        path.write_text(json.dumps(document), encoding="utf-8")

        source = JsonFactSource(path)
        assert source.list_files() == ["src/A.java", "src/Broken.java"]
        facts = source.extract("src/A.java")
        assert facts.classes[0].qualified_name == "com.acme.A"
        with pytest.raises(ValidationError):
            source.extract("src/Broken.java")
