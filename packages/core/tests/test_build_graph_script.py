"""Tests for the build_graph command-line script."""

import argparse
import json
import sys
from pathlib import Path

import build_graph
import pytest

FACTS = {
    "files": [
        {
            "file_path": "src/A.java",
            "classes": [{"qualified_name": "com.acme.A"}],
            "methods": [{"owner": "com.acme.A", "signature": "a()", "start_line": 1, "end_line": 5}],
            "call_sites": [
                {
                    "caller_owner": "com.acme.A",
                    "caller_signature": "a()",
                    "callee_owner": "com.acme.B",
                    "callee_signature": "b()",
                    "line": 3,
                }
            ],
        },
        {
            "file_path": "src/B.java",
            "classes": [{"qualified_name": "com.acme.B"}],
            "methods": [{"owner": "com.acme.B", "signature": "b()", "start_line": 1, "end_line": 5}],
            "call_sites": [
                {
                    "caller_owner": "com.acme.B",
                    "caller_signature": "b()",
                    "callee_owner": "com.acme.A",
                    "callee_signature": "a()",
                    "line": 4,
                }
            ],
        },
    ]
}


@pytest.fixture
def facts_path(tmp_path: Path) -> Path:
    path = tmp_path / "facts.json"
    path.write_text(json.dumps(FACTS), encoding="utf-8")
    return path


def make_args(facts: Path, output_dir: Path, **overrides: object) -> argparse.Namespace:
    values = {
        "facts": facts,
        "output_dir": output_dir,
        "batch_size": 10,
        "no_schema": False,
        "top_n": 5,
        "cycles": False,
        "impact": None,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


class TestRun:
    """Tests for the build/export/report pipeline."""

    def test_writes_script_and_report(self, facts_path: Path, tmp_path: Path) -> None:
        out = tmp_path / "out"
        assert build_graph.run(make_args(facts_path, out, cycles=True, impact="method:com.acme.A#a()"))

        script = (out / "graph.cypher").read_text(encoding="utf-8")
        assert script.startswith("// schema batch 1/1")
        assert "CREATE (:Class {id: 'class:com.acme.A'" in script

        payload = json.loads((out / "report.json").read_text(encoding="utf-8"))
        assert payload["build"]["built"] == ["src/A.java", "src/B.java"]
        assert payload["report"]["total_calls"] == 2
        assert payload["cycles"] == [{"class_ids": ["class:com.acme.A", "class:com.acme.B"], "size": 2}]
        assert payload["impact"]["direct_callers"] == ["method:com.acme.B#b()"]

    def test_unknown_impact_target(
        self, facts_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """An unknown method id skips impact analysis instead of failing."""
        out = tmp_path / "out"
        assert build_graph.run(make_args(facts_path, out, impact="method:com.acme.Nope#x()"))
        assert "Impact analysis skipped" in capsys.readouterr().out
        assert "impact" not in json.loads((out / "report.json").read_text(encoding="utf-8"))

    def test_failed_file_reported(self, tmp_path: Path) -> None:
        facts = {"files": [{"file_path": "src/Bad.java", "methods": [{"owner": "com.acme.X", "signature": "m()"}]}]}
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(facts), encoding="utf-8")

        assert not build_graph.run(make_args(path, tmp_path / "out", no_schema=True))


class TestMain:
    """Tests for the entry point."""

    def test_exit_code(self, facts_path: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            sys,
            "argv",
            ["build_graph.py", str(facts_path), "--output-dir", str(tmp_path / "out"), "--no-schema"],
        )
        with pytest.raises(SystemExit) as exc_info:
            build_graph.main()
        assert exc_info.value.code == 0
        assert not (tmp_path / "out" / "graph.cypher").read_text(encoding="utf-8").startswith("// schema")

    @pytest.mark.parametrize("value", ["0", "501", "ten"])
    def test_invalid_batch_size_rejected(
        self,
        value: str,
        facts_path: Path,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """A bad --batch-size is a usage error, not a traceback."""
        monkeypatch.setattr(
            sys,
            "argv",
            ["build_graph.py", str(facts_path), "--output-dir", str(tmp_path / "out"), "--batch-size", value],
        )
        with pytest.raises(SystemExit) as exc_info:
            build_graph.main()
        assert exc_info.value.code == 2
        assert "--batch-size" in capsys.readouterr().err
        assert not (tmp_path / "out").exists()


class TestBatchSizeArg:
    def test_accepts_bounds(self) -> None:
        assert build_graph.batch_size_arg("1") == 1
        assert build_graph.batch_size_arg("500") == 500

    def test_rejects_zero(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError, match="between 1 and 500"):
            build_graph.batch_size_arg("0")
