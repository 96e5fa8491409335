"""Structural facts consumed by the graph builder.

Facts are produced by an external source analyzer (IDE index, LSP, SCIP...)
and arrive one file at a time. These schemas are used for:
- validating fact payloads before they reach the graph
- synthetic fact streams in tests
- the JSON fact document read by ``JsonFactSource``
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, model_validator

from codekg_core.naming import normalize_signature, parse_signature, simple_name

logger = logging.getLogger(__name__)


class CallShape(Enum):
    """Syntactic shape of a call expression."""

    DIRECT = "direct"
    QUALIFIED_THIS = "qualified_this"
    QUALIFIED_SUPER = "qualified_super"
    CONSTRUCTOR = "constructor"
    LAMBDA = "lambda"
    METHOD_REFERENCE = "method_reference"
    STATIC = "static"
    INTERFACE_DISPATCH = "interface_dispatch"


class ClassFact(BaseModel):
    """A declared class or interface."""

    model_config = ConfigDict(frozen=True)

    qualified_name: str = Field(min_length=1)
    package: str = ""
    modifiers: list[str] = Field(default_factory=list)
    annotations: list[str] = Field(default_factory=list)
    superclass: str | None = None
    interfaces: list[str] = Field(default_factory=list)
    is_interface: bool = False
    is_abstract: bool = False

    @model_validator(mode="before")
    @classmethod
    def _derive_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        qualified = str(data.get("qualified_name") or "")
        if not data.get("package") and "." in qualified:
            data["package"] = qualified.rsplit(".", 1)[0]
        modifiers = data.get("modifiers") or []
        if "is_interface" not in data:
            data["is_interface"] = "interface" in modifiers
        if "is_abstract" not in data:
            data["is_abstract"] = "abstract" in modifiers or data["is_interface"]
        return data

    @property
    def simple_name(self) -> str:
        return simple_name(self.qualified_name)


class MethodFact(BaseModel):
    """A declared method or constructor ("<init>(...)")."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(min_length=1)
    signature: str = Field(min_length=1)
    return_type: str = "void"
    parameter_types: list[str] | None = None
    modifiers: list[str] = Field(default_factory=list)
    annotations: list[str] = Field(default_factory=list)
    cyclomatic_complexity: int = Field(default=1, ge=1)
    start_line: int = Field(default=0, ge=0)
    end_line: int = Field(default=0, ge=0)
    lines_of_code: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_range(self) -> MethodFact:
        if self.end_line < self.start_line:
            raise ValueError(f"end_line {self.end_line} precedes start_line {self.start_line}")
        return self

    @property
    def name(self) -> str:
        return parse_signature(self.signature)[0]

    @property
    def params(self) -> list[str]:
        if self.parameter_types is not None:
            return list(self.parameter_types)
        return parse_signature(self.signature)[1]

    @property
    def loc(self) -> int:
        if self.lines_of_code is not None:
            return self.lines_of_code
        if self.end_line == 0:
            return 0
        return self.end_line - self.start_line + 1


class CallSiteFact(BaseModel):
    """A call expression inside a declared method.

    ``callee_owner`` / ``callee_signature`` are None when the target cannot be
    statically determined (reflection, fully dynamic dispatch).
    """

    model_config = ConfigDict(frozen=True)

    caller_owner: str = Field(min_length=1)
    caller_signature: str = Field(min_length=1)
    callee_owner: str | None = None
    callee_signature: str | None = None
    shape: CallShape = CallShape.DIRECT
    line: int = Field(default=0, ge=0)

    @property
    def resolved(self) -> bool:
        return bool(self.callee_owner and self.callee_signature)

    @property
    def callee_hint(self) -> str | None:
        if not self.callee_owner and not self.callee_signature:
            return None
        owner = self.callee_owner or "?"
        signature = normalize_signature(self.callee_signature or "?")
        return f"{owner}#{signature}"


class FileFacts(BaseModel):
    """All facts extracted from one source file, in declaration order."""

    file_path: str = Field(min_length=1)
    classes: list[ClassFact] = Field(default_factory=list)
    methods: list[MethodFact] = Field(default_factory=list)
    call_sites: list[CallSiteFact] = Field(default_factory=list)


class FactSource(Protocol):
    """Injected provider of per-file structural facts."""

    def list_files(self) -> list[str]:
        """Return file paths in the order they should be built."""
        ...

    def extract(self, file_path: str) -> FileFacts:
        """Return the facts of one file; may raise for unanalyzable files."""
        ...


class StaticFactSource:
    """Fact source over an in-memory sequence of FileFacts."""

    def __init__(self, files: Iterable[FileFacts]) -> None:
        self._files: dict[str, FileFacts] = {}
        for facts in files:
            self._files[facts.file_path] = facts

    def list_files(self) -> list[str]:
        return list(self._files)

    def extract(self, file_path: str) -> FileFacts:
        try:
            return self._files[file_path]
        except KeyError:
            raise FileNotFoundError(file_path) from None


class JsonFactSource:
    """Fact source reading a JSON document of the form ``{"files": [...]}``.

    Each entry is validated lazily in ``extract`` so a malformed entry fails
    only its own file.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        data = json.loads(path.read_text(encoding="utf-8"))
        entries = data.get("files", []) if isinstance(data, dict) else data
        self._raw: dict[str, dict[str, Any]] = {}
        for index, entry in enumerate(entries):
            file_path = entry.get("file_path") if isinstance(entry, dict) else None
            if not file_path:
                logger.warning("Skipping fact entry %d in %s: no file_path", index, path)
                continue
            self._raw[str(file_path)] = entry
        logger.debug("Loaded %d fact entries from %s", len(self._raw), path)

    def list_files(self) -> list[str]:
        return list(self._raw)

    def extract(self, file_path: str) -> FileFacts:
        return FileFacts.model_validate(self._raw[file_path])
