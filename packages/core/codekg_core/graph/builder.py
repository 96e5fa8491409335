"""Graph builder for constructing code graphs from structural facts.

The builder works in two steps:
- Per file: validate facts, classify layers, and atomically replace the
  file's classes, methods and containment edges in the store
- Link pass: reconcile every recorded reference (superclasses, interfaces,
  call sites) against the current store, adding edges whose endpoints now
  exist and dropping stale ones

Because cross-file references are resolved in the link pass, a file can be
rebuilt on its own at any time: removing its nodes cascades to edges that
point into it, and the link pass restores them from the other files'
recorded references.

The builder is the single writer of its CodeGraph. Fact extraction may run
on worker threads; results are applied to the store by the calling thread
in source order.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from fnmatch import fnmatch
from typing import Any, Protocol

from codekg_core.classification import (
    classify_call,
    classify_layer,
    classify_method_layer,
    split_confidence,
)
from codekg_core.facts import CallSiteFact, FactSource, FileFacts, StaticFactSource
from codekg_core.graph.exceptions import FactValidationError
from codekg_core.graph.models import (
    CallKind,
    CallsEdge,
    ClassNode,
    ContainsEdge,
    Edge,
    EdgeType,
    ImplementsEdge,
    InheritsEdge,
    MethodNode,
    UnresolvedCall,
    make_class_id,
    make_method_id,
)
from codekg_core.graph.store import CodeGraph
from codekg_core.naming import normalize_signature
from codekg_core.settings import Settings, get_settings
from codekg_core.telemetry import record_build, trace_graph_operation

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]

REFERENCE_EDGE_TYPES = (EdgeType.CALLS, EdgeType.INHERITS, EdgeType.IMPLEMENTS)


class CancellationFlag(Protocol):
    """Polled cancellation flag; ``threading.Event`` satisfies it."""

    def is_set(self) -> bool: ...


@dataclass(frozen=True)
class CallReference:
    """A call site recorded for the link pass."""

    caller_id: str
    caller_class_id: str
    site: CallSiteFact
    site_index: int = 0


@dataclass
class FileReferences:
    """Cross-node references declared in one file."""

    file_path: str
    superclasses: list[tuple[str, str]] = field(default_factory=list)  # (class_id, target_id)
    interfaces: list[tuple[str, str]] = field(default_factory=list)  # (class_id, target_id)
    calls: list[CallReference] = field(default_factory=list)


@dataclass
class FileContribution:
    """Everything one file contributes before linking."""

    file_path: str
    classes: list[ClassNode]
    methods: list[MethodNode]
    contains: list[ContainsEdge]
    references: FileReferences


@dataclass
class FileFailure:
    """A file whose facts could not be applied."""

    file_path: str
    error: str


@dataclass
class BuildReport:
    """Outcome of one build run."""

    files_total: int = 0
    built: list[str] = field(default_factory=list)
    failed: list[FileFailure] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    cancelled: bool = False
    node_count: int = 0
    edge_count: int = 0
    unresolved_calls: int = 0

    @property
    def succeeded(self) -> bool:
        return not self.failed and not self.cancelled

    def to_dict(self) -> dict[str, Any]:
        return {
            "files_total": self.files_total,
            "built": list(self.built),
            "failed": [{"file_path": f.file_path, "error": f.error} for f in self.failed],
            "skipped": list(self.skipped),
            "cancelled": self.cancelled,
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "unresolved_calls": self.unresolved_calls,
        }


def extract_file(facts: FileFacts) -> FileContribution:
    """Turn one file's facts into nodes, containment edges and references.

    Pure function of its input; safe to call from worker threads.

    Raises:
        FactValidationError: If the facts are inconsistent
    """
    path = facts.file_path
    classes: dict[str, ClassNode] = {}
    references = FileReferences(file_path=path)

    for class_fact in facts.classes:
        class_id = make_class_id(class_fact.qualified_name)
        if class_id in classes:
            raise FactValidationError(path, f"class {class_fact.qualified_name} declared twice")
        superclass_id = make_class_id(class_fact.superclass) if class_fact.superclass else None
        interface_ids = [make_class_id(name) for name in class_fact.interfaces]
        classes[class_id] = ClassNode(
            id=class_id,
            name=class_fact.simple_name,
            qualified_name=class_fact.qualified_name,
            package=class_fact.package,
            layer=classify_layer(class_fact),
            file_path=path,
            is_interface=class_fact.is_interface,
            is_abstract=class_fact.is_abstract,
            superclass_id=superclass_id,
            interface_ids=set(interface_ids),
            annotations=set(class_fact.annotations),
        )
        if superclass_id:
            references.superclasses.append((class_id, superclass_id))
        for interface_id in interface_ids:
            references.interfaces.append((class_id, interface_id))

    methods: dict[str, MethodNode] = {}
    contains: list[ContainsEdge] = []
    for method_fact in facts.methods:
        owner = classes.get(make_class_id(method_fact.owner))
        if owner is None:
            raise FactValidationError(
                path, f"method {method_fact.signature} names undeclared owner {method_fact.owner}"
            )
        method_id = make_method_id(method_fact.owner, method_fact.signature)
        if method_id in methods:
            raise FactValidationError(path, f"method {method_id} declared twice")
        methods[method_id] = MethodNode(
            id=method_id,
            name=method_fact.name,
            signature=normalize_signature(method_fact.signature),
            owner_id=owner.id,
            layer=classify_method_layer(method_fact, owner.layer),
            file_path=path,
            start_line=method_fact.start_line,
            end_line=method_fact.end_line,
            return_type=method_fact.return_type,
            parameter_types=method_fact.params,
            modifiers=set(method_fact.modifiers),
            cyclomatic_complexity=method_fact.cyclomatic_complexity,
            lines_of_code=method_fact.loc,
        )
        owner.method_ids.append(method_id)
        contains.append(ContainsEdge(source_id=owner.id, target_id=method_id))

    sites_per_line: Counter[int] = Counter()
    for site in facts.call_sites:
        caller_id = make_method_id(site.caller_owner, site.caller_signature)
        if caller_id not in methods:
            raise FactValidationError(path, f"call site at line {site.line} names undeclared caller {caller_id}")
        references.calls.append(
            CallReference(
                caller_id=caller_id,
                caller_class_id=make_class_id(site.caller_owner),
                site=site,
                site_index=sites_per_line[site.line],
            )
        )
        sites_per_line[site.line] += 1

    return FileContribution(
        file_path=path,
        classes=list(classes.values()),
        methods=list(methods.values()),
        contains=contains,
        references=references,
    )


class GraphBuilder:
    """Builds and incrementally maintains a CodeGraph from a fact source.

    Usage:
        builder = GraphBuilder()
        report = builder.build(source, progress=on_progress, cancel=stop_event)
        graph = builder.graph
    """

    def __init__(
        self,
        graph: CodeGraph | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the builder.

        Args:
            graph: Graph to populate (a fresh one if None)
            settings: Settings override (global settings if None)
        """
        self._graph = graph if graph is not None else CodeGraph()
        self._settings = settings or get_settings()
        self._references: dict[str, FileReferences] = {}

    @property
    def graph(self) -> CodeGraph:
        return self._graph

    def is_excluded(self, file_path: str) -> bool:
        """Check a path against the configured exclude patterns."""
        normalized = file_path.replace("\\", "/")
        return any(fnmatch(normalized, pattern) for pattern in self._settings.build_exclude_patterns)

    def build(
        self,
        source: FactSource,
        progress: ProgressCallback | None = None,
        cancel: CancellationFlag | None = None,
    ) -> BuildReport:
        """Build (or rebuild) every file the source lists.

        Each file is applied atomically; a failing file is logged, reported
        and leaves the graph as it was. Cancellation is checked between files;
        files already applied stay complete and are linked before returning,
        also when the progress callback or cancel flag raises.

        Args:
            source: Provider of per-file facts
            progress: Called with a fraction in [0, 1] and a message
            cancel: Polled between files

        Returns:
            BuildReport describing built, failed and skipped files
        """
        paths = source.list_files()
        report = BuildReport(files_total=len(paths))
        included: list[str] = []
        for path in paths:
            if self.is_excluded(path):
                logger.debug("Skipping excluded file %s", path)
                report.skipped.append(path)
            else:
                included.append(path)

        steps = len(included) + 1  # one extra step for the link pass
        started = time.perf_counter()

        with trace_graph_operation("build", files=len(included)) as span:
            workers = min(self._settings.build_max_workers, max(len(included), 1))
            pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="codekg-extract")
            try:
                futures = [pool.submit(self._extract, source, path) for path in included]
                for index, (path, future) in enumerate(zip(included, futures, strict=True)):
                    if cancel is not None and cancel.is_set():
                        logger.info("Build cancelled after %d of %d files", index, len(included))
                        report.cancelled = True
                        break
                    self._apply_future(path, future, report)
                    if progress is not None:
                        progress((index + 1) / steps, f"Built {path}")
            finally:
                pool.shutdown(wait=True, cancel_futures=True)
                # Files already swapped in lost their incoming edges.
                self.link()

            if progress is not None:
                progress(1.0, "Linked references")

            report.node_count = self._graph.node_count()
            report.edge_count = self._graph.edge_count()
            report.unresolved_calls = len(self._graph.get_unresolved())
            span.set_attribute("graph.files_built", len(report.built))
            span.set_attribute("graph.files_failed", len(report.failed))
            span.set_attribute("graph.cancelled", report.cancelled)

        record_build(
            built=len(report.built),
            failed=len(report.failed),
            skipped=len(report.skipped),
            duration_s=time.perf_counter() - started,
            cancelled=report.cancelled,
        )

        logger.info(
            "Graph build finished: %d built, %d failed, %d skipped, %d nodes, %d edges",
            len(report.built),
            len(report.failed),
            len(report.skipped),
            report.node_count,
            report.edge_count,
        )
        return report

    def build_file(self, facts: FileFacts) -> BuildReport:
        """Rebuild a single file; same algorithm as a project build."""
        return self.build(StaticFactSource([facts]))

    def build_in_background(
        self,
        source: FactSource,
        progress: ProgressCallback | None = None,
        cancel: CancellationFlag | None = None,
    ) -> Future[BuildReport]:
        """Run ``build`` on a background thread.

        Queries against the graph are only reliable once the returned
        future has completed.
        """
        runner = ThreadPoolExecutor(max_workers=1, thread_name_prefix="codekg-build")
        future = runner.submit(self.build, source, progress, cancel)
        runner.shutdown(wait=False)
        return future

    def remove_file(self, file_path: str) -> int:
        """Drop a deleted file's contribution and relink.

        Returns:
            Number of nodes removed
        """
        removed = self._graph.remove_file(file_path)
        self._references.pop(file_path, None)
        self.link()
        logger.info("Removed %s (%d nodes)", file_path, removed)
        return removed

    def reset(self) -> None:
        """Discard the graph contents and all recorded references."""
        self._graph.clear()
        self._references.clear()

    # -- Per-file application ------------------------------------------------

    def _extract(self, source: FactSource, path: str) -> FileContribution:
        facts = source.extract(path)
        if facts.file_path != path:
            raise FactValidationError(path, f"fact source returned facts for {facts.file_path}")
        return extract_file(facts)

    def _apply_future(
        self,
        path: str,
        future: Future[FileContribution],
        report: BuildReport,
    ) -> None:
        try:
            contribution = future.result()
            self._graph.replace_file(
                path,
                [*contribution.classes, *contribution.methods],
                contribution.contains,
            )
        except Exception as e:
            logger.warning("Failed to build %s: %s", path, e)
            report.failed.append(FileFailure(file_path=path, error=str(e)))
            return
        self._references[path] = contribution.references
        report.built.append(path)

    # -- Link pass -----------------------------------------------------------

    def link(self) -> None:
        """Reconcile reference edges of every file with the current store.

        Supertype edges are linked for all files first, since interface
        fan-out of call edges depends on them.
        """
        for path, refs in self._references.items():
            desired: list[Edge] = []
            for class_id, target_id in refs.superclasses:
                if self._graph.has_node(class_id) and self._graph.has_node(target_id):
                    desired.append(InheritsEdge(source_id=class_id, target_id=target_id))
            for class_id, target_id in refs.interfaces:
                if self._graph.has_node(class_id) and self._graph.has_node(target_id):
                    desired.append(ImplementsEdge(source_id=class_id, target_id=target_id))
            self._reconcile(path, desired, (EdgeType.INHERITS, EdgeType.IMPLEMENTS))

        for path, refs in self._references.items():
            desired = []
            unresolved: list[UnresolvedCall] = []
            for ref in refs.calls:
                if not self._graph.has_node(ref.caller_id):
                    continue
                edges, record = self._link_call(path, ref)
                desired.extend(edges)
                if record is not None:
                    unresolved.append(record)
            self._reconcile(path, desired, (EdgeType.CALLS,))
            self._graph.set_unresolved(path, unresolved)

    def _link_call(
        self,
        path: str,
        ref: CallReference,
    ) -> tuple[list[CallsEdge], UnresolvedCall | None]:
        site = ref.site
        if not site.resolved:
            return [], UnresolvedCall(
                caller_id=ref.caller_id,
                callee_hint=site.callee_hint,
                file_path=path,
                line=site.line,
                reason="unresolved",
            )

        callee_owner = site.callee_owner or ""
        callee_signature = site.callee_signature or ""
        target_class_id = make_class_id(callee_owner)
        target_class = self._graph.get_class(target_class_id)
        target_method = self._graph.get_method(make_method_id(callee_owner, callee_signature))

        classification = classify_call(
            site.shape,
            resolved=True,
            target_is_static=target_method is not None and target_method.is_static,
            target_in_interface=target_class is not None and target_class.is_interface,
            inherited=self._is_supertype(ref.caller_class_id, target_class_id),
        )

        targets: list[tuple[str, float]] = []
        if classification.kind is CallKind.INTERFACE:
            implementations = self._implementations(target_class_id, callee_signature)
            if implementations:
                confidence = split_confidence(len(implementations))
                targets = [(method_id, confidence) for method_id in implementations]
        if not targets and target_method is not None:
            targets = [(target_method.id, classification.confidence)]

        if not targets:
            return [], UnresolvedCall(
                caller_id=ref.caller_id,
                callee_hint=site.callee_hint,
                file_path=path,
                line=site.line,
                reason="external",
            )

        edges = [
            CallsEdge(
                source_id=ref.caller_id,
                target_id=target_id,
                call_kind=classification.kind,
                confidence=confidence,
                file_path=path,
                line=site.line,
                site_index=ref.site_index,
            )
            for target_id, confidence in targets
        ]
        return edges, None

    def _implementations(self, interface_id: str, signature: str) -> list[str]:
        """Method ids of direct implementors that declare ``signature``."""
        implementor_ids = sorted(
            edge.source_id for edge in self._graph.get_incoming(interface_id, [EdgeType.IMPLEMENTS])
        )
        method_ids: list[str] = []
        for implementor_id in implementor_ids:
            implementor = self._graph.get_class(implementor_id)
            if implementor is None:
                continue
            method_id = make_method_id(implementor.qualified_name, signature)
            if self._graph.has_node(method_id):
                method_ids.append(method_id)
        return method_ids

    def _is_supertype(self, class_id: str, candidate_id: str) -> bool:
        """Check whether ``candidate_id`` is a proper supertype of ``class_id``."""
        if class_id == candidate_id:
            return False
        seen: set[str] = {class_id}
        frontier = [class_id]
        while frontier:
            current = frontier.pop()
            for edge in self._graph.get_outgoing(current, [EdgeType.INHERITS, EdgeType.IMPLEMENTS]):
                if edge.target_id == candidate_id:
                    return True
                if edge.target_id not in seen:
                    seen.add(edge.target_id)
                    frontier.append(edge.target_id)
        return False

    def _reconcile(
        self,
        path: str,
        desired: list[Edge],
        edge_types: tuple[EdgeType, ...],
    ) -> None:
        """Make the file's edges of ``edge_types`` equal to ``desired``."""
        wanted = {edge.id: edge for edge in desired}
        current: dict[str, Edge] = {}
        for node in self._graph.get_nodes_in_file(path):
            for edge in self._graph.get_outgoing(node.id, edge_types):
                current[edge.id] = edge

        for edge_id, edge in current.items():
            if wanted.get(edge_id) != edge:
                self._graph.remove_edge(edge_id)
        for edge_id, edge in wanted.items():
            if current.get(edge_id) != edge:
                self._graph.add_edge(edge)


__all__ = [
    "BuildReport",
    "CancellationFlag",
    "FileContribution",
    "FileFailure",
    "GraphBuilder",
    "ProgressCallback",
    "extract_file",
]
