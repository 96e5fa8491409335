#!/usr/bin/env python3
"""Build a code knowledge graph from a JSON fact document.

This script:
1. Reads structural facts from a JSON document ({"files": [...]})
2. Builds the graph, reporting files that failed
3. Writes the Cypher export script and the report data

Usage:
    python scripts/build_graph.py facts.json [--output-dir out] [--batch-size 50]
    python scripts/build_graph.py facts.json --impact "method:com.acme.UserService#find(long)"
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from codekg_core.exports import generate_cypher_export
from codekg_core.facts import JsonFactSource
from codekg_core.graph import GraphBuilder, NodeNotFoundError, detect_cycles, impact_analysis
from codekg_core.reports import build_report
from codekg_core.settings import MAX_BATCH_SIZE, get_settings
from codekg_core.telemetry import init_telemetry, shutdown_telemetry

logger = logging.getLogger(__name__)


def batch_size_arg(value: str) -> int:
    """Parse --batch-size, enforcing the same bounds as the settings."""
    try:
        size = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid batch size: {value!r}") from None
    if not 1 <= size <= MAX_BATCH_SIZE:
        raise argparse.ArgumentTypeError(f"batch size must be between 1 and {MAX_BATCH_SIZE}")
    return size


def run(args: argparse.Namespace) -> bool:
    """Build, export and report.

    Returns:
        True if every file was built
    """
    source = JsonFactSource(args.facts)
    builder = GraphBuilder()

    def on_progress(fraction: float, message: str) -> None:
        logger.debug("[%3.0f%%] %s", fraction * 100, message)

    result = builder.build(source, progress=on_progress)
    graph = builder.graph

    print(f"Built {len(result.built)} files ({len(result.failed)} failed, {len(result.skipped)} skipped)")
    for failure in result.failed:
        print(f"  FAILED {failure.file_path}: {failure.error}")
    print(f"Graph: {graph.node_count()} nodes, {graph.edge_count()} edges, {result.unresolved_calls} unresolved calls")

    output_dir: Path = args.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)

    export = generate_cypher_export(
        graph,
        batch_size=args.batch_size,
        include_schema=not args.no_schema,
    )
    script_path = export.write(output_dir / "graph.cypher")
    print(f"Wrote {len(export.statements)} statements in {len(export.batches)} batches to {script_path}")

    report = build_report(graph, top_n=args.top_n)
    payload = {"build": result.to_dict(), "report": report.to_dict()}

    if args.cycles:
        cycles = detect_cycles(graph)
        payload["cycles"] = [cycle.to_dict() for cycle in cycles]
        print(f"Found {len(cycles)} class dependency cycles")

    if args.impact:
        try:
            impact = impact_analysis(graph, args.impact)
        except NodeNotFoundError as e:
            print(f"Impact analysis skipped: {e}")
        else:
            payload["impact"] = impact.to_dict()
            print(f"Impact of {args.impact}: {impact.impact_size} callers, risk {impact.risk_level.value}")

    report_path = output_dir / "report.json"
    report_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    print(f"Wrote report to {report_path}")

    return not result.failed


def main() -> None:
    """Main entry point."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Build a code knowledge graph from structural facts")
    parser.add_argument("facts", type=Path, help="JSON fact document")
    parser.add_argument("--output-dir", type=Path, default=Path("codekg_out"), help="Output directory")
    parser.add_argument(
        "--batch-size",
        type=batch_size_arg,
        default=settings.export_batch_size,
        help=f"Statements per batch (1-{MAX_BATCH_SIZE})",
    )
    parser.add_argument("--no-schema", action="store_true", help="Omit constraints and indexes")
    parser.add_argument("--top-n", type=int, default=settings.report_top_n, help="Length of report rankings")
    parser.add_argument("--cycles", action="store_true", help="Include class dependency cycles")
    parser.add_argument("--impact", help="Method ID to run impact analysis for")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    init_telemetry(service_suffix="-cli")
    try:
        success = run(args)
    finally:
        shutdown_telemetry()
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
