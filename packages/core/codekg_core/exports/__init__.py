"""Graph export helpers."""

from codekg_core.exports.cypher import (
    CypherBatch,
    CypherExecutor,
    CypherExport,
    ExportError,
    cypher_literal,
    generate_cypher_export,
    publish_export,
)

__all__ = [
    "CypherBatch",
    "CypherExecutor",
    "CypherExport",
    "ExportError",
    "cypher_literal",
    "generate_cypher_export",
    "publish_export",
]
