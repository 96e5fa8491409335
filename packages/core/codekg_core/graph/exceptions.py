"""Graph-specific exceptions."""


class GraphError(Exception):
    """Base class for code graph errors."""

    pass


class DanglingReferenceError(GraphError):
    """Raised when an edge references a node that is not in the graph.

    The offending edge is rejected; the graph is left unchanged.
    """

    def __init__(self, edge_id: str, missing_id: str) -> None:
        super().__init__(f"Edge {edge_id!r} references missing node {missing_id!r}")
        self.edge_id = edge_id
        self.missing_id = missing_id


class DuplicateNodeError(GraphError):
    """Raised when adding a node whose id is already present."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node {node_id!r} already exists")
        self.node_id = node_id


class NodeNotFoundError(GraphError):
    """Raised when an operation names a node that is not in the graph."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node {node_id!r} not found")
        self.node_id = node_id


class FactValidationError(GraphError):
    """Raised when a file's structural facts are malformed or inconsistent.

    This can happen when:
    - A method names an owner class not declared in the same file
    - A call site names a caller method not declared in the same file
    - The fact payload fails schema validation
    """

    def __init__(self, file_path: str, reason: str) -> None:
        super().__init__(f"{file_path}: {reason}")
        self.file_path = file_path
        self.reason = reason
