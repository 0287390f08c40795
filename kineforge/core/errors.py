"""
Error taxonomy.

- AcquisitionError: camera or landmark model unavailable. Halts the live
  session; recoverable by starting again.
- GraphStructureError: rejected graph edits. Reported to the caller of the
  mutating operation; the graph is left unchanged.

Zero detected subjects is NOT an error. It flows through the metric
extractor as neutral default values.
"""


class KineforgeError(Exception):
    """Base class for all engine errors."""


class AcquisitionError(KineforgeError):
    """Camera or detector model could not be acquired."""

    def __init__(self, resource: str, reason: str):
        self.resource = resource
        self.reason = reason
        super().__init__(f"{resource} unavailable: {reason}")


class GraphStructureError(KineforgeError):
    """A graph edit would violate the graph invariants."""


class TypeMismatch(GraphStructureError):
    def __init__(self, source_type, target_type):
        self.source_type = source_type
        self.target_type = target_type
        super().__init__(
            f"Cannot connect {source_type.value} output to {target_type.value} input"
        )


class CycleDetected(GraphStructureError):
    def __init__(self, source_id: int, target_id: int):
        self.source_id = source_id
        self.target_id = target_id
        super().__init__(f"Edge {source_id} -> {target_id} would create a cycle")


class PortOccupied(GraphStructureError):
    def __init__(self, node_id: int, port: str):
        self.node_id = node_id
        self.port = port
        super().__init__(f"Input '{port}' of node {node_id} already has an incoming edge")


class UnknownNode(GraphStructureError):
    def __init__(self, node_id):
        self.node_id = node_id
        super().__init__(f"No node with id {node_id}")


class UnknownPort(GraphStructureError):
    def __init__(self, node_id: int, port: str):
        self.node_id = node_id
        self.port = port
        super().__init__(f"Node {node_id} has no port '{port}'")
