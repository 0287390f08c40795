"""
Dataflow graph model.

Nodes and edges live in flat tables keyed by stable integer ids. Ids are
handed out in creation order and never reused, so sorting by id is sorting
by creation order.

Invariants:
- The graph is a DAG
- Every input port has at most one incoming edge
- Edges only join type-compatible ports

The graph holds no per-frame numeric state beyond each node's last-output
cache. That cache is written by the frame scheduler only; everything else
gets a read-only view.
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Optional, List, Dict, Any, Iterator, Mapping

from loguru import logger

from kineforge.core.contracts import NodeKind, PortSpec
from kineforge.core.errors import (
    TypeMismatch,
    CycleDetected,
    PortOccupied,
    UnknownNode,
    UnknownPort,
)
from .library import NodeTemplate, get_template


@dataclass
class GraphNode:
    """A node instance spawned from a template."""
    node_id: int
    template: NodeTemplate
    observed: bool = False
    properties: Dict[str, Any] = field(default_factory=dict)

    # Last computed value per output port
    cache: Dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> NodeKind:
        return self.template.kind

    @property
    def title(self) -> str:
        return self.template.title

    def input_port(self, name: str) -> PortSpec:
        for port in self.template.inputs:
            if port.name == name:
                return port
        raise UnknownPort(self.node_id, name)

    def output_port(self, name: str) -> PortSpec:
        for port in self.template.outputs:
            if port.name == name:
                return port
        raise UnknownPort(self.node_id, name)


@dataclass(frozen=True)
class GraphEdge:
    """(source node, output port) -> (target node, input port)."""
    source_id: int
    source_port: str
    target_id: int
    target_port: str


class DataflowGraph:
    """
    Node/edge topology plus per-node output caches.

    Guarantees:
    - topological_order() is deterministic: ties resolve by creation order
    - Rejected edits leave the graph unchanged
    """

    def __init__(self):
        self._nodes: Dict[int, GraphNode] = {}
        self._edges: List[GraphEdge] = []
        self._next_id = 1
        self._order_cache: Optional[List[int]] = None

    # ------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------

    def add_node(self, template_id: str, properties: Optional[Dict[str, Any]] = None) -> int:
        """
        Spawn a node from a library template.

        Args:
            template_id: Library template id (e.g. "face-extract")
            properties: Overrides for the template's default properties

        Returns:
            The new node's id
        """
        template = get_template(template_id)
        node_id = self._next_id
        self._next_id += 1

        props = dict(template.default_properties)
        if properties:
            props.update(properties)

        self._nodes[node_id] = GraphNode(node_id=node_id, template=template, properties=props)
        self._order_cache = None
        logger.debug(f"Added node {node_id} ({template.title})")
        return node_id

    def remove_node(self, node_id: int):
        """Remove a node and every edge touching it."""
        self.node(node_id)
        self._edges = [
            e for e in self._edges
            if e.source_id != node_id and e.target_id != node_id
        ]
        del self._nodes[node_id]
        self._order_cache = None
        logger.debug(f"Removed node {node_id}")

    def node(self, node_id: int) -> GraphNode:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise UnknownNode(node_id) from None

    def nodes(self) -> List[GraphNode]:
        """All nodes in creation order."""
        return [self._nodes[k] for k in sorted(self._nodes)]

    def nodes_of_kind(self, kind: NodeKind) -> List[int]:
        return [n.node_id for n in self.nodes() if n.kind is kind]

    def clear(self):
        """Drop every node and edge. Ids are not reused."""
        self._nodes.clear()
        self._edges.clear()
        self._order_cache = None

    def __contains__(self, node_id: int) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[GraphNode]:
        return iter(self.nodes())

    # ------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------

    def add_edge(self, source_id: int, source_port: str, target_id: int, target_port: str) -> GraphEdge:
        """
        Connect an output port to an input port.

        Raises:
            UnknownNode / UnknownPort: Endpoint does not exist
            TypeMismatch: Port types are incompatible
            CycleDetected: The edge would close a cycle
            PortOccupied: Target input already has an incoming edge
        """
        out_spec = self.node(source_id).output_port(source_port)
        in_spec = self.node(target_id).input_port(target_port)

        if not in_spec.port_type.accepts(out_spec.port_type):
            raise TypeMismatch(out_spec.port_type, in_spec.port_type)

        if source_id == target_id or self._reaches(target_id, source_id):
            raise CycleDetected(source_id, target_id)

        if self.incoming_edge(target_id, target_port) is not None:
            raise PortOccupied(target_id, target_port)

        edge = GraphEdge(source_id, source_port, target_id, target_port)
        self._edges.append(edge)
        self._order_cache = None
        return edge

    def remove_edge(self, target_id: int, target_port: str) -> Optional[GraphEdge]:
        """Disconnect whatever feeds the given input. Returns the removed edge."""
        edge = self.incoming_edge(target_id, target_port)
        if edge is not None:
            self._edges.remove(edge)
            self._order_cache = None
        return edge

    def edges(self) -> List[GraphEdge]:
        return list(self._edges)

    def incoming_edge(self, target_id: int, target_port: str) -> Optional[GraphEdge]:
        for edge in self._edges:
            if edge.target_id == target_id and edge.target_port == target_port:
                return edge
        return None

    def _successors(self, node_id: int) -> List[int]:
        return [e.target_id for e in self._edges if e.source_id == node_id]

    def _reaches(self, start: int, goal: int) -> bool:
        """Depth-first reachability along edge direction."""
        stack = [start]
        seen = set()
        while stack:
            current = stack.pop()
            if current == goal:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._successors(current))
        return False

    # ------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------

    def topological_order(self) -> List[int]:
        """
        Dependency order of all node ids.

        Kahn's algorithm with a min-heap on node id: among nodes whose
        dependencies are resolved, the earliest-created runs first.
        """
        if self._order_cache is None:
            in_degree = {node_id: 0 for node_id in self._nodes}
            for edge in self._edges:
                in_degree[edge.target_id] += 1

            ready = [node_id for node_id, deg in in_degree.items() if deg == 0]
            heapq.heapify(ready)
            order = []
            while ready:
                node_id = heapq.heappop(ready)
                order.append(node_id)
                for succ in self._successors(node_id):
                    in_degree[succ] -= 1
                    if in_degree[succ] == 0:
                        heapq.heappush(ready, succ)

            # add_edge rejects cycles, so every node is placed
            assert len(order) == len(self._nodes)
            self._order_cache = order

        return list(self._order_cache)

    # ------------------------------------------------------------
    # Observation flags
    # ------------------------------------------------------------

    def set_observed(self, node_id: int, observed: bool):
        node = self.node(node_id)
        node.observed = observed
        logger.debug(f"Preview {'on' if observed else 'off'} for node {node_id} ({node.title})")

    def toggle_observed(self, node_id: int) -> bool:
        node = self.node(node_id)
        self.set_observed(node_id, not node.observed)
        return node.observed

    def is_observed(self, node_id: int) -> bool:
        return self.node(node_id).observed

    def observed_nodes(self) -> List[int]:
        """Observed node ids in evaluation order."""
        return [n for n in self.topological_order() if self._nodes[n].observed]

    # ------------------------------------------------------------
    # Output caches
    # ------------------------------------------------------------

    def outputs(self, node_id: int) -> Mapping[str, Any]:
        """Read-only view of a node's last outputs."""
        return MappingProxyType(self.node(node_id).cache)

    def output(self, node_id: int, port: str) -> Any:
        return self.node(node_id).cache.get(port)

    def store_outputs(self, node_id: int, values: Dict[str, Any]):
        """Replace a node's output cache. Called by the frame scheduler only."""
        node = self.node(node_id)
        node.cache = {p.name: values.get(p.name) for p in node.template.outputs}

    def resolve_inputs(self, node_id: int) -> Dict[str, Any]:
        """Upstream cached value for every input port; None when unconnected."""
        node = self.node(node_id)
        resolved = {}
        for port in node.template.inputs:
            edge = self.incoming_edge(node_id, port.name)
            if edge is None:
                resolved[port.name] = None
            else:
                resolved[port.name] = self._nodes[edge.source_id].cache.get(edge.source_port)
        return resolved

    def clear_outputs(self):
        for node in self._nodes.values():
            node.cache = {}
