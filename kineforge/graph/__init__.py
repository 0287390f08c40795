"""
Dataflow Graph Module.

Responsibilities:
- Node/edge/port topology with typed ports
- Deterministic topological ordering
- Per-node observed flags and last-output caches
"""

from .model import DataflowGraph, GraphNode, GraphEdge
from .library import NodeTemplate, NODE_LIBRARY, get_template, search_templates
from .defaults import build_default_graph
