"""
Default performance graph.

    webcam ──┬──> face ──┬──> overlay ──┐
             ├──> hand ──┤              ├──> stage
             └───────────┴──> mapper ───┘

All previews start off.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from .model import DataflowGraph


DEFAULT_NODES = (
    ("webcam", "camera-source"),
    ("face", "face-extract"),
    ("hand", "hand-extract"),
    ("overlay", "landmark-overlay"),
    ("mapper", "gesture-mapper"),
    ("stage", "stage-output"),
)

# (source, output port, target, input port)
DEFAULT_EDGES = (
    ("webcam", "frame", "face", "frame"),
    ("webcam", "timeMs", "face", "timeMs"),
    ("webcam", "frame", "hand", "frame"),
    ("webcam", "timeMs", "hand", "timeMs"),
    ("webcam", "frame", "overlay", "frame"),
    ("face", "landmarks", "overlay", "faceLandmarks"),
    ("hand", "landmarks", "overlay", "handLandmarks"),
    ("face", "metrics", "mapper", "faceMetrics"),
    ("hand", "metrics", "mapper", "handMetrics"),
    ("overlay", "image", "stage", "image"),
    ("mapper", "controls", "stage", "controls"),
)


def build_default_graph(graph: Optional[DataflowGraph] = None) -> Tuple[DataflowGraph, Dict[str, int]]:
    """
    Populate a graph with the default topology.

    An existing graph is cleared first.

    Returns:
        (graph, mapping of default node name -> node id)
    """
    graph = graph if graph is not None else DataflowGraph()
    graph.clear()

    ids = {name: graph.add_node(template_id) for name, template_id in DEFAULT_NODES}
    for source, out_port, target, in_port in DEFAULT_EDGES:
        graph.add_edge(ids[source], out_port, ids[target], in_port)

    return graph, ids
