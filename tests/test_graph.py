"""Tests for the dataflow graph model."""

import pytest

from kineforge.core.contracts import NodeKind
from kineforge.core.errors import (
    TypeMismatch,
    CycleDetected,
    PortOccupied,
    UnknownNode,
    UnknownPort,
)
from kineforge.graph import DataflowGraph, build_default_graph, search_templates, get_template
from kineforge.graph.defaults import DEFAULT_EDGES


def snapshot(graph):
    return [n.node_id for n in graph.nodes()], graph.edges()


class TestTopologicalOrder:

    def test_default_graph_order(self):
        graph, ids = build_default_graph()
        order = graph.topological_order()
        assert order == [ids[n] for n in ("webcam", "face", "hand", "overlay", "mapper", "stage")]

    def test_every_edge_respects_order(self):
        graph, _ = build_default_graph()
        position = {n: i for i, n in enumerate(graph.topological_order())}
        for edge in graph.edges():
            assert position[edge.source_id] < position[edge.target_id]

    def test_ties_resolve_by_creation_order(self):
        graph = DataflowGraph()
        mapper = graph.add_node("gesture-mapper")
        hand = graph.add_node("hand-extract")
        face = graph.add_node("face-extract")
        graph.add_edge(face, "metrics", mapper, "faceMetrics")
        graph.add_edge(hand, "metrics", mapper, "handMetrics")
        assert graph.topological_order() == [hand, face, mapper]

    def test_order_is_stable_across_calls(self):
        graph, _ = build_default_graph()
        assert graph.topological_order() == graph.topological_order()

    def test_order_updates_after_edit(self):
        graph, ids = build_default_graph()
        graph.remove_node(ids["overlay"])
        assert ids["overlay"] not in graph.topological_order()
        assert len(graph.topological_order()) == 5


class TestEdges:

    def test_type_mismatch(self):
        graph = DataflowGraph()
        face = graph.add_node("face-extract")
        overlay = graph.add_node("landmark-overlay")
        before = snapshot(graph)
        with pytest.raises(TypeMismatch):
            graph.add_edge(face, "metrics", overlay, "faceLandmarks")
        assert snapshot(graph) == before

    def test_cycle_rejected_and_graph_unchanged(self):
        graph = DataflowGraph()
        a = graph.add_node("landmark-overlay")
        b = graph.add_node("landmark-overlay")
        graph.add_edge(a, "image", b, "frame")
        before = snapshot(graph)
        with pytest.raises(CycleDetected):
            graph.add_edge(b, "image", a, "frame")
        assert snapshot(graph) == before

    def test_self_loop_rejected(self):
        graph = DataflowGraph()
        a = graph.add_node("landmark-overlay")
        with pytest.raises(CycleDetected):
            graph.add_edge(a, "image", a, "frame")
        assert graph.edges() == []

    def test_port_occupied(self):
        graph = DataflowGraph()
        cam1 = graph.add_node("camera-source")
        cam2 = graph.add_node("camera-source")
        face = graph.add_node("face-extract")
        graph.add_edge(cam1, "frame", face, "frame")
        with pytest.raises(PortOccupied):
            graph.add_edge(cam2, "frame", face, "frame")
        assert len(graph.edges()) == 1

    def test_output_fans_out(self):
        graph, ids = build_default_graph()
        fan = [e for e in graph.edges() if e.source_id == ids["webcam"] and e.source_port == "frame"]
        assert len(fan) == 3

    def test_unknown_endpoints(self):
        graph = DataflowGraph()
        cam = graph.add_node("camera-source")
        with pytest.raises(UnknownNode):
            graph.add_edge(cam, "frame", 99, "frame")
        face = graph.add_node("face-extract")
        with pytest.raises(UnknownPort):
            graph.add_edge(cam, "nope", face, "frame")

    def test_remove_edge_frees_port(self):
        graph, ids = build_default_graph()
        removed = graph.remove_edge(ids["stage"], "image")
        assert removed is not None
        assert graph.incoming_edge(ids["stage"], "image") is None
        graph.add_edge(ids["webcam"], "frame", ids["stage"], "image")


class TestNodes:

    def test_ids_are_never_reused(self):
        graph = DataflowGraph()
        a = graph.add_node("camera-source")
        graph.remove_node(a)
        b = graph.add_node("camera-source")
        assert b > a

    def test_remove_node_drops_edges(self):
        graph, ids = build_default_graph()
        graph.remove_node(ids["webcam"])
        assert all(ids["webcam"] not in (e.source_id, e.target_id) for e in graph.edges())
        with pytest.raises(UnknownNode):
            graph.node(ids["webcam"])

    def test_properties_override_defaults(self):
        graph = DataflowGraph()
        node = graph.add_node("landmark-overlay", {"show_face": False})
        assert graph.node(node).properties == {"show_face": False, "show_hands": True}

    def test_unknown_template(self):
        with pytest.raises(ValueError):
            DataflowGraph().add_node("laser-cannon")

    def test_observed_flags_default_off(self):
        graph, ids = build_default_graph()
        assert graph.observed_nodes() == []
        assert graph.toggle_observed(ids["mapper"]) is True
        graph.set_observed(ids["webcam"], True)
        assert graph.observed_nodes() == [ids["webcam"], ids["mapper"]]

    def test_nodes_of_kind(self):
        graph, ids = build_default_graph()
        assert graph.nodes_of_kind(NodeKind.SINK) == [ids["stage"]]
        assert graph.nodes_of_kind(NodeKind.EXTRACTOR) == [ids["face"], ids["hand"]]


class TestOutputCaches:

    def test_resolve_inputs_reads_upstream_cache(self):
        graph, ids = build_default_graph()
        graph.store_outputs(ids["webcam"], {"frame": "F", "timeMs": 12.0})
        assert graph.resolve_inputs(ids["face"]) == {"frame": "F", "timeMs": 12.0}

    def test_unconnected_input_resolves_to_none(self):
        graph = DataflowGraph()
        face = graph.add_node("face-extract")
        assert graph.resolve_inputs(face) == {"frame": None, "timeMs": None}

    def test_outputs_view_is_read_only(self):
        graph, ids = build_default_graph()
        graph.store_outputs(ids["webcam"], {"frame": "F"})
        view = graph.outputs(ids["webcam"])
        with pytest.raises(TypeError):
            view["frame"] = "G"

    def test_store_keeps_declared_ports_only(self):
        graph, ids = build_default_graph()
        graph.store_outputs(ids["mapper"], {"controls": 1, "junk": 2})
        assert dict(graph.outputs(ids["mapper"])) == {"controls": 1}


class TestDefaultsAndLibrary:

    def test_default_graph_shape(self):
        graph, ids = build_default_graph()
        assert len(graph) == 6
        assert len(graph.edges()) == len(DEFAULT_EDGES) == 11
        links = {(e.source_id, e.target_id) for e in graph.edges()}
        assert len(links) == 9

    def test_rebuild_clears_previous_state(self):
        graph, ids = build_default_graph()
        graph.set_observed(ids["stage"], True)
        graph.add_node("camera-source")
        graph, new_ids = build_default_graph(graph)
        assert len(graph) == 6
        assert graph.observed_nodes() == []
        assert min(new_ids.values()) > max(ids.values())

    def test_search_templates(self):
        assert [t.template_id for t in search_templates("pinch")] == ["hand-extract"]
        assert len(search_templates("")) == 6
        assert search_templates("OUTPUT")[0].template_id == "stage-output"
        assert search_templates("zzz") == []

    def test_get_template_lists_available(self):
        with pytest.raises(ValueError, match="camera-source"):
            get_template("missing")
