"""Tests for preview materialization and cover scaling."""

import numpy as np
import pytest

from kineforge.core.config import PreviewConfig, StageConfig
from kineforge.core.contracts import ControlValues, FrameState, PreviewKey
from kineforge.graph import build_default_graph
from kineforge.render import PreviewMaterializer, StageRenderer, compute_stage_radius, cover, cover_rect, encode_jpeg
from kineforge.render.preview import node_metric_lines, format_percent
from kineforge.render.drawing import scope_bars

from .conftest import make_frame, face_points, hand_points


@pytest.fixture
def graph_ids():
    return build_default_graph()


@pytest.fixture
def state():
    return FrameState(
        frame_id=3,
        timestamp_ms=99.0,
        frame=make_frame(64, 48),
        faces=[face_points()],
        hands=[hand_points()],
        controls=ControlValues(tilt=0.1, lift=0.4, pinch=0.5, jaw=0.02, presence=1.0),
    )


class TestMaterializer:

    def test_nothing_observed_renders_nothing(self, graph_ids, state):
        graph, _ = graph_ids
        materializer = PreviewMaterializer(graph, PreviewConfig(width=32, height=18))
        assert materializer.materialize_observed(state) == {}
        assert materializer.render_count == 0

    def test_only_observed_nodes_render(self, graph_ids, state):
        graph, ids = graph_ids
        graph.set_observed(ids["mapper"], True)
        materializer = PreviewMaterializer(graph, PreviewConfig(width=32, height=18))

        previews = materializer.materialize_observed(state)
        assert list(previews) == [ids["mapper"]]
        assert previews[ids["mapper"]].shape == (18, 32, 3)
        assert materializer.render_count == 1

    def test_unobserved_node_returns_none(self, graph_ids, state):
        graph, ids = graph_ids
        materializer = PreviewMaterializer(graph)
        assert materializer.materialize(ids["webcam"], state) is None

    def test_every_recipe_produces_thumbnail_size(self, graph_ids, state):
        graph, ids = graph_ids
        for node_id in ids.values():
            graph.set_observed(node_id, True)
        materializer = PreviewMaterializer(graph, PreviewConfig(width=40, height=30))

        previews = materializer.materialize_observed(state)
        assert len(previews) == 6
        for image in previews.values():
            assert image.shape == (30, 40, 3)
            assert image.dtype == np.uint8

    def test_materializer_does_not_write_caches(self, graph_ids, state):
        graph, ids = graph_ids
        graph.set_observed(ids["overlay"], True)
        PreviewMaterializer(graph).materialize_observed(state)
        assert all(len(graph.outputs(n)) == 0 for n in ids.values())

    def test_encode_jpeg(self, graph_ids, state):
        graph, ids = graph_ids
        graph.set_observed(ids["webcam"], True)
        materializer = PreviewMaterializer(graph)
        image = materializer.materialize(ids["webcam"], state)
        data = materializer.encode(image)
        assert data[:2] == b"\xff\xd8"


class TestCover:

    @pytest.mark.parametrize("src,dst", [
        ((1280, 720), (320, 180)),
        ((640, 480), (320, 180)),
        ((480, 640), (320, 180)),
        ((100, 100), (320, 180)),
    ])
    def test_cover_rect_fills_target(self, src, dst):
        dx, dy, dw, dh = cover_rect(*src, *dst)
        assert dw >= dst[0] - 1e-9 and dh >= dst[1] - 1e-9
        assert dw / dh == pytest.approx(src[0] / src[1])
        # Centered: equal overflow on both sides
        assert dx == pytest.approx((dst[0] - dw) / 2)
        assert dy == pytest.approx((dst[1] - dh) / 2)
        assert dx <= 0 and dy <= 0

    def test_cover_exact_size(self):
        image = make_frame(640, 480)
        assert cover(image, 320, 180).shape == (180, 320, 3)
        assert cover(make_frame(180, 400), 320, 180).shape == (180, 320, 3)

    def test_cover_of_none(self):
        assert cover(None, 10, 10) is None

    def test_cover_crops_center(self):
        image = np.zeros((100, 300, 3), dtype=np.uint8)
        image[:, 100:200] = 255
        out = cover(image, 100, 100)
        assert out.mean() > 250


class TestStage:

    def test_render_without_frame(self):
        renderer = StageRenderer(StageConfig(width=96, height=54, show_badge=False))
        image = renderer.render(None, None)
        assert image.shape == (54, 96, 3)
        assert renderer.last_radius >= 24.0

    def test_radius_grows_with_pinch_and_presence(self):
        idle = compute_stage_radius(ControlValues(), 540)
        present = compute_stage_radius(ControlValues(presence=1.0), 540)
        pinched = compute_stage_radius(ControlValues(presence=1.0, pinch=1.0), 540)
        assert idle < present < pinched
        assert pinched <= 540 * 0.46


class TestMetricLines:

    def test_format_percent(self):
        assert format_percent(0.426) == "43%"
        assert format_percent(1.7) == "100%"

    def test_lines_per_key(self, state):
        assert node_metric_lines(PreviewKey.HAND, state)[1] == "pinch: 50%"
        assert node_metric_lines(PreviewKey.WEBCAM, state)[0] == "frame: 3"
        assert node_metric_lines(PreviewKey.STAGE, state, 120.4)[1] == "radius: 120"

    def test_scope_bars_scale_jaw(self):
        bars = dict((label, value) for label, value, _ in scope_bars(ControlValues(tilt=-0.3, jaw=0.02)))
        assert bars["tilt"] == pytest.approx(0.3)
        assert bars["jaw"] == pytest.approx(0.5)


def test_encode_jpeg_roundtrip_shape():
    data = encode_jpeg(make_frame(32, 18), quality=68)
    assert isinstance(data, bytes) and len(data) > 0
