"""Tests for metric extraction and raw control mapping."""

import pytest

from kineforge.core.config import CalibrationConfig
from kineforge.core.contracts import Landmark, SubjectKind, FaceMetrics, HandMetrics
from kineforge.vision.metrics import (
    extract,
    extract_face_metrics,
    extract_hand_metrics,
    map_controls,
    pinch_strength,
    to_landmarks,
)

from .conftest import face_points, hand_points


class TestFaceMetrics:

    def test_no_faces_gives_defaults(self):
        metrics = extract_face_metrics([])
        assert metrics == FaceMetrics(count=0, nose_x=0.5, nose_y=0.5, jaw=0.0)

    def test_nose_tip_is_preferred(self):
        metrics = extract_face_metrics([face_points(nose_x=0.7, nose_y=0.4)])
        assert metrics.count == 1
        assert metrics.nose_x == pytest.approx(0.7)
        assert metrics.nose_y == pytest.approx(0.4)

    def test_nose_falls_back_to_bridge_then_first_point(self):
        # Only 3 points: index 1 exists, so it wins
        short = [Landmark(0.1, 0.1), Landmark(0.2, 0.2), Landmark(0.3, 0.3)]
        assert extract_face_metrics([short]).nose_x == pytest.approx(0.2)

        # Index 1 missing from the preference list: bridge (4) is next
        calibration = CalibrationConfig(nose_indices=(40, 4, 0))
        points = [Landmark(0.1 * i, 0.5) for i in range(6)]
        assert extract_face_metrics([points], calibration).nose_x == pytest.approx(0.4)

        # Neither 40 nor 4 present: first point
        tiny = [Landmark(0.9, 0.8)]
        assert extract_face_metrics([tiny], calibration).nose_x == pytest.approx(0.9)

    def test_jaw_is_lip_gap(self):
        metrics = extract_face_metrics([face_points(lip_gap=0.03)])
        assert metrics.jaw == pytest.approx(0.03)

    def test_jaw_is_clamped(self):
        metrics = extract_face_metrics([face_points(lip_gap=0.4)])
        assert metrics.jaw == pytest.approx(0.085)

    def test_only_first_face_is_used(self):
        metrics = extract_face_metrics([face_points(nose_x=0.2), face_points(nose_x=0.9)])
        assert metrics.count == 2
        assert metrics.nose_x == pytest.approx(0.2)


class TestHandMetrics:

    def test_no_hands_gives_defaults(self):
        metrics = extract_hand_metrics([])
        assert metrics == HandMetrics(count=0, pinch=0.0, palm_y=0.5)
        assert not metrics.tracked

    @pytest.mark.parametrize("distance,expected", [
        (0.2, 0.0),
        (0.125, 0.0),
        (0.04, 1.0),
        (0.01, 1.0),
        (0.0825, 0.5),
    ])
    def test_pinch_window(self, distance, expected):
        assert pinch_strength(distance) == pytest.approx(expected)

    def test_pinch_and_palm(self):
        metrics = extract_hand_metrics([hand_points(pinch_distance=0.04, wrist_y=0.8)])
        assert metrics.tracked
        assert metrics.pinch == pytest.approx(1.0)
        assert metrics.pinch_distance == pytest.approx(0.04)
        assert metrics.palm_y == pytest.approx(0.8)

    def test_short_point_set_keeps_pinch_zero(self):
        metrics = extract_hand_metrics([[Landmark(0.5, 0.3)]])
        assert metrics.count == 1
        assert metrics.pinch == 0.0
        assert metrics.palm_y == pytest.approx(0.3)

    def test_dispatch_on_kind(self):
        assert isinstance(extract(SubjectKind.FACE, []), FaceMetrics)
        assert isinstance(extract(SubjectKind.HAND, []), HandMetrics)


class TestMapControls:

    def test_missing_inputs_are_neutral_except_lift(self):
        controls = map_controls(None, None)
        assert controls.tilt == 0.0
        assert controls.pinch == 0.0
        assert controls.jaw == 0.0
        assert controls.presence == 0.0
        assert controls.lift == pytest.approx(0.5)

    def test_ranges(self):
        controls = map_controls(
            FaceMetrics(count=1, nose_x=1.4, jaw=0.05),
            HandMetrics(count=1, pinch=0.6, palm_y=-0.2),
        )
        assert controls.tilt == pytest.approx(0.5)
        assert controls.lift == pytest.approx(1.0)
        assert controls.pinch == pytest.approx(0.6)
        assert controls.jaw == pytest.approx(0.05)
        assert controls.presence == 1.0

    def test_presence_from_either_subject(self):
        assert map_controls(FaceMetrics(count=1), None).presence == 1.0
        assert map_controls(None, HandMetrics(count=1)).presence == 1.0


def test_to_landmarks_accepts_objects_and_pairs():
    class P:
        def __init__(self, x, y):
            self.x, self.y = x, y

    assert to_landmarks([P(0.1, 0.2), (0.3, 0.4)]) == [Landmark(0.1, 0.2), Landmark(0.3, 0.4)]
