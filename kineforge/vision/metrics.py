"""
Metric extraction.

Pure functions reducing landmark point sets to a handful of scalars.
No subjects this frame is a normal input: every metric then takes its
documented default (nose 0.5/0.5, jaw 0, pinch 0, palm 0.5).
"""

from __future__ import annotations

import math
from typing import Optional, Sequence, List, Union

from kineforge.core.config import CalibrationConfig
from kineforge.core.contracts import (
    Landmark,
    SubjectKind,
    SubjectPointSet,
    FaceMetrics,
    HandMetrics,
    ControlValues,
)


DEFAULT_CALIBRATION = CalibrationConfig()


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def distance_2d(a: Optional[Landmark], b: Optional[Landmark]) -> float:
    """Euclidean distance; 0 when either point is missing."""
    if a is None or b is None:
        return 0.0
    return math.hypot(a.x - b.x, a.y - b.y)


def landmark_at(points: Sequence[Optional[Landmark]], index: int) -> Optional[Landmark]:
    if 0 <= index < len(points):
        return points[index]
    return None


def first_landmark(points: Sequence[Optional[Landmark]], indices: Sequence[int]) -> Optional[Landmark]:
    """First present landmark from a preference list of indices."""
    for index in indices:
        point = landmark_at(points, index)
        if point is not None:
            return point
    return None


def pinch_strength(distance: float, calibration: CalibrationConfig = DEFAULT_CALIBRATION) -> float:
    """
    Map a thumb-index distance onto [0, 1].

    open_distance and above -> 0, closed_distance and below -> 1, linear between.
    """
    window = calibration.pinch_open_distance - calibration.pinch_closed_distance
    if window <= 0:
        return 1.0 if distance <= calibration.pinch_closed_distance else 0.0
    return clamp((calibration.pinch_open_distance - distance) / window)


def extract_face_metrics(
    faces: Sequence[SubjectPointSet],
    calibration: CalibrationConfig = DEFAULT_CALIBRATION,
) -> FaceMetrics:
    metrics = FaceMetrics(count=len(faces))
    if not faces:
        return metrics

    primary = faces[0]
    nose = first_landmark(primary, calibration.nose_indices)
    if nose is not None:
        metrics.nose_x = nose.x
        metrics.nose_y = nose.y

    lip_gap = distance_2d(
        landmark_at(primary, calibration.upper_lip_index),
        landmark_at(primary, calibration.lower_lip_index),
    )
    metrics.jaw = clamp(lip_gap, 0.0, calibration.jaw_max)
    return metrics


def extract_hand_metrics(
    hands: Sequence[SubjectPointSet],
    calibration: CalibrationConfig = DEFAULT_CALIBRATION,
) -> HandMetrics:
    metrics = HandMetrics(count=len(hands))
    if not hands:
        return metrics

    primary = hands[0]
    thumb_tip = landmark_at(primary, calibration.thumb_tip_index)
    index_tip = landmark_at(primary, calibration.index_tip_index)
    if thumb_tip is not None and index_tip is not None:
        metrics.pinch_distance = distance_2d(thumb_tip, index_tip)
        metrics.pinch = pinch_strength(metrics.pinch_distance, calibration)

    wrist = landmark_at(primary, calibration.wrist_index)
    if wrist is not None:
        metrics.palm_y = wrist.y
    return metrics


def extract(
    kind: SubjectKind,
    point_sets: Sequence[SubjectPointSet],
    calibration: CalibrationConfig = DEFAULT_CALIBRATION,
) -> Union[FaceMetrics, HandMetrics]:
    """Dispatch on subject kind."""
    if kind is SubjectKind.FACE:
        return extract_face_metrics(point_sets, calibration)
    return extract_hand_metrics(point_sets, calibration)


def map_controls(face: Optional[FaceMetrics], hand: Optional[HandMetrics]) -> ControlValues:
    """
    Raw (unsmoothed) control vector from face and hand metrics.

    Missing inputs behave like untracked subjects.
    """
    face = face or FaceMetrics()
    hand = hand or HandMetrics()
    return ControlValues(
        tilt=clamp(face.nose_x - 0.5, -0.5, 0.5),
        lift=clamp(1.0 - hand.palm_y),
        pinch=clamp(hand.pinch),
        jaw=max(0.0, face.jaw),
        presence=1.0 if (face.count > 0 or hand.count > 0) else 0.0,
    )


def to_landmarks(points) -> List[Landmark]:
    """Copy any sequence of objects with .x/.y (or (x, y) pairs) into Landmarks."""
    copied = []
    for p in points:
        if hasattr(p, "x"):
            copied.append(Landmark(float(p.x), float(p.y)))
        else:
            copied.append(Landmark(float(p[0]), float(p[1])))
    return copied
