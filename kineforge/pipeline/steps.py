"""
Per-node compute steps.

Each graph template maps to one step: given the node, its resolved inputs
and the tick context, return a value for every output port. Steps never
touch the graph; the scheduler stores what they return.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Any, Callable, List, Optional
import numpy as np
from numpy.typing import NDArray

from kineforge.core.config import CalibrationConfig, SmoothingConfig
from kineforge.core.contracts import (
    SubjectKind,
    SubjectPointSet,
    ControlValues,
    FaceMetrics,
    HandMetrics,
)
from kineforge.graph.model import GraphNode
from kineforge.render.drawing import draw_face, draw_hands
from kineforge.tracking.control_smoother import smooth
from kineforge.vision.metrics import extract_face_metrics, extract_hand_metrics, map_controls


@dataclass
class TickContext:
    """Everything a step may read for the current tick."""
    frame_id: int
    timestamp_ms: float
    frame: Optional[NDArray[np.uint8]]

    # Landmark source results for this tick's frame, one entry per kind
    detections: Dict[SubjectKind, List[SubjectPointSet]] = field(default_factory=dict)

    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)

    # Smoothed controls per mapper node, carried across ticks
    memory: Dict[int, ControlValues] = field(default_factory=dict)


Step = Callable[[GraphNode, Dict[str, Any], TickContext], Dict[str, Any]]


def camera_source(node: GraphNode, inputs: Dict[str, Any], tick: TickContext) -> Dict[str, Any]:
    return {"frame": tick.frame, "timeMs": tick.timestamp_ms}


def face_extract(node: GraphNode, inputs: Dict[str, Any], tick: TickContext) -> Dict[str, Any]:
    if inputs.get("frame") is None:
        return {"landmarks": None, "metrics": None}
    faces = tick.detections.get(SubjectKind.FACE, [])
    return {"landmarks": faces, "metrics": extract_face_metrics(faces, tick.calibration)}


def hand_extract(node: GraphNode, inputs: Dict[str, Any], tick: TickContext) -> Dict[str, Any]:
    if inputs.get("frame") is None:
        return {"landmarks": None, "metrics": None}
    hands = tick.detections.get(SubjectKind.HAND, [])
    return {"landmarks": hands, "metrics": extract_hand_metrics(hands, tick.calibration)}


def landmark_overlay(node: GraphNode, inputs: Dict[str, Any], tick: TickContext) -> Dict[str, Any]:
    frame = inputs.get("frame")
    if frame is None:
        return {"image": None}

    image = frame.copy()
    if node.properties.get("show_face", True):
        draw_face(image, inputs.get("faceLandmarks"), radius=1.6)
    if node.properties.get("show_hands", True):
        draw_hands(image, inputs.get("handLandmarks"), radius=2.4)
    return {"image": image}


def gesture_mapper(node: GraphNode, inputs: Dict[str, Any], tick: TickContext) -> Dict[str, Any]:
    face: Optional[FaceMetrics] = inputs.get("faceMetrics")
    hand: Optional[HandMetrics] = inputs.get("handMetrics")

    raw = map_controls(face, hand)
    previous = tick.memory.get(node.node_id, ControlValues.neutral())
    hand_tracked = hand is not None and hand.count > 0

    controls = smooth(previous, raw, hand_tracked, tick.smoothing)
    tick.memory[node.node_id] = controls
    return {"controls": controls}


def stage_output(node: GraphNode, inputs: Dict[str, Any], tick: TickContext) -> Dict[str, Any]:
    # Sink: the scheduler hands its inputs to the stage renderer
    return {}


STEPS: Dict[str, Step] = {
    "camera-source": camera_source,
    "face-extract": face_extract,
    "hand-extract": hand_extract,
    "landmark-overlay": landmark_overlay,
    "gesture-mapper": gesture_mapper,
    "stage-output": stage_output,
}


def get_step(template_id: str) -> Step:
    if template_id not in STEPS:
        available = ", ".join(STEPS.keys())
        raise ValueError(f"No compute step for '{template_id}'. Available: {available}")
    return STEPS[template_id]
