"""
Preview materializer.

Renders small diagnostic thumbnails for graph nodes, but only for nodes
flagged as observed. Cost is O(observed nodes): unobserved nodes are never
touched, so switching previews off is the main lever under load.

Each preview key has its own draw recipe; all recipes produce the same
thumbnail size and scale sources with the cover rule.
"""

from __future__ import annotations

from typing import Optional, Dict, Callable, Mapping, Any, List
import numpy as np
from numpy.typing import NDArray

from loguru import logger

from kineforge.core.config import PreviewConfig
from kineforge.core.contracts import FrameState, PreviewKey, ControlValues
from kineforge.graph.model import DataflowGraph
from .drawing import blank, cover, draw_face, draw_hands, draw_control_scope, encode_jpeg


PREVIEW_HINTS = {
    PreviewKey.WEBCAM: "Camera preview appears here",
    PreviewKey.FACE: "Face landmarks preview",
    PreviewKey.HAND: "Hand landmarks preview",
    PreviewKey.OVERLAY: "Overlay preview",
    PreviewKey.MAPPER: "Control map scope",
    PreviewKey.STAGE: "Final output mirror",
}

PREVIEW_OFF_HINT = "Preview off"

Recipe = Callable[[Mapping[str, Any], FrameState], NDArray[np.uint8]]


class PreviewMaterializer:
    """
    Lazily renders node previews.

    Reads node output caches through the graph's read-only view; never
    writes to the graph.
    """

    def __init__(self, graph: DataflowGraph, config: Optional[PreviewConfig] = None):
        self.graph = graph
        self.config = config or PreviewConfig()

        self._recipes: Dict[PreviewKey, Recipe] = {
            PreviewKey.WEBCAM: self._draw_webcam,
            PreviewKey.FACE: self._draw_face,
            PreviewKey.HAND: self._draw_hand,
            PreviewKey.OVERLAY: self._draw_overlay,
            PreviewKey.MAPPER: self._draw_mapper,
            PreviewKey.STAGE: self._draw_stage,
        }

        # Total thumbnails drawn since creation
        self.render_count = 0

    @property
    def size(self):
        return (self.config.width, self.config.height)

    def is_observed(self, node_id: int) -> bool:
        return self.graph.is_observed(node_id)

    def materialize(self, node_id: int, state: FrameState) -> Optional[NDArray[np.uint8]]:
        """
        Render one node's preview.

        Returns:
            RGB thumbnail, or None if the node is not observed
        """
        if not self.is_observed(node_id):
            return None

        node = self.graph.node(node_id)
        recipe = self._recipes[node.template.preview_source]
        image = recipe(self.graph.outputs(node_id), state)
        self.render_count += 1
        return image

    def materialize_observed(self, state: FrameState) -> Dict[int, NDArray[np.uint8]]:
        """Previews for every observed node, keyed by node id."""
        previews = {}
        for node_id in self.graph.observed_nodes():
            image = self.materialize(node_id, state)
            if image is not None:
                previews[node_id] = image
        if previews:
            logger.trace(f"Materialized {len(previews)} preview(s)")
        return previews

    def encode(self, image: NDArray[np.uint8]) -> bytes:
        return encode_jpeg(image, self.config.jpeg_quality)

    # ------------------------------------------------------------
    # Recipes
    # ------------------------------------------------------------

    def _base(self, image: Optional[NDArray[np.uint8]]) -> NDArray[np.uint8]:
        w, h = self.size
        covered = cover(image, w, h)
        return covered if covered is not None else blank(w, h)

    def _draw_webcam(self, outputs: Mapping[str, Any], state: FrameState):
        frame = outputs.get("frame")
        return self._base(frame if frame is not None else state.frame)

    def _draw_face(self, outputs: Mapping[str, Any], state: FrameState):
        image = self._base(state.frame)
        faces = outputs.get("landmarks")
        draw_face(image, faces if faces is not None else state.faces)
        return image

    def _draw_hand(self, outputs: Mapping[str, Any], state: FrameState):
        image = self._base(state.frame)
        hands = outputs.get("landmarks")
        draw_hands(image, hands if hands is not None else state.hands)
        return image

    def _draw_overlay(self, outputs: Mapping[str, Any], state: FrameState):
        composed = outputs.get("image")
        if composed is not None:
            return self._base(composed)
        image = self._base(state.frame)
        draw_face(image, state.faces)
        draw_hands(image, state.hands)
        return image

    def _draw_mapper(self, outputs: Mapping[str, Any], state: FrameState):
        controls = outputs.get("controls") or state.controls
        w, h = self.size
        return draw_control_scope(controls, w, h)

    def _draw_stage(self, outputs: Mapping[str, Any], state: FrameState):
        return self._base(state.stage_image)


def format_percent(value: float) -> str:
    return f"{round(max(0.0, min(1.0, value)) * 100)}%"


def node_metric_lines(key: PreviewKey, state: FrameState, radius: float = 0.0) -> List[str]:
    """Short status lines shown on a node card."""
    controls: ControlValues = state.controls
    if key is PreviewKey.WEBCAM:
        return [f"frame: {state.frame_id}", f"fps: {state.fps:.1f}"]
    if key is PreviewKey.FACE:
        return [
            f"faces: {len(state.faces)}",
            f"nose: {controls.tilt:.2f}, {1 - controls.lift:.2f}",
            f"jaw: {controls.jaw:.3f}",
        ]
    if key is PreviewKey.HAND:
        return [
            f"hands: {len(state.hands)}",
            f"pinch: {format_percent(controls.pinch)}",
            f"lift: {controls.lift:.2f}",
        ]
    if key is PreviewKey.OVERLAY:
        return [
            "face mesh on" if state.faces else "face mesh off",
            "hand mesh on" if state.hands else "hand mesh off",
        ]
    if key is PreviewKey.MAPPER:
        return [
            f"tilt: {controls.tilt:.2f}",
            f"lift: {controls.lift:.2f}",
            f"pinch: {controls.pinch:.2f}",
        ]
    return [f"presence: {controls.presence:.2f}", f"radius: {round(radius)}"]
