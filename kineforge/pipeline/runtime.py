"""
Runtime context.

One explicit object owns everything that lives across ticks: the camera,
the landmark models, the graph, the smoothing memory and the frame
counters. Lifecycle:

    create -> acquire -> tick* -> release -> dispose

Independent contexts do not share state, so tests can run several side
by side.
"""

from __future__ import annotations

from typing import Optional, Dict, Any, List

from loguru import logger

from kineforge.capture.base import FrameSource
from kineforge.capture.webcam import WebcamSource
from kineforge.core.config import RuntimeConfig
from kineforge.core.contracts import ControlValues, FrameState, SubjectKind
from kineforge.core.errors import AcquisitionError
from kineforge.graph.defaults import build_default_graph
from kineforge.graph.model import DataflowGraph
from kineforge.render.preview import PreviewMaterializer
from kineforge.render.stage import StageRenderer
from kineforge.vision.landmark_source import LandmarkSource, MediaPipeLandmarkSource


class RuntimeContext:
    """
    Owns the per-session resources driven by the frame scheduler.

    The scheduler is the only writer of node output caches and control
    memory; the UI reads through the graph and the snapshot.
    """

    def __init__(
        self,
        config: Optional[RuntimeConfig] = None,
        frame_source: Optional[FrameSource] = None,
        landmark_source: Optional[LandmarkSource] = None,
        graph: Optional[DataflowGraph] = None,
    ):
        self.config = config or RuntimeConfig()
        self.frame_source = frame_source or WebcamSource(self.config.capture)
        self.landmark_source = landmark_source or MediaPipeLandmarkSource(self.config.detector)

        if graph is None:
            graph, _ = build_default_graph()
        self.graph = graph

        self.stage = StageRenderer(self.config.stage)
        self.materializer = PreviewMaterializer(self.graph, self.config.preview)

        # Smoothing memory, one entry per mapper node
        self.memory: Dict[int, ControlValues] = {}
        self.controls = ControlValues.neutral()

        # Counters
        self.frame_count = 0
        self.last_timestamp_ms = 0.0
        self.fps = 0.0
        self.last_state: Optional[FrameState] = None
        self.last_snapshot: Dict[str, Any] = {}
        self.last_snapshot_ms = 0.0

        self._disposed = False

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------

    def acquire(self):
        """
        Load models and open the camera.

        Raises:
            AcquisitionError: If either resource is unavailable
        """
        if self._disposed:
            raise AcquisitionError("runtime", "context already disposed")

        self.landmark_source.start()

        if not self.frame_source.start():
            raise AcquisitionError("camera", "failed to open video capture")

    def release(self):
        """Release the camera and return controls to neutral."""
        self.frame_source.stop()
        self.reset_controls()

    def dispose(self):
        """Release everything, including model handles."""
        if self._disposed:
            return
        self.release()
        self.landmark_source.close()
        self._disposed = True
        logger.info("Runtime disposed")

    def reset_controls(self):
        self.memory.clear()
        self.controls = ControlValues.neutral()
        self.last_timestamp_ms = 0.0
        self.fps = 0.0

    def prune_memory(self):
        """Forget smoothing state of mapper nodes no longer in the graph."""
        for node_id in [n for n in self.memory if n not in self.graph]:
            del self.memory[node_id]

    def reset_graph(self):
        """Rebuild the default graph in place; previews go back to off."""
        build_default_graph(self.graph)
        self.reset_controls()
        logger.info("Graph reset to default layout")

    @property
    def subject_kinds(self) -> List[SubjectKind]:
        return list(self.landmark_source.subject_kinds)

    # ------------------------------------------------------------
    # Timing and diagnostics
    # ------------------------------------------------------------

    def advance_clock(self, timestamp_ms: float) -> float:
        """
        Register a tick timestamp and update the fps estimate.

        Returns:
            The timestamp clamped to be non-decreasing
        """
        timestamp_ms = max(timestamp_ms, self.last_timestamp_ms)
        delta = timestamp_ms - self.last_timestamp_ms if self.last_timestamp_ms > 0 else 0.0
        self.fps = 1000.0 / delta if delta > 0 else 0.0
        self.last_timestamp_ms = timestamp_ms
        self.frame_count += 1
        return timestamp_ms

    def build_snapshot(self, state: FrameState) -> Dict[str, Any]:
        """Debug payload describing the latest tick."""
        active = [
            f"{self.graph.node(n).title} ({n})" for n in self.graph.observed_nodes()
        ]
        return {
            "frame": self.frame_count,
            "fps": round(self.fps, 2),
            "activePreviewNodes": active,
            "face": {
                "count": len(state.faces),
                "jaw": round(state.controls.jaw, 4),
            },
            "hand": {
                "count": len(state.hands),
                "pinch": round(state.controls.pinch, 4),
                "lift": round(state.controls.lift, 4),
                "pinchDistance": round(state.hand_metrics.pinch_distance, 4),
            },
            "controls": state.controls.as_dict(),
        }
