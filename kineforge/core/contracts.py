"""
Core data contracts for the Kineforge engine.

All components must adhere to these contracts for:
- Type safety across node ports
- Deterministic behavior
- Temporal consistency of control values
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, List, Dict, Tuple
import numpy as np
from numpy.typing import NDArray


# ============================================================
# ENUMERATIONS
# ============================================================

class SubjectKind(Enum):
    """Kind of tracked subject returned by the landmark source."""
    FACE = "face"
    HAND = "hand"


class NodeKind(Enum):
    """Role of a node inside the dataflow graph."""
    SOURCE = "source"
    EXTRACTOR = "extract"
    COMPOSITOR = "compose"
    MAPPER = "map"
    SINK = "output"


class PortType(Enum):
    """Value type carried by a node port."""
    IMAGE = "image"
    TIMESTAMP = "timestamp"
    FACE_LANDMARKS = "face_landmarks"
    HAND_LANDMARKS = "hand_landmarks"
    FACE_METRICS = "face_metrics"
    HAND_METRICS = "hand_metrics"
    CONTROLS = "controls"

    def accepts(self, other: PortType) -> bool:
        """Check whether an input of this type can receive `other`."""
        return self is other


class PreviewKey(Enum):
    """Draw recipe used when a node's preview is materialized."""
    WEBCAM = "webcam"
    FACE = "face"
    HAND = "hand"
    OVERLAY = "overlay"
    MAPPER = "mapper"
    STAGE = "stage"


class SchedulerState(Enum):
    """Frame scheduler lifecycle states."""
    IDLE = "idle"
    LOADING = "loading"
    LIVE = "live"
    ERROR = "error"


# ============================================================
# LANDMARKS AND METRICS
# ============================================================

@dataclass(frozen=True)
class Landmark:
    """A normalized 2-D point, x and y in [0, 1] relative to the frame."""
    x: float
    y: float

    def to_pixels(self, width: int, height: int) -> Tuple[int, int]:
        return (int(round(self.x * width)), int(round(self.y * height)))


# One tracked instance (one face or one hand); length fixed by subject kind
SubjectPointSet = List[Landmark]


@dataclass
class FaceMetrics:
    """Per-frame face summary. Defaults describe an untracked face."""
    count: int = 0
    nose_x: float = 0.5
    nose_y: float = 0.5
    jaw: float = 0.0


@dataclass
class HandMetrics:
    """Per-frame hand summary. Defaults describe an untracked hand."""
    count: int = 0
    pinch: float = 0.0
    palm_y: float = 0.5
    pinch_distance: float = 0.0

    @property
    def tracked(self) -> bool:
        return self.count > 0


@dataclass
class ControlValues:
    """
    Canonical control vector driving the reactive output.

    Ranges:
    - tilt: [-0.5, 0.5]
    - lift: [0, 1]
    - pinch: [0, 1]
    - jaw: [0, jaw_max]
    - presence: [0, 1]
    """
    tilt: float = 0.0
    lift: float = 0.0
    pinch: float = 0.0
    jaw: float = 0.0
    presence: float = 0.0

    CHANNELS = ("tilt", "lift", "pinch", "jaw", "presence")

    @classmethod
    def neutral(cls) -> ControlValues:
        return cls()

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)

    def max_abs_difference(self, other: ControlValues) -> float:
        return max(abs(getattr(self, c) - getattr(other, c)) for c in self.CHANNELS)


# ============================================================
# GRAPH PORTS
# ============================================================

@dataclass(frozen=True)
class PortSpec:
    """A named, typed port on a node."""
    name: str
    port_type: PortType


# ============================================================
# TICK DATA
# ============================================================

@dataclass
class FrameState:
    """
    Everything the preview recipes may read for one tick.

    Read-only for consumers; assembled by the scheduler after the graph walk.
    """
    frame_id: int
    timestamp_ms: float
    frame: Optional[NDArray[np.uint8]] = None  # H x W x 3, RGB
    faces: List[SubjectPointSet] = field(default_factory=list)
    hands: List[SubjectPointSet] = field(default_factory=list)
    face_metrics: FaceMetrics = field(default_factory=FaceMetrics)
    hand_metrics: HandMetrics = field(default_factory=HandMetrics)
    controls: ControlValues = field(default_factory=ControlValues)
    stage_image: Optional[NDArray[np.uint8]] = None
    fps: float = 0.0


@dataclass
class TickResult:
    """Outcome of a single scheduler tick."""
    frame_id: int
    timestamp_ms: float

    # Ordered node ids evaluated this tick
    evaluated: List[int] = field(default_factory=list)

    controls: ControlValues = field(default_factory=ControlValues)
    stage_image: Optional[NDArray[np.uint8]] = None
    previews: Dict[int, NDArray[np.uint8]] = field(default_factory=dict)

    # Performance
    latency_ms: float = 0.0
    fps: float = 0.0

    # Tick skipped because no frame was available yet
    skipped: bool = False
    skip_reason: Optional[str] = None
