"""
Core contracts, configuration and errors.

Tick execution order (NEVER REORDER):
1. Acquire the newest frame (skip the tick if none is ready)
2. Run the landmark source once per subject kind, same timestamp
3. Walk the dataflow graph in topological order
4. Smooth controls inside the mapper step
5. Hand the sink's inputs to the stage renderer
6. Materialize previews for observed nodes only
"""

from .contracts import (
    Landmark,
    SubjectKind,
    FaceMetrics,
    HandMetrics,
    ControlValues,
    NodeKind,
    PortType,
    PortSpec,
    PreviewKey,
    SchedulerState,
    FrameState,
    TickResult,
)
from .errors import (
    KineforgeError,
    AcquisitionError,
    GraphStructureError,
    TypeMismatch,
    CycleDetected,
    PortOccupied,
    UnknownNode,
    UnknownPort,
)
