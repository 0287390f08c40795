"""Shared fixtures: scripted camera and landmark sources."""

from __future__ import annotations

from typing import List, Optional, Sequence, Dict

import numpy as np
import pytest

from kineforge.capture.base import FrameSource
from kineforge.core.config import RuntimeConfig, StageConfig, PreviewConfig
from kineforge.core.contracts import Landmark, SubjectKind, SubjectPointSet
from kineforge.core.errors import AcquisitionError
from kineforge.pipeline import RuntimeContext, FrameScheduler, FrameCallbackQueue
from kineforge.vision.landmark_source import LandmarkSource


def make_frame(width: int = 64, height: int = 48, value: int = 90) -> np.ndarray:
    return np.full((height, width, 3), value, dtype=np.uint8)


def face_points(nose_x: float = 0.5, nose_y: float = 0.5, lip_gap: float = 0.0) -> SubjectPointSet:
    """A 478-point face with the nose tip and lips placed explicitly."""
    points = [Landmark(0.5, 0.5) for _ in range(478)]
    points[1] = Landmark(nose_x, nose_y)
    points[13] = Landmark(0.5, 0.6)
    points[14] = Landmark(0.5, 0.6 + lip_gap)
    return points


def hand_points(pinch_distance: float = 0.2, wrist_y: float = 0.5) -> SubjectPointSet:
    """A 21-point hand with thumb and index tips a given distance apart."""
    points = [Landmark(0.4, 0.4) for _ in range(21)]
    points[0] = Landmark(0.5, wrist_y)
    points[4] = Landmark(0.3, 0.3)
    points[8] = Landmark(0.3 + pinch_distance, 0.3)
    return points


class ScriptedFrameSource(FrameSource):
    """Returns a fixed frame at a fixed 33 ms cadence; `None` entries skip."""

    def __init__(self, frames: Optional[Sequence[Optional[np.ndarray]]] = None,
                 start_ok: bool = True, interval_ms: float = 33.0):
        self.frames = list(frames) if frames is not None else None
        self.start_ok = start_ok
        self.interval_ms = interval_ms
        self.running = False
        self.start_calls = 0
        self.stop_calls = 0
        self._index = 0

    def start(self) -> bool:
        self.start_calls += 1
        self.running = self.start_ok
        return self.start_ok

    def stop(self) -> None:
        self.stop_calls += 1
        self.running = False

    def read_frame(self):
        self._index += 1
        timestamp = self._index * self.interval_ms
        if self.frames is None:
            return make_frame(), timestamp, self._index
        if self._index > len(self.frames):
            return self.frames[-1], timestamp, self._index
        return self.frames[self._index - 1], timestamp, self._index

    @property
    def resolution(self):
        return (64, 48)

    @property
    def is_running(self) -> bool:
        return self.running


class ScriptedLandmarkSource(LandmarkSource):
    """Plays back per-tick detections. Past the end the last entry repeats."""

    def __init__(self, script: Optional[List[Dict[SubjectKind, List[SubjectPointSet]]]] = None,
                 fail_start: bool = False, fail_detect: bool = False):
        self.script = script or []
        self.fail_start = fail_start
        self.fail_detect = fail_detect
        self.calls: List[tuple] = []
        self.closed = False
        self._ticks: Dict[SubjectKind, int] = {}

    def start(self) -> None:
        if self.fail_start:
            raise AcquisitionError("face model", "scripted failure")

    def detect(self, frame, timestamp_ms, kind):
        if self.fail_detect:
            raise RuntimeError("detector crashed")
        self.calls.append((timestamp_ms, kind))
        tick = self._ticks.get(kind, 0)
        self._ticks[kind] = tick + 1
        if not self.script:
            return []
        entry = self.script[min(tick, len(self.script) - 1)]
        return entry.get(kind, [])

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def small_config() -> RuntimeConfig:
    return RuntimeConfig(
        stage=StageConfig(width=96, height=54, show_badge=False),
        preview=PreviewConfig(width=32, height=18),
    )


@pytest.fixture
def make_scheduler(small_config):
    """Factory returning (scheduler, runtime, callback queue)."""
    def factory(frame_source=None, landmark_source=None, config=None, on_status=None):
        runtime = RuntimeContext(
            config or small_config,
            frame_source=frame_source or ScriptedFrameSource(),
            landmark_source=landmark_source or ScriptedLandmarkSource(),
        )
        queue = FrameCallbackQueue()
        return FrameScheduler(runtime, queue.request, on_status), runtime, queue
    return factory
