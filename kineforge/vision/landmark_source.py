"""
Landmark sources.

A landmark source turns one RGB frame plus a timestamp into zero or more
ordered point sets per subject kind. The detector model itself is an
external collaborator; this module only wraps it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence
import numpy as np
from numpy.typing import NDArray
from loguru import logger

try:
    import mediapipe as mp
    from mediapipe.tasks import python as mp_tasks
    from mediapipe.tasks.python import vision as mp_vision
    MEDIAPIPE_AVAILABLE = True
except ImportError:
    MEDIAPIPE_AVAILABLE = False
    logger.warning("MediaPipe not available")

from kineforge.core.config import DetectorConfig, FACE_MODEL_URL, HAND_MODEL_URL
from kineforge.core.contracts import SubjectKind, SubjectPointSet
from kineforge.core.errors import AcquisitionError
from .metrics import to_landmarks


class LandmarkSource(ABC):
    """Abstract landmark detector.

    detect() is called once per subject kind per tick, all with the same
    monotonically non-decreasing timestamp.
    """

    @abstractmethod
    def start(self) -> None:
        """Load models.

        Raises:
            AcquisitionError: If a model cannot be loaded
        """

    @abstractmethod
    def detect(
        self,
        frame: NDArray[np.uint8],
        timestamp_ms: float,
        kind: SubjectKind,
    ) -> List[SubjectPointSet]:
        """Detect subjects of one kind.

        Args:
            frame: RGB frame (H x W x 3)
            timestamp_ms: Frame timestamp in milliseconds
            kind: Subject kind to detect

        Returns:
            One point set per tracked instance; empty when nothing is tracked
        """

    @abstractmethod
    def close(self) -> None:
        """Release model handles."""

    @property
    def is_ready(self) -> bool:
        return True

    @property
    def subject_kinds(self) -> Sequence[SubjectKind]:
        return (SubjectKind.FACE, SubjectKind.HAND)


class MediaPipeLandmarkSource(LandmarkSource):
    """
    Face and hand landmarks via the MediaPipe Tasks landmarkers.

    Runs both landmarkers in VIDEO mode, which demands strictly increasing
    timestamps per landmarker; repeated timestamps are nudged forward 1 ms.
    """

    def __init__(self, config: Optional[DetectorConfig] = None):
        self.config = config or DetectorConfig()
        self._landmarkers: Dict[SubjectKind, object] = {}
        self._last_timestamp: Dict[SubjectKind, int] = {}
        self._kinds = tuple(SubjectKind(k) for k in self.config.subject_kinds)

    @property
    def subject_kinds(self) -> Sequence[SubjectKind]:
        return self._kinds

    @property
    def is_ready(self) -> bool:
        return len(self._landmarkers) == len(self._kinds)

    def start(self) -> None:
        if self.is_ready:
            return
        if not MEDIAPIPE_AVAILABLE:
            raise AcquisitionError("landmark models", "mediapipe is not installed")

        for kind in self._kinds:
            if kind not in self._landmarkers:
                self._landmarkers[kind] = self._create(kind)

        logger.info(f"Landmark models ready: {', '.join(k.value for k in self._kinds)}")

    def _create(self, kind: SubjectKind):
        if kind is SubjectKind.FACE:
            path, url = self.config.face_model_path, FACE_MODEL_URL
        else:
            path, url = self.config.hand_model_path, HAND_MODEL_URL

        if not Path(path).exists():
            raise AcquisitionError(f"{kind.value} model", f"{path} not found (download from {url})")

        base_options = mp_tasks.BaseOptions(model_asset_path=str(path))
        try:
            if kind is SubjectKind.FACE:
                options = mp_vision.FaceLandmarkerOptions(
                    base_options=base_options,
                    running_mode=mp_vision.RunningMode.VIDEO,
                    num_faces=self.config.max_faces,
                )
                landmarker = mp_vision.FaceLandmarker.create_from_options(options)
            else:
                options = mp_vision.HandLandmarkerOptions(
                    base_options=base_options,
                    running_mode=mp_vision.RunningMode.VIDEO,
                    num_hands=self.config.max_hands,
                )
                landmarker = mp_vision.HandLandmarker.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            raise AcquisitionError(f"{kind.value} model", str(e)) from e

        logger.info(f"Loaded {kind.value} landmarker from {path}")
        return landmarker

    def _next_timestamp(self, kind: SubjectKind, timestamp_ms: float) -> int:
        ts = int(timestamp_ms)
        last = self._last_timestamp.get(kind)
        if last is not None and ts <= last:
            ts = last + 1
        self._last_timestamp[kind] = ts
        return ts

    def detect(
        self,
        frame: NDArray[np.uint8],
        timestamp_ms: float,
        kind: SubjectKind,
    ) -> List[SubjectPointSet]:
        landmarker = self._landmarkers.get(kind)
        if landmarker is None:
            return []

        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=np.ascontiguousarray(frame))
        result = landmarker.detect_for_video(image, self._next_timestamp(kind, timestamp_ms))

        if kind is SubjectKind.FACE:
            point_sets = result.face_landmarks or []
        else:
            point_sets = result.hand_landmarks or []

        return [to_landmarks(points) for points in point_sets]

    def close(self) -> None:
        for kind, landmarker in self._landmarkers.items():
            landmarker.close()
            logger.debug(f"Closed {kind.value} landmarker")
        self._landmarkers.clear()
        self._last_timestamp.clear()
