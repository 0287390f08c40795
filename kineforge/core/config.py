"""
Runtime configuration.

Defaults live in the dataclasses below; `load_config` overlays values from
a YAML file (see config/settings.yaml). Calibration thresholds are tuned
empirically and belong here rather than in the extractor.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Tuple, Dict, Any, List

import yaml
from loguru import logger


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "settings.yaml"

FACE_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/face_landmarker/"
    "face_landmarker/float16/latest/face_landmarker.task"
)
HAND_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/"
    "hand_landmarker/float16/latest/hand_landmarker.task"
)


@dataclass
class CaptureConfig:
    """Camera acquisition settings."""
    device_index: int = 0
    width: int = 1280
    height: int = 720
    fps: int = 30
    mirror: bool = True  # Selfie view; detection runs on the mirrored frame


@dataclass
class DetectorConfig:
    """Landmark model settings."""
    face_model_path: str = "models/face_landmarker.task"
    hand_model_path: str = "models/hand_landmarker.task"
    max_faces: int = 1
    max_hands: int = 2
    subject_kinds: List[str] = field(default_factory=lambda: ["face", "hand"])


@dataclass
class CalibrationConfig:
    """
    Landmark indices and empirical thresholds for metric extraction.

    Indices follow the MediaPipe face mesh (468/478 points) and hand
    (21 points) topologies.
    """
    # Reference point fallback chain: nose tip, nose bridge, first point
    nose_indices: Tuple[int, ...] = (1, 4, 0)
    upper_lip_index: int = 13
    lower_lip_index: int = 14
    jaw_max: float = 0.085

    wrist_index: int = 0
    thumb_tip_index: int = 4
    index_tip_index: int = 8
    # Thumb-index distance window, normalized frame units
    pinch_open_distance: float = 0.125
    pinch_closed_distance: float = 0.04


@dataclass
class SmoothingConfig:
    """Per-channel exponential smoothing factors (0 < alpha <= 1)."""
    tilt_lift_alpha: float = 0.22
    jaw_alpha: float = 0.2
    pinch_tracked_alpha: float = 0.42
    pinch_untracked_alpha: float = 0.12
    presence_alpha: float = 0.3

    def validate(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not 0.0 < value <= 1.0:
                raise ValueError(f"{f.name} must be in (0, 1], got {value}")


@dataclass
class PreviewConfig:
    """Node preview thumbnails."""
    width: int = 320
    height: int = 180
    jpeg_quality: int = 68


@dataclass
class StageConfig:
    """Primary stage output."""
    width: int = 960
    height: int = 540
    frame_opacity: float = 0.92
    show_badge: bool = True


@dataclass
class SchedulerConfig:
    """Per-tick budgets."""
    frame_budget_ms: float = 33.0
    snapshot_interval_ms: float = 180.0


@dataclass
class RuntimeConfig:
    """Aggregate configuration for one runtime context."""
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    preview: PreviewConfig = field(default_factory=PreviewConfig)
    stage: StageConfig = field(default_factory=StageConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


_SECTIONS = {
    "capture": CaptureConfig,
    "detector": DetectorConfig,
    "calibration": CalibrationConfig,
    "smoothing": SmoothingConfig,
    "preview": PreviewConfig,
    "stage": StageConfig,
    "scheduler": SchedulerConfig,
}


def _build_section(name: str, cls, values: Optional[Dict[str, Any]]):
    values = values or {}
    known = {f.name for f in fields(cls)}
    kwargs = {}
    for key, value in values.items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key '{name}.{key}'")
            continue
        if key == "nose_indices":
            value = tuple(value)
        kwargs[key] = value
    return cls(**kwargs)


def config_from_dict(data: Optional[Dict[str, Any]]) -> RuntimeConfig:
    """Build a RuntimeConfig from a parsed settings mapping."""
    data = data or {}
    for key in data:
        if key not in _SECTIONS:
            logger.warning(f"Ignoring unknown config section '{key}'")

    sections = {
        name: _build_section(name, cls, data.get(name))
        for name, cls in _SECTIONS.items()
    }
    config = RuntimeConfig(**sections)
    config.smoothing.validate()
    return config


def load_config(config_path: Optional[str] = None) -> RuntimeConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Explicit path; falls back to config/settings.yaml

    Returns:
        RuntimeConfig with defaults for anything not set in the file
    """
    if config_path and Path(config_path).exists():
        path = Path(config_path)
    elif config_path:
        logger.warning(f"Config file {config_path} not found, using defaults")
        return RuntimeConfig()
    elif DEFAULT_CONFIG_PATH.exists():
        path = DEFAULT_CONFIG_PATH
    else:
        return RuntimeConfig()

    with open(path) as f:
        data = yaml.safe_load(f)

    logger.info(f"Loaded configuration from {path}")
    return config_from_dict(data)
