"""
Vision Module.

Responsibilities:
- Landmark detection (MediaPipe face + hand landmarkers)
- Metric extraction from landmark point sets
"""

from .landmark_source import LandmarkSource, MediaPipeLandmarkSource
from .metrics import (
    extract,
    extract_face_metrics,
    extract_hand_metrics,
    map_controls,
    pinch_strength,
)
