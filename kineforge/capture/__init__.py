"""
Frame Capture Module.

Responsibilities:
- Camera acquisition
- Frame timing
- Format conversion (BGR -> RGB, mirroring)
"""

from .base import FrameSource
from .webcam import WebcamSource
