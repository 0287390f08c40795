"""
Webcam frame source.

Handles:
- OpenCV camera acquisition
- Mirroring (selfie view)
- BGR -> RGB conversion and monotonic timestamps
"""

from __future__ import annotations

import os
import time
from typing import Optional, Tuple
import numpy as np
from numpy.typing import NDArray
import cv2
from loguru import logger

from kineforge.core.config import CaptureConfig
from .base import FrameSource


class WebcamSource(FrameSource):
    """
    Webcam capture using OpenCV.

    Guarantees:
    - RGB format output
    - Monotonic, non-decreasing timestamps

    read_frame() waits for the driver's next frame (at most one frame
    interval, since the capture buffer holds a single frame). A failed or
    empty read returns a None frame so the scheduler skips the tick.
    """

    def __init__(self, config: Optional[CaptureConfig] = None):
        self.config = config or CaptureConfig()

        self._capture: Optional[cv2.VideoCapture] = None
        self._is_running = False
        self._frame_count: int = 0
        self._resolution: Tuple[int, int] = (self.config.width, self.config.height)

    def start(self) -> bool:
        """
        Start video capture.

        Returns:
            True if started successfully
        """
        if self._is_running:
            return True

        try:
            if os.name == "nt":
                self._capture = cv2.VideoCapture(self.config.device_index, cv2.CAP_DSHOW)
            else:
                self._capture = cv2.VideoCapture(self.config.device_index)

            if not self._capture.isOpened():
                logger.error(f"Failed to open camera {self.config.device_index}")
                self._capture = None
                return False

            # Keep the capture buffer small so the newest frame is read
            self._capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)
            self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
            self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
            self._capture.set(cv2.CAP_PROP_FPS, self.config.fps)

            actual_width = int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH))
            actual_height = int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
            actual_fps = self._capture.get(cv2.CAP_PROP_FPS)
            self._resolution = (actual_width, actual_height)

            logger.info(
                f"Video capture started: {actual_width}x{actual_height} @ {actual_fps:.0f}fps"
            )

            self._is_running = True
            return True

        except cv2.error as e:
            logger.error(f"Failed to start video capture: {e}")
            return False

    def stop(self) -> None:
        """Stop video capture."""
        self._is_running = False

        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Video capture stopped")

    def read_frame(self) -> Tuple[Optional[NDArray[np.uint8]], float, int]:
        if not self._is_running or self._capture is None:
            return (None, 0.0, self._frame_count)

        ret, frame = self._capture.read()
        if not ret or frame is None:
            return (None, 0.0, self._frame_count)

        if self.config.mirror:
            frame = cv2.flip(frame, 1)

        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        self._frame_count += 1
        timestamp_ms = time.perf_counter() * 1000.0

        return (frame_rgb, timestamp_ms, self._frame_count)

    @property
    def resolution(self) -> Tuple[int, int]:
        return self._resolution

    @property
    def is_running(self) -> bool:
        return self._is_running
