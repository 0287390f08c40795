"""
Base class for frame sources.

To add a new frame source:
1. Create a new file in the capture/ directory
2. Inherit from FrameSource
3. Implement start(), stop(), read_frame() and resolution
"""
from abc import ABC, abstractmethod
from typing import Optional, Tuple
import numpy as np
from numpy.typing import NDArray


class FrameSource(ABC):
    """Abstract base class for video frame sources.

    Sources never block waiting for a frame: read_frame() returns a None
    frame when nothing new is available.
    """

    @abstractmethod
    def start(self) -> bool:
        """Open the device or stream.

        Returns:
            True if started successfully, False otherwise
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Release the device or stream."""
        pass

    @abstractmethod
    def read_frame(self) -> Tuple[Optional[NDArray[np.uint8]], float, int]:
        """Read the newest frame.

        Returns:
            Tuple of (frame, timestamp_ms, frame_id)
            - frame: RGB frame (H x W x 3) or None if unavailable
            - timestamp_ms: Monotonic capture timestamp in milliseconds
            - frame_id: Sequential frame number
        """
        pass

    @property
    @abstractmethod
    def resolution(self) -> Tuple[int, int]:
        """Frame size as (width, height)."""
        pass

    @property
    @abstractmethod
    def is_running(self) -> bool:
        pass
