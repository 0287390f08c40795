"""
Stage renderer.

Consumer of the sink node: draws the primary reactive visual from the
current frame and the smoothed controls. A missing frame renders the
neutral background with the glow on top.
"""

from __future__ import annotations

from typing import Optional
import numpy as np
from numpy.typing import NDArray
import cv2

from kineforge.core.config import StageConfig
from kineforge.core.contracts import ControlValues
from kineforge.vision.metrics import clamp
from .drawing import STAGE_BACKGROUND, BACKGROUND, LIME_200, blank, blend, cover


# Radial gradient stops: (offset, rgb, alpha)
GLOW_STOPS = (
    (0.0, (193, 251, 106), 0.5),
    (0.55, (149, 242, 44), 0.22),
    (1.0, (54, 82, 19), 0.0),
)


def compute_stage_radius(controls: ControlValues, max_dimension: float) -> float:
    """Glow radius in pixels; grows with pinch and jaw, shrinks without presence."""
    pinch_influence = controls.pinch * 0.52
    jaw_influence = clamp(controls.jaw * 13, 0.0, 0.38)
    base = max_dimension * (0.14 + pinch_influence + jaw_influence)
    with_presence = base if controls.presence > 0.05 else base * 0.45
    return clamp(with_presence, 24.0, max_dimension * 0.46)


def compute_stage_center(controls: ControlValues, width: int, height: int):
    cx = width * clamp(0.5 + controls.tilt * 1.1, 0.08, 0.92)
    cy = height * clamp(0.73 - controls.lift * 0.83, 0.1, 0.9)
    return cx, cy


def _gradient(t: NDArray[np.float32]):
    """Per-pixel (rgb, alpha) of the glow for normalized radius t."""
    offsets = [s[0] for s in GLOW_STOPS]
    rgb = np.stack(
        [np.interp(t, offsets, [s[1][c] for s in GLOW_STOPS]) for c in range(3)],
        axis=-1,
    ) / 255.0
    alpha = np.interp(t, offsets, [s[2] for s in GLOW_STOPS])
    return rgb, alpha


class StageRenderer:
    """Renders the stage image for one tick."""

    def __init__(self, config: Optional[StageConfig] = None):
        self.config = config or StageConfig()
        self.last_image: Optional[NDArray[np.uint8]] = None
        self.last_radius: float = 0.0

    def render(
        self,
        frame: Optional[NDArray[np.uint8]],
        controls: Optional[ControlValues],
        fps: float = 0.0,
    ) -> NDArray[np.uint8]:
        controls = controls or ControlValues.neutral()
        w, h = self.config.width, self.config.height

        image = blank(w, h, STAGE_BACKGROUND)
        covered = cover(frame, w, h)
        if covered is not None:
            image = blend(image, covered, self.config.frame_opacity)

        cx, cy = compute_stage_center(controls, w, h)
        radius = compute_stage_radius(controls, min(w, h))
        self._draw_glow(image, cx, cy, radius)

        if self.config.show_badge:
            self._draw_badge(image, controls, fps)

        self.last_image = image
        self.last_radius = radius
        return image

    def _draw_glow(self, image: NDArray[np.uint8], cx: float, cy: float, radius: float):
        """Screen-blend a radial gradient, touching only its bounding box."""
        h, w = image.shape[:2]
        x0, x1 = max(0, int(cx - radius)), min(w, int(cx + radius) + 1)
        y0, y1 = max(0, int(cy - radius)), min(h, int(cy + radius) + 1)
        if x0 >= x1 or y0 >= y1:
            return

        ys, xs = np.mgrid[y0:y1, x0:x1].astype(np.float32)
        t = np.sqrt((xs - cx) ** 2 + (ys - cy) ** 2) / max(radius, 1e-6)
        inside = t <= 1.0
        rgb, alpha = _gradient(np.clip(t, 0.0, 1.0))
        alpha = np.where(inside, alpha, 0.0)[..., None]

        base = image[y0:y1, x0:x1].astype(np.float32) / 255.0
        screened = 1.0 - (1.0 - base) * (1.0 - rgb)
        out = base + (screened - base) * alpha
        image[y0:y1, x0:x1] = np.clip(out * 255.0, 0, 255).astype(np.uint8)

    def _draw_badge(self, image: NDArray[np.uint8], controls: ControlValues, fps: float):
        roi = image[10:52, 10:140]
        panel = np.empty_like(roi)
        panel[:] = BACKGROUND
        image[10:52, 10:140] = blend(roi, panel, 0.65)
        cv2.putText(image, f"fps: {fps:.1f}", (20, 28),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.4, LIME_200, 1, cv2.LINE_AA)
        cv2.putText(image, f"presence: {controls.presence:.2f}", (20, 44),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.4, LIME_200, 1, cv2.LINE_AA)
